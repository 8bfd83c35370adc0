from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set

from pydantic import ValidationError

from portal.core.errors import RemoteError
from portal.schemas.participant import Participant, ParticipantStatus, utc_now_iso
from portal.services.gateway import MatchKey, ParticipantGateway
from portal.services.local_store import LocalStore

logger = logging.getLogger(__name__)

APPEND_MULTIPLE = "appendMultiple"
REQUEST_DELETE = "requestDelete"


@dataclass
class FlushResult:
    ok: bool
    delivered: int = 0
    dead_lettered: int = 0
    dropped: int = 0
    error: Optional[str] = None
    parked: List[Dict[str, Any]] = field(default_factory=list)

    def rejected_timestamps(self) -> Set[str]:
        """Creation timestamps of the rows in parked appendMultiple entries."""
        stamps: Set[str] = set()
        for entry in self.parked:
            if entry.get("action") != APPEND_MULTIPLE:
                continue
            for row in entry.get("rows") or []:
                if isinstance(row, dict) and row.get("timestamp"):
                    stamps.add(row["timestamp"])
        return stamps

    def as_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "delivered": self.delivered,
            "deadLettered": self.dead_lettered,
            "dropped": self.dropped,
            "error": self.error,
        }


class _Unusable(Exception):
    def __init__(self, message: str, park: bool = False) -> None:
        super().__init__(message)
        self.park = park


class PendingQueue:
    """Durable, ordered per-team queue of writes that have not reached the store.

    Entries are delivered strictly in insertion order and removed only once the
    store accepts them. A transient failure stops the flush and leaves the
    failed entry at the head so it is retried first next time. An entry the
    store permanently rejects is parked in the team's dead-letter list instead
    of blocking the entries behind it forever.
    """

    def __init__(self, store: LocalStore, team_id: str) -> None:
        self.store = store
        self.team_id = team_id

    def entries(self) -> List[Dict[str, Any]]:
        return self.store.load_pending(self.team_id)

    def dead_letters(self) -> List[Dict[str, Any]]:
        return self.store.load_dead_letters(self.team_id)

    def __len__(self) -> int:
        return len(self.entries())

    def _push(self, entry: Dict[str, Any]) -> None:
        entries = self.entries()
        entries.append(entry)
        self.store.save_pending(self.team_id, entries)
        logger.info("Queued %s for team %s (%d pending)", entry["action"], self.team_id, len(entries))

    def enqueue_append(self, rows: Sequence[Participant]) -> None:
        self._push(
            {
                "action": APPEND_MULTIPLE,
                "rows": [r.model_copy(update={"status": ParticipantStatus.ACTIVE}).to_api() for r in rows],
                "queuedAt": utc_now_iso(),
            }
        )

    def enqueue_request_delete(self, key: MatchKey, name: str = "", reason: str = "") -> None:
        payload = dict(key.as_dict(), name=name, reason=reason)
        if not payload.get("teamId"):
            payload["teamId"] = self.team_id
        self._push({"action": REQUEST_DELETE, "payload": payload, "queuedAt": utc_now_iso()})

    def _pop_head(self) -> None:
        entries = self.entries()
        if entries:
            entries.pop(0)
            self.store.save_pending(self.team_id, entries)

    def _park(self, entry: Dict[str, Any], error: str) -> None:
        parked = self.dead_letters()
        parked.append(dict(entry, error=error, parkedAt=utc_now_iso()))
        self.store.save_dead_letters(self.team_id, parked)

    def _deliver(self, entry: Dict[str, Any], gateway: ParticipantGateway) -> None:
        action = entry.get("action")
        if action == APPEND_MULTIPLE:
            try:
                rows = [Participant.model_validate(r) for r in entry.get("rows") or []]
            except ValidationError as exc:
                raise _Unusable(f"unreadable rows: {exc}", park=True)
            if rows:
                gateway.insert_participants(rows)
        elif action == REQUEST_DELETE:
            payload = entry.get("payload") or {}
            key = MatchKey(id=payload.get("id"), team_id=payload.get("teamId"), timestamp=payload.get("timestamp"))
            if not key.usable:
                raise _Unusable("requestDelete entry has neither id nor team + timestamp")
            gateway.update_participant_status(key, ParticipantStatus.REQUESTED)
        else:
            raise _Unusable(f"unknown action {action!r}")

    def flush(self, gateway: ParticipantGateway) -> FlushResult:
        result = FlushResult(ok=True)
        while True:
            entries = self.entries()
            if not entries:
                return result
            head = entries[0]
            try:
                self._deliver(head, gateway)
            except _Unusable as exc:
                logger.warning("Discarding pending entry for team %s: %s", self.team_id, exc)
                if exc.park:
                    self._park(head, str(exc))
                    result.parked.append(head)
                    result.dead_lettered += 1
                else:
                    result.dropped += 1
            except RemoteError as exc:
                if not exc.permanent:
                    logger.warning("Flush for team %s halted at %s: %s", self.team_id, head.get("action"), exc)
                    result.ok = False
                    result.error = str(exc)
                    return result
                logger.warning("Store rejected %s for team %s, parking it: %s", head.get("action"), self.team_id, exc)
                self._park(head, str(exc))
                result.parked.append(head)
                result.dead_lettered += 1
            else:
                result.delivered += 1
            self._pop_head()
