from __future__ import annotations

import functools
import logging
import threading
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from portal.core.catalog import MeetCatalog
from portal.core.errors import DraftNotFound, ParticipantNotFound, PhotoRejected, RemoteError, ValidationFailed
from portal.schemas.participant import DeleteRequest, Participant, ParticipantStatus, check_transition
from portal.services import reconcile
from portal.services.eligibility import EligibilityRules
from portal.services.fees import FeeBreakdown, billable_count, compute_fee, format_inr
from portal.services.gateway import ChangeEvent, MatchKey, ParticipantGateway, Subscription
from portal.services.local_store import LocalStore
from portal.services.pending_queue import FlushResult, PendingQueue
from portal.services.photos import encode_photo
from portal.services.quota_validator import QuotaValidator

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset(
    {"name", "gender", "age", "designation", "phone", "blood", "age_class", "veg_non", "sports"}
)


class SyncState(str, Enum):
    IDLE = "Idle"
    SYNCING = "Syncing"
    LIVE = "LiveSubscribed"
    POLLING = "Polling"


def _synchronized(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper


def _slot_timestamp(base: datetime, offset: int) -> str:
    stamp = base + timedelta(milliseconds=offset)
    return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class TeamSession:
    """One team manager's registration session.

    Holds the team's drafts and submitted rows (persisted in the local store),
    gates submissions through the quota validator, pushes writes to the
    gateway and falls back to the pending queue when the store is unreachable.
    Remote change notifications are folded into the submitted list as they
    arrive. All public methods run under the session lock, so handlers and the
    periodic flush never interleave within one team.
    """

    def __init__(
        self,
        team_id: str,
        gateway: ParticipantGateway,
        store: LocalStore,
        catalog: MeetCatalog,
    ) -> None:
        self.team_id = team_id
        self.gateway = gateway
        self.store = store
        self.catalog = catalog
        self.rules = EligibilityRules(catalog)
        self.validator = QuotaValidator(catalog, self.rules)
        self.queue = PendingQueue(store, team_id)
        self.drafts: List[Participant] = store.load_drafts(team_id)
        self.submitted: List[Participant] = store.load_submitted(team_id)
        self.state = SyncState.IDLE
        self.message = ""
        self._subscription: Optional[Subscription] = None
        self._closed = False
        self._lock = threading.RLock()

    # -- lifecycle -----------------------------------------------------------

    @_synchronized
    def mount(self) -> None:
        """Flush queued writes, fetch the canonical rows, then attach the change feed."""
        self._closed = False
        self.state = SyncState.SYNCING
        self.flush_pending(refresh=False)
        self.refresh()
        self._attach()

    def _attach(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        try:
            self._subscription = self.gateway.subscribe_to_team_changes(self.team_id, self.handle_change)
        except RemoteError as exc:
            logger.warning("Change feed unavailable for team %s, polling instead: %s", self.team_id, exc)
            self.state = SyncState.POLLING
            return
        self.state = SyncState.LIVE
        logger.info("Team %s subscribed to live changes", self.team_id)

    @_synchronized
    def close(self) -> None:
        self._closed = True
        if self._subscription is not None:
            try:
                self._subscription.unsubscribe()
            except RemoteError as exc:
                logger.warning("Unsubscribe failed for team %s: %s", self.team_id, exc)
            self._subscription = None
        self.state = SyncState.IDLE

    @_synchronized
    def tick(self) -> FlushResult:
        """Periodic work: flush the queue; in polling mode also re-fetch and retry the feed."""
        result = self.flush_pending(refresh=False)
        if self.state is SyncState.POLLING:
            self.refresh()
            self._attach()
        elif result.delivered:
            self.refresh()
        return result

    # -- state helpers -------------------------------------------------------

    @property
    def fee(self) -> FeeBreakdown:
        return compute_fee(billable_count(self.submitted, self.drafts), self.team_id, self.catalog.fees)

    def _set_submitted(self, rows: List[Participant]) -> None:
        self.submitted = rows
        self.store.save_submitted(self.team_id, rows)

    def _set_drafts(self, rows: List[Participant]) -> None:
        self.drafts = rows
        self.store.save_drafts(self.team_id, rows)

    def _fail(self, message: str, exc_type=ValidationFailed):
        self.message = message
        raise exc_type(message)

    def _draft(self, index: int) -> Participant:
        if index < 0 or index >= len(self.drafts):
            self._fail(f"No draft at position {index}", DraftNotFound)
        return self.drafts[index]

    def _active_submitted(self) -> int:
        return sum(1 for r in self.submitted if r.counts_toward_quota)

    # -- remote sync ---------------------------------------------------------

    @_synchronized
    def refresh(self) -> bool:
        try:
            canonical = self.gateway.fetch_team_participants(self.team_id)
        except RemoteError as exc:
            logger.warning("Fetch failed for team %s: %s", self.team_id, exc)
            return False
        self._set_submitted(reconcile.merge_snapshot(canonical, self.submitted))
        return True

    @_synchronized
    def handle_change(self, event: ChangeEvent) -> None:
        if self._closed:
            return
        rows, refetch = reconcile.apply_change(self.submitted, event)
        if refetch:
            logger.info("Unrecognised change for team %s, re-fetching", self.team_id)
            self.refresh()
            return
        self._set_submitted(rows)

    @_synchronized
    def flush_pending(self, refresh: bool = True) -> FlushResult:
        result = self.queue.flush(self.gateway)
        if result.parked:
            self._mark_rejected(result)
        if result.delivered or result.dead_lettered:
            logger.info(
                "Flushed team %s: %d delivered, %d dead-lettered",
                self.team_id,
                result.delivered,
                result.dead_lettered,
            )
            if refresh:
                self.refresh()
        return result

    def _mark_rejected(self, result: FlushResult) -> None:
        rows, changed = reconcile.mark_rejected(self.submitted, result.rejected_timestamps())
        if changed:
            logger.warning("Store refused %d row(s) of team %s; marked Rejected", changed, self.team_id)
            self._set_submitted(rows)

    @_synchronized
    def manual_sync(self) -> str:
        self.message = "Syncing with server..."
        if self.refresh():
            self.message = "Synced with server."
        else:
            self.message = "Could not sync with server (check network / permissions)."
        return self.message

    # -- drafts --------------------------------------------------------------

    @_synchronized
    def generate_slots(self, count: Any) -> List[Participant]:
        try:
            requested = int(count)
        except (TypeError, ValueError):
            requested = 0
        n = max(0, min(self.catalog.max_team_size, requested))
        if n <= 0:
            self._fail(f"Enter a number between 1 and {self.catalog.max_team_size}")
        active = self._active_submitted()
        available = max(0, self.catalog.max_team_size - active)
        if n > available:
            self._fail(f"You may add up to {available} more players (already submitted {active}).")

        base = datetime.now(timezone.utc)
        slots = [
            Participant(
                team_id=self.team_id,
                sports=[""] * self.catalog.max_sports,
                timestamp=_slot_timestamp(base, i),
                status=ParticipantStatus.DRAFT,
            )
            for i in range(n)
        ]
        self._set_drafts(slots)
        self.message = ""
        return slots

    @_synchronized
    def update_draft(self, index: int, patch: Dict[str, Any]) -> Participant:
        current = self._draft(index)
        changes = {k: v for k, v in patch.items() if k in EDITABLE_FIELDS}
        updated = Participant.model_validate(dict(current.model_dump(), **changes))

        if "gender" in changes or "age" in changes:
            if updated.age_class not in self.rules.allowed_tiers(updated.gender, updated.age):
                updated = updated.model_copy(update={"age_class": ""})
        if "age_class" in changes:
            allowed = set(self.rules.allowed_sports(updated.gender, updated.age_class))
            updated = updated.model_copy(update={"sports": [s if s in allowed else "" for s in updated.sports]})

        drafts = list(self.drafts)
        drafts[index] = updated
        self._set_drafts(drafts)
        return updated

    @_synchronized
    def remove_draft(self, index: int) -> None:
        self._draft(index)
        drafts = list(self.drafts)
        del drafts[index]
        self._set_drafts(drafts)

    @_synchronized
    def attach_photo(self, index: int, content: bytes, content_type: Optional[str]) -> Participant:
        current = self._draft(index)
        try:
            data_url = encode_photo(content, content_type, self.catalog)
        except PhotoRejected as exc:
            self._fail(str(exc), PhotoRejected)
        drafts = list(self.drafts)
        drafts[index] = current.model_copy(update={"photo_base64": data_url})
        self._set_drafts(drafts)
        self.message = ""
        return drafts[index]

    # -- writes --------------------------------------------------------------

    def _after_write(self, message: str) -> str:
        result = self.flush_pending(refresh=False)
        self.refresh()
        if result.ok and result.delivered > 0:
            message += " Pending actions flushed."
        if result.dead_lettered:
            message += f" ({result.dead_lettered} queued write(s) rejected by the server.)"
        self.message = message
        return message

    @_synchronized
    def submit_all(self) -> str:
        if not self.drafts:
            self._fail("No draft participants to submit")
        rejection = self.validator.first_rejection(self.drafts, self.submitted)
        if rejection is not None:
            _, verdict = rejection
            self._fail(f"Validation failed: {verdict.reason}")

        batch = [
            d.model_copy(
                update={
                    "team_id": self.team_id,
                    "status": check_transition(d.status, ParticipantStatus.ACTIVE),
                    "sports": d.chosen_sports,
                }
            )
            for d in self.drafts
        ]
        try:
            inserted = self.gateway.insert_participants(batch)
        except RemoteError as exc:
            logger.warning("Insert failed for team %s, queueing %d rows: %s", self.team_id, len(batch), exc)
            self.queue.enqueue_append(batch)
            self._set_submitted(reconcile.newest_first(self.submitted + batch))
            message = f"Error saving to server: {exc}"
        else:
            self._set_submitted(reconcile.merge_inserted(self.submitted, inserted))
            message = "Saved to server!"

        self._set_drafts([])
        return self._after_write(message)

    @_synchronized
    def request_delete(self, key: MatchKey, reason: str = "", requester: str = "") -> str:
        row = next((r for r in self.submitted if reconcile.matches_local(r, key)), None)
        if row is None:
            self._fail("Row missing", ParticipantNotFound)
        if row.status in (ParticipantStatus.REQUESTED, ParticipantStatus.DELETED, ParticipantStatus.REJECTED):
            return self.message

        row_key = MatchKey(id=row.id, team_id=self.team_id, timestamp=row.timestamp or None)
        rows, _ = reconcile.mark_status(self.submitted, row_key, ParticipantStatus.REQUESTED)
        self._set_submitted(rows)
        self.store.append_delete_request(
            DeleteRequest(
                row_id=row.id,
                team_id=self.team_id,
                name=row.name,
                timestamp=row.timestamp or None,
                reason=reason or "",
                requester=requester or self.team_id,
            )
        )

        if row.id is None:
            self.queue.enqueue_request_delete(row_key, name=row.name, reason=reason)
            return self._after_write("Deletion requested locally; will apply on server after row sync.")
        try:
            self.gateway.update_participant_status(MatchKey(id=row.id), ParticipantStatus.REQUESTED)
        except RemoteError as exc:
            logger.warning("Delete request for row %s of team %s queued: %s", row.id, self.team_id, exc)
            self.queue.enqueue_request_delete(row_key, name=row.name, reason=reason)
            return self._after_write("Deletion requested locally; will retry server update.")
        return self._after_write("Deletion requested and saved on server.")

    @_synchronized
    def apply_status(self, key: MatchKey, status: ParticipantStatus, override: bool = False) -> int:
        """Record an administrator's decision on this team's cached rows."""
        rows, changed = reconcile.mark_status(self.submitted, key, status, override=override)
        if changed:
            self._set_submitted(rows)
        return changed

    # -- views ---------------------------------------------------------------

    @_synchronized
    def summary(self) -> Dict[str, Any]:
        filled = sum(1 for d in self.drafts if d.name.strip())
        active = self._active_submitted()
        return {
            "teamId": self.team_id,
            "state": self.state.value,
            "message": self.message,
            "fee": dict(self.fee.as_dict(), formatted=format_inr(self.fee.total)),
            "submitted": [r.to_api() for r in self.submitted],
            "drafts": [d.to_api() for d in self.drafts],
            "pending": len(self.queue),
            "deadLetters": len(self.queue.dead_letters()),
            "counts": {
                "activeSubmitted": active,
                "totalParticipants": active + len(self.drafts),
                "filledDrafts": filled,
                "progressPercent": round(filled * 100 / len(self.drafts)) if self.drafts else 0,
            },
        }
