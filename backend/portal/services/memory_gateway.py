from __future__ import annotations

import itertools
import logging
import threading
from typing import Dict, List, Optional, Sequence

from portal.core.errors import RemoteRejected, RemoteUnavailable
from portal.schemas.participant import Participant, ParticipantStatus
from portal.services.gateway import (
    ChangeEvent,
    ChangeHandler,
    ChangeKind,
    MatchKey,
    ParticipantGateway,
    RowId,
    Subscription,
)

logger = logging.getLogger(__name__)


class _Listener(Subscription):
    def __init__(self, gateway: "MemoryGateway", team_id: Optional[str], handler: ChangeHandler) -> None:
        self.gateway = gateway
        self.team_id = team_id
        self.handler = handler

    def unsubscribe(self) -> None:
        self.gateway._detach(self)


class MemoryGateway(ParticipantGateway):
    """In-process participant store used for local development and tests.

    Writes notify subscribers synchronously, after the store lock is released.
    Set ``offline`` to simulate a network outage, or ``rejecting`` to a message
    to simulate the store refusing writes.
    """

    def __init__(self) -> None:
        self._rows: List[Participant] = []
        self._ids = itertools.count(1)
        self._listeners: List[_Listener] = []
        self._lock = threading.RLock()
        self.offline = False
        self.rejecting: Optional[str] = None

    def _check_online(self) -> None:
        if self.offline:
            raise RemoteUnavailable("Remote store unreachable")

    def _check_writable(self) -> None:
        self._check_online()
        if self.rejecting:
            raise RemoteRejected(self.rejecting, status=409)

    def _emit(self, events: List[ChangeEvent]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for event in events:
            team = event.row.team_id if event.row else None
            for listener in listeners:
                if listener.team_id is None or listener.team_id == team:
                    listener.handler(event)

    def _detach(self, listener: _Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    @staticmethod
    def _newest_first(rows: List[Participant]) -> List[Participant]:
        return sorted(rows, key=lambda r: r.timestamp or "", reverse=True)

    def fetch_team_participants(self, team_id: str) -> List[Participant]:
        self._check_online()
        with self._lock:
            rows = [r.model_copy(deep=True) for r in self._rows if r.team_id == team_id]
        return self._newest_first(rows)

    def fetch_all_participants(self) -> List[Participant]:
        self._check_online()
        with self._lock:
            rows = [r.model_copy(deep=True) for r in self._rows]
        return self._newest_first(rows)

    def insert_participants(self, rows: Sequence[Participant]) -> List[Participant]:
        self._check_writable()
        inserted: List[Participant] = []
        with self._lock:
            for row in rows:
                stored = row.model_copy(
                    update={"id": next(self._ids), "sports": row.chosen_sports, "status": ParticipantStatus.ACTIVE}
                )
                self._rows.append(stored)
                inserted.append(stored.model_copy(deep=True))
        self._emit([ChangeEvent(ChangeKind.INSERT, r) for r in inserted])
        return inserted

    def update_participant_status(self, key: MatchKey, status: ParticipantStatus) -> List[Participant]:
        self._check_writable()
        if not key.usable:
            raise RemoteRejected("Row has neither id nor team + timestamp")
        updated: List[Participant] = []
        with self._lock:
            for index, row in enumerate(self._rows):
                if key.matches(row):
                    self._rows[index] = row.model_copy(update={"status": ParticipantStatus(status)})
                    updated.append(self._rows[index].model_copy(deep=True))
        self._emit([ChangeEvent(ChangeKind.UPDATE, r) for r in updated])
        return updated

    def delete_participant(self, row_id: RowId) -> bool:
        """Hard delete, as an operator would do directly in the store."""
        self._check_writable()
        with self._lock:
            victims = [r for r in self._rows if r.id is not None and str(r.id) == str(row_id)]
            self._rows = [r for r in self._rows if r not in victims]
        self._emit([ChangeEvent(ChangeKind.DELETE, r) for r in victims])
        return bool(victims)

    def fetch_participant_photo(self, row_id: RowId) -> Optional[str]:
        self._check_online()
        with self._lock:
            for row in self._rows:
                if row.id is not None and str(row.id) == str(row_id):
                    return row.photo_base64 or None
        return None

    def subscribe_to_team_changes(self, team_id: str, on_change: ChangeHandler) -> Subscription:
        self._check_online()
        listener = _Listener(self, team_id, on_change)
        with self._lock:
            self._listeners.append(listener)
        return listener

    def subscribe_to_all_changes(self, on_change: ChangeHandler) -> Subscription:
        self._check_online()
        listener = _Listener(self, None, on_change)
        with self._lock:
            self._listeners.append(listener)
        return listener

    def counts(self) -> Dict[str, int]:
        with self._lock:
            return {"rows": len(self._rows), "listeners": len(self._listeners)}
