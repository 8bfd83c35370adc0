from __future__ import annotations

import logging
import threading
from functools import lru_cache
from typing import List, Optional

from portal.core.catalog import MeetCatalog, get_catalog
from portal.core.errors import IllegalTransition, ParticipantNotFound, PhotoRejected, RemoteError
from portal.schemas.participant import DeleteRequest, Participant, ParticipantStatus, check_transition, utc_now_iso
from portal.services import reconcile
from portal.services.export_service import export_csv
from portal.services.gateway import ChangeEvent, MatchKey, ParticipantGateway, Subscription
from portal.services.local_store import LocalStore
from portal.services.photos import PhotoFile, decode_photo
from portal.services.sessions import SessionRegistry, get_gateway, get_registry, get_store

logger = logging.getLogger(__name__)


class AdminConsole:
    """Administrator's cross-team view: listing, export and deletion decisions.

    The view is loaded from the remote store, or from every team's local cache
    when the store is unreachable. Any remote change triggers a full re-fetch.
    The lock only guards ``rows`` and is never held across gateway or team
    session calls.
    """

    def __init__(
        self,
        gateway: ParticipantGateway,
        store: LocalStore,
        catalog: MeetCatalog,
        registry: Optional[SessionRegistry] = None,
    ) -> None:
        self.gateway = gateway
        self.store = store
        self.catalog = catalog
        self.registry = registry
        self.rows: List[Participant] = []
        self.message = ""
        self._subscription: Optional[Subscription] = None
        self._lock = threading.RLock()

    # -- loading -------------------------------------------------------------

    def _local_rows(self) -> List[Participant]:
        rows: List[Participant] = []
        for team in self.catalog.teams:
            rows.extend(r.model_copy(update={"team_id": team}) for r in self.store.load_submitted(team))
        return rows

    def refetch(self) -> bool:
        try:
            rows = self.gateway.fetch_all_participants()
        except RemoteError as exc:
            logger.warning("Admin fetch failed: %s", exc)
            return False
        with self._lock:
            self.rows = rows
        return True

    def load(self) -> str:
        if self.refetch():
            self.message = "Loaded rows from remote store."
        else:
            rows = self._local_rows()
            with self._lock:
                self.rows = rows
            self.message = "Loaded local rows (remote fetch failed)."
        return self.message

    def _on_change(self, event: ChangeEvent) -> None:
        self.refetch()

    def start(self) -> str:
        message = self.load()
        self.stop()
        try:
            self._subscription = self.gateway.subscribe_to_all_changes(self._on_change)
        except RemoteError as exc:
            logger.warning("Admin change feed unavailable: %s", exc)
        return message

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    # -- views ---------------------------------------------------------------

    def filter(
        self,
        team: Optional[str] = None,
        status: Optional[str] = None,
        sport: Optional[str] = None,
    ) -> List[Participant]:
        with self._lock:
            rows = list(self.rows)
        if team:
            rows = [r for r in rows if r.team_id == team]
        if status:
            rows = [r for r in rows if r.status.value == status]
        if sport:
            rows = [r for r in rows if sport in r.sports]
        return rows

    def teams(self) -> List[str]:
        with self._lock:
            return sorted({r.team_id for r in self.rows if r.team_id})

    def export(self, team: Optional[str] = None, status: Optional[str] = None, sport: Optional[str] = None) -> str:
        return export_csv(self.filter(team=team, status=status, sport=sport))

    def delete_requests(self, status: Optional[str] = None) -> List[DeleteRequest]:
        requests = self.store.load_delete_requests()
        if status:
            requests = [r for r in requests if r.status == status]
        return requests

    # -- decisions -----------------------------------------------------------

    def _find(self, key: MatchKey) -> Participant:
        with self._lock:
            for row in self.rows:
                if reconcile.matches_local(row, key) and (not key.team_id or row.team_id == key.team_id):
                    return row
        raise ParticipantNotFound("Row missing")

    def _apply_to_team(self, row: Participant, status: ParticipantStatus, override: bool) -> None:
        key = MatchKey(id=row.id, team_id=row.team_id, timestamp=row.timestamp or None)
        session = self.registry.peek(row.team_id) if self.registry else None
        try:
            if session is not None:
                session.apply_status(key, status, override=override)
                return
            cached, changed = reconcile.mark_status(self.store.load_submitted(row.team_id), key, status, override=override)
        except IllegalTransition as exc:
            logger.warning("Team %s cache out of step, left unchanged: %s", row.team_id, exc)
            return
        if changed:
            self.store.save_submitted(row.team_id, cached)

    def _resolve_requests(self, row: Participant, outcome: str) -> None:
        requests = self.store.load_delete_requests()
        touched = False
        for request in requests:
            if request.status != "pending" or request.team_id != row.team_id:
                continue
            same_id = row.id is not None and request.row_id is not None and str(request.row_id) == str(row.id)
            same_stamp = bool(row.timestamp) and request.timestamp == row.timestamp
            if same_id or same_stamp:
                request.status = outcome
                request.processed_at = utc_now_iso()
                touched = True
        if touched:
            self.store.save_delete_requests(requests)

    def _decide(self, key: MatchKey, status: ParticipantStatus, override: bool, outcome: str) -> Participant:
        row = self._find(key)
        check_transition(row.status, status, override=override)
        # The gateway may deliver change events to team sessions on this
        # thread, so neither it nor the sessions are called under the lock.
        if row.id is not None:
            try:
                self.gateway.update_participant_status(MatchKey(id=row.id), status)
            except RemoteError as exc:
                logger.warning("Remote %s of row %s failed: %s", outcome, row.id, exc)
        else:
            logger.warning("Row of team %s has no id; %s locally only", row.team_id, outcome)
        self._apply_to_team(row, status, override)
        self._resolve_requests(row, outcome)
        with self._lock:
            try:
                self.rows, _ = reconcile.mark_status(
                    self.rows, MatchKey(id=row.id, timestamp=row.timestamp or None), status, override=override
                )
            except IllegalTransition as exc:
                logger.warning("Admin view changed during %s of row %s: %s", outcome, row.id, exc)
        return row

    def approve_delete(self, key: MatchKey) -> str:
        self._decide(key, ParticipantStatus.DELETED, override=False, outcome="approved")
        self.message = "Deletion approved (attempted server update; marked Deleted locally)."
        return self.message

    def reject_delete(self, key: MatchKey) -> str:
        self._decide(key, ParticipantStatus.ACTIVE, override=True, outcome="rejected")
        self.message = "Deletion request rejected; participant restored to Active."
        return self.message

    # -- photos --------------------------------------------------------------

    def photo(self, key: MatchKey) -> PhotoFile:
        row = self._find(key)
        payload = row.photo_base64
        if not payload and row.id is not None:
            try:
                payload = self.gateway.fetch_participant_photo(row.id) or ""
            except RemoteError as exc:
                self.message = f"Could not fetch photo from server: {exc}"
                raise
        try:
            photo = decode_photo(payload, row.team_id, row.name, str(row.id if row.id is not None else row.timestamp))
        except PhotoRejected as exc:
            self.message = str(exc)
            raise
        self.message = "Photo downloaded"
        return photo


@lru_cache(maxsize=1)
def get_admin_console() -> AdminConsole:
    console = AdminConsole(get_gateway(), get_store(), get_catalog(), get_registry())
    console.start()
    return console
