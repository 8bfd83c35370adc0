from __future__ import annotations

import json
import logging
import math
from typing import Any, Dict, List, Optional, Sequence

import requests

from portal.core.errors import ConfigurationError, RemoteRejected, RemoteUnavailable, SubscriptionUnavailable
from portal.schemas.participant import Participant, ParticipantStatus
from portal.services.gateway import (
    ChangeHandler,
    MatchKey,
    ParticipantGateway,
    RowId,
    Subscription,
    participant_to_row,
    row_to_participant,
)

logger = logging.getLogger(__name__)

_TRANSIENT_STATUSES = {408, 425, 429}


def _sanitize_for_json(value: Any) -> Any:
    """Recursively replace NaN/inf with None so json.dumps rejects nothing."""
    if value is None:
        return None
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, dict):
        return {k: _sanitize_for_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize_for_json(v) for v in value]
    return value


def _error_detail(res: requests.Response) -> str:
    try:
        body = res.json()
    except ValueError:
        return res.text or res.reason or f"HTTP {res.status_code}"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body.get("details") or body)
    return str(body)


class SupabaseGateway(ParticipantGateway):
    """Participant store over the Supabase PostgREST endpoint.

    REST offers no change feed, so both subscribe calls raise
    ``SubscriptionUnavailable`` and sessions fall back to polling.
    """

    def __init__(
        self,
        base_url: Optional[str],
        api_key: Optional[str],
        table: str = "participants",
        timeout: int = 10,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not base_url or not api_key:
            raise ConfigurationError("Supabase URL and key must be configured (MEET_SUPABASE_URL / MEET_SUPABASE_KEY)")
        self.base_url = base_url.rstrip("/")
        self.table = table
        self.timeout = timeout
        self.http = session or requests.Session()
        self.http.headers.update(
            {
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            }
        )

    def _make_url(self) -> str:
        return f"{self.base_url}/rest/v1/{self.table}"

    def _request(
        self,
        method: str,
        params: Dict[str, str],
        data: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        headers = {"Prefer": prefer} if prefer else {}
        payload = None
        if data is not None:
            try:
                payload = json.dumps(_sanitize_for_json(data), allow_nan=False)
            except ValueError as exc:  # JSON encoding issues
                raise RemoteRejected(f"JSON encoding error: {exc}")
        try:
            res = self.http.request(
                method,
                self._make_url(),
                params=params,
                data=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise RemoteUnavailable(str(exc))

        if res.status_code >= 500 or res.status_code in _TRANSIENT_STATUSES:
            raise RemoteUnavailable(_error_detail(res), status=res.status_code)
        if res.status_code >= 400:
            raise RemoteRejected(_error_detail(res), status=res.status_code)
        if not res.content:
            return []
        try:
            return res.json()
        except ValueError as exc:
            raise RemoteUnavailable(f"Unreadable response from store: {exc}", status=res.status_code)

    @staticmethod
    def _rows(body: Any) -> List[Participant]:
        if not isinstance(body, list):
            return []
        return [row_to_participant(r) for r in body if isinstance(r, dict)]

    @staticmethod
    def _key_params(key: MatchKey) -> Dict[str, str]:
        if key.id is not None:
            return {"id": f"eq.{key.id}"}
        if key.team_id and key.timestamp:
            return {"team_id": f"eq.{key.team_id}", "timestamp": f"eq.{key.timestamp}"}
        raise RemoteRejected("Row has neither id nor team + timestamp")

    def fetch_team_participants(self, team_id: str) -> List[Participant]:
        body = self._request("GET", {"select": "*", "team_id": f"eq.{team_id}", "order": "timestamp.desc"})
        return self._rows(body)

    def insert_participants(self, rows: Sequence[Participant]) -> List[Participant]:
        body = self._request(
            "POST",
            {"select": "*"},
            data=[participant_to_row(r) for r in rows],
            prefer="return=representation",
        )
        return self._rows(body)

    def update_participant_status(self, key: MatchKey, status: ParticipantStatus) -> List[Participant]:
        params = dict(self._key_params(key), select="*")
        body = self._request("PATCH", params, data={"status": ParticipantStatus(status).value}, prefer="return=representation")
        return self._rows(body)

    def fetch_all_participants(self) -> List[Participant]:
        return self._rows(self._request("GET", {"select": "*", "order": "timestamp.desc"}))

    def fetch_participant_photo(self, row_id: RowId) -> Optional[str]:
        body = self._request("GET", {"select": "photo_base64", "id": f"eq.{row_id}"})
        if isinstance(body, list) and body and isinstance(body[0], dict):
            return body[0].get("photo_base64")
        return None

    def subscribe_to_team_changes(self, team_id: str, on_change: ChangeHandler) -> Subscription:
        raise SubscriptionUnavailable("Change feed is not available over the REST gateway")

    def subscribe_to_all_changes(self, on_change: ChangeHandler) -> Subscription:
        raise SubscriptionUnavailable("Change feed is not available over the REST gateway")
