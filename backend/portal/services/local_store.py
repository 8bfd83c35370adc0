from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, List

from pydantic import ValidationError

from portal.schemas.participant import DeleteRequest, Participant

logger = logging.getLogger(__name__)

DRAFTS = "drafts"
SUBMITTED = "submitted"
PENDING = "pending"
DEAD_LETTER = "dead_letter"


def _team_key(team_id: str) -> str:
    return re.sub(r"[^A-Za-z0-9_-]", "_", team_id) or "_"


class LocalStore:
    """Per-team JSON cache: drafts, submitted rows, pending writes, dead letters.

    Every list is stored in its own file so each can be loaded and saved
    independently. A missing file reads as an empty list; so does a corrupt one
    (after a warning), which means a damaged cache never blocks a session.
    """

    def __init__(self, cache_dir: Path) -> None:
        self.cache_dir = Path(cache_dir)

    def _path(self, team_id: str, kind: str) -> Path:
        return self.cache_dir / f"{_team_key(team_id)}.{kind}.json"

    def _read(self, path: Path) -> List[Any]:
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8") or "[]")
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring corrupt cache file %s: %s", path, exc)
            return []
        if not isinstance(data, list):
            logger.warning("Ignoring cache file %s: expected a list, got %s", path, type(data).__name__)
            return []
        return data

    def _write(self, path: Path, rows: List[Any]) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=str(self.cache_dir), prefix=path.name, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(rows, fh, ensure_ascii=False)
            os.replace(tmp, path)
        except Exception:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def _read_participants(self, team_id: str, kind: str) -> List[Participant]:
        rows: List[Participant] = []
        for item in self._read(self._path(team_id, kind)):
            try:
                rows.append(Participant.model_validate(item))
            except ValidationError as exc:
                logger.warning("Skipping unreadable %s row for team %s: %s", kind, team_id, exc)
        return rows

    def _write_participants(self, team_id: str, kind: str, rows: List[Participant]) -> None:
        self._write(self._path(team_id, kind), [r.to_api() for r in rows])

    def load_drafts(self, team_id: str) -> List[Participant]:
        return self._read_participants(team_id, DRAFTS)

    def save_drafts(self, team_id: str, rows: List[Participant]) -> None:
        self._write_participants(team_id, DRAFTS, rows)

    def load_submitted(self, team_id: str) -> List[Participant]:
        return self._read_participants(team_id, SUBMITTED)

    def save_submitted(self, team_id: str, rows: List[Participant]) -> None:
        self._write_participants(team_id, SUBMITTED, rows)

    def load_pending(self, team_id: str) -> List[Dict[str, Any]]:
        return [e for e in self._read(self._path(team_id, PENDING)) if isinstance(e, dict)]

    def save_pending(self, team_id: str, entries: List[Dict[str, Any]]) -> None:
        self._write(self._path(team_id, PENDING), entries)

    def load_dead_letters(self, team_id: str) -> List[Dict[str, Any]]:
        return [e for e in self._read(self._path(team_id, DEAD_LETTER)) if isinstance(e, dict)]

    def save_dead_letters(self, team_id: str, entries: List[Dict[str, Any]]) -> None:
        self._write(self._path(team_id, DEAD_LETTER), entries)

    def load_delete_requests(self) -> List[DeleteRequest]:
        requests: List[DeleteRequest] = []
        for item in self._read(self.cache_dir / "delete_requests.json"):
            try:
                requests.append(DeleteRequest.model_validate(item))
            except ValidationError as exc:
                logger.warning("Skipping unreadable delete request: %s", exc)
        return requests

    def save_delete_requests(self, requests: List[DeleteRequest]) -> None:
        self._write(self.cache_dir / "delete_requests.json", [r.to_api() for r in requests])

    def append_delete_request(self, request: DeleteRequest) -> None:
        requests = self.load_delete_requests()
        requests.append(request)
        self.save_delete_requests(requests)
