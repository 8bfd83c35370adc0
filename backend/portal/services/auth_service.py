from __future__ import annotations

import hmac
import logging
from typing import Dict, Mapping, Optional, Tuple

from portal.core.config import Settings
from portal.core.errors import InvalidCredentials

logger = logging.getLogger(__name__)


def _split(entry: str) -> Optional[Tuple[str, str]]:
    subject, sep, password = entry.partition(":")
    if not sep or not subject:
        return None
    return subject, password


def _check(table: Mapping[str, str], username: str, password: str) -> Optional[str]:
    entry = table.get(username)
    if entry is None:
        return None
    parsed = _split(entry)
    if parsed is None:
        logger.warning("Ignoring malformed credential entry for %s", username)
        return None
    subject, expected = parsed
    if not hmac.compare_digest(expected.encode("utf-8"), password.encode("utf-8")):
        return None
    return subject


def login(settings: Settings, username: str, password: str) -> Dict[str, str]:
    """Resolve a username/password against the configured team and admin tables.

    Team entries look like ``"Chamba:secret"`` and admin entries ``"admin:secret"``.
    """
    username = (username or "").strip()
    password = password or ""
    team_id = _check(settings.team_credentials, username, password)
    if team_id is not None:
        logger.info("Team login for %s", team_id)
        return {"type": "team", "teamId": team_id}
    role = _check(settings.admin_credentials, username, password)
    if role is not None:
        logger.info("Admin login (%s)", role)
        return {"type": "admin", "role": role}
    raise InvalidCredentials("Invalid credentials")
