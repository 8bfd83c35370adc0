from __future__ import annotations

import logging
import threading
from functools import lru_cache
from typing import Dict, List, Optional

from portal.core.catalog import MeetCatalog, get_catalog
from portal.core.config import Settings, get_settings
from portal.core.errors import ConfigurationError
from portal.services.gateway import ParticipantGateway
from portal.services.local_store import LocalStore
from portal.services.memory_gateway import MemoryGateway
from portal.services.supabase_client import SupabaseGateway
from portal.services.team_session import TeamSession

logger = logging.getLogger(__name__)


def build_gateway(settings: Settings) -> ParticipantGateway:
    backend = settings.store_backend.lower()
    if backend == "memory":
        return MemoryGateway()
    if backend == "supabase":
        return SupabaseGateway(
            settings.supabase_url,
            settings.supabase_key,
            table=settings.supabase_table,
            timeout=settings.remote_timeout,
        )
    raise ConfigurationError(f"Unknown store backend '{settings.store_backend}' (expected memory or supabase)")


class SessionRegistry:
    """Keeps one mounted TeamSession per team for the lifetime of the process."""

    def __init__(self, gateway: ParticipantGateway, store: LocalStore, catalog: MeetCatalog) -> None:
        self.gateway = gateway
        self.store = store
        self.catalog = catalog
        self._sessions: Dict[str, TeamSession] = {}
        self._lock = threading.Lock()

    def get(self, team_id: str) -> TeamSession:
        with self._lock:
            session = self._sessions.get(team_id)
            if session is None:
                session = TeamSession(team_id, self.gateway, self.store, self.catalog)
                self._sessions[team_id] = session
                created = True
            else:
                created = False
        if created:
            logger.info("Mounting session for team %s", team_id)
            session.mount()
        return session

    def peek(self, team_id: str) -> Optional[TeamSession]:
        with self._lock:
            return self._sessions.get(team_id)

    def sessions(self) -> List[TeamSession]:
        with self._lock:
            return list(self._sessions.values())

    def tick_all(self) -> None:
        for session in self.sessions():
            session.tick()

    def close_all(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()


@lru_cache(maxsize=1)
def get_gateway() -> ParticipantGateway:
    return build_gateway(get_settings())


@lru_cache(maxsize=1)
def get_store() -> LocalStore:
    return LocalStore(get_settings().cache_dir)


@lru_cache(maxsize=1)
def get_registry() -> SessionRegistry:
    return SessionRegistry(get_gateway(), get_store(), get_catalog())


def reset_cache() -> None:
    """Drop the process-wide gateway, store and sessions so the next call rebuilds them."""
    if get_registry.cache_info().currsize:
        get_registry().close_all()
    get_registry.cache_clear()
    get_store.cache_clear()
    get_gateway.cache_clear()
