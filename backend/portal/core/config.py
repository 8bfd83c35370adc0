from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    api_prefix: str = "/api/v1"
    cors_allow_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    # Local per-team cache (drafts, submitted rows, pending writes)
    cache_dir: Path = Field(default_factory=lambda: Path.cwd() / ".portal_cache")

    # "memory" keeps rows in-process; "supabase" talks to PostgREST
    store_backend: str = "memory"
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    supabase_table: str = "participants"
    remote_timeout: int = 10

    flush_interval_seconds: int = 60
    proxy_upstream_url: Optional[str] = None

    # username -> "teamId:password" / username -> "role:password"
    team_credentials: Dict[str, str] = Field(default_factory=dict)
    admin_credentials: Dict[str, str] = Field(default_factory=dict)

    class Config:
        env_prefix = "MEET_"
        env_file = ".env"
        case_sensitive = False


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
