"""Configuration utilities for the hobby tracker."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

STORAGE_LOCAL = "local"
STORAGE_REMOTE = "remote"

DEFAULT_SQLITE_PATH = "./data/hobbytrack.db"
DEFAULT_TICK_INTERVAL = 0.1
DEFAULT_RANK_REFRESH_SECONDS = 30.0
DEFAULT_HTTP_TIMEOUT = 15


@dataclass(slots=True)
class AppConfig:
    """Configuration values for the application."""

    storage: str = STORAGE_LOCAL
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    access_token: Optional[str] = None
    sqlite_path: Path = Path(DEFAULT_SQLITE_PATH)
    tick_interval: float = DEFAULT_TICK_INTERVAL
    rank_refresh_seconds: float = DEFAULT_RANK_REFRESH_SECONDS
    http_timeout: int = DEFAULT_HTTP_TIMEOUT

    @property
    def is_remote(self) -> bool:
        return self.storage == STORAGE_REMOTE


def load_config(env_path: Optional[Path] = None) -> AppConfig:
    """Load the configuration from the environment and an optional `.env` file."""

    env_path = env_path or Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    storage = os.getenv("HOBBYTRACK_STORAGE", STORAGE_LOCAL).strip().lower()
    if storage not in (STORAGE_LOCAL, STORAGE_REMOTE):
        raise ValueError(f"Unknown storage backend: {storage!r}")

    return AppConfig(
        storage=storage,
        supabase_url=os.getenv("HOBBYTRACK_SUPABASE_URL") or None,
        supabase_anon_key=os.getenv("HOBBYTRACK_SUPABASE_ANON_KEY") or None,
        access_token=os.getenv("HOBBYTRACK_ACCESS_TOKEN") or None,
        sqlite_path=Path(os.getenv("HOBBYTRACK_SQLITE_PATH", DEFAULT_SQLITE_PATH)),
        tick_interval=float(os.getenv("HOBBYTRACK_TICK_INTERVAL", DEFAULT_TICK_INTERVAL)),
        rank_refresh_seconds=float(os.getenv("HOBBYTRACK_RANK_REFRESH_SECONDS", DEFAULT_RANK_REFRESH_SECONDS)),
        http_timeout=int(os.getenv("HOBBYTRACK_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT)),
    )


__all__ = ["AppConfig", "STORAGE_LOCAL", "STORAGE_REMOTE", "load_config"]
