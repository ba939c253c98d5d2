"""Wires configuration, authentication and storage into a tracker."""

from __future__ import annotations

import logging
from typing import Optional

from .api_client import SupabaseClient
from .auth import AuthManager
from .config import AppConfig, load_config
from .database import create_sqlite_engine, make_session_factory
from .storage import HobbyStore, LocalHobbyStore, RemoteHobbyStore
from .tracking import HobbyTracker

logger = logging.getLogger(__name__)


def create_supabase_client(config: AppConfig) -> SupabaseClient:
    if not config.supabase_url or not config.supabase_anon_key:
        raise ValueError("HOBBYTRACK_SUPABASE_URL and HOBBYTRACK_SUPABASE_ANON_KEY are required")
    return SupabaseClient(config.supabase_url, config.supabase_anon_key, timeout=config.http_timeout)


def create_store(config: AppConfig, client: Optional[SupabaseClient] = None) -> HobbyStore:
    if config.is_remote:
        return RemoteHobbyStore(client or create_supabase_client(config))
    engine = create_sqlite_engine(config.sqlite_path)
    return LocalHobbyStore(make_session_factory(engine))


def create_tracker(config: Optional[AppConfig] = None,
                   auth: Optional[AuthManager] = None) -> tuple[HobbyTracker, Optional[AuthManager]]:
    """Build the tracker for the configured storage.

    In remote mode an :class:`AuthManager` sharing the store's HTTP client is
    created (or the given one reused) and a stored access token is restored.
    Local mode has no user and returns ``None`` for the auth manager.
    """

    config = config or load_config()
    if config.is_remote:
        if auth is None:
            auth = AuthManager(create_supabase_client(config))
            auth.restore_session(config.access_token)
        store = create_store(config, auth.client)
        user_id_provider = lambda: auth.current_user_id
    else:
        store = create_store(config)
        auth = None
        user_id_provider = lambda: None

    logger.info("Using %s hobby storage", config.storage)
    tracker = HobbyTracker(
        store,
        user_id_provider,
        tick_interval=config.tick_interval,
        rank_refresh_interval=config.rank_refresh_seconds,
    )
    return tracker, auth


__all__ = ["create_store", "create_supabase_client", "create_tracker"]
