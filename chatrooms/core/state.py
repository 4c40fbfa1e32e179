# chatrooms/core/state.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from chatrooms.core.config import Settings
from chatrooms.core.logging import get_logger
from chatrooms.services.auth_service import (
    IdentityProvider,
    LocalIdentityProvider,
    SupabaseIdentityProvider,
)
from chatrooms.services.broadcaster import Broadcaster, LocalBroadcaster, RedisBroadcaster
from chatrooms.services.connection_manager import ConnectionManager
from chatrooms.services.data_store import DataStore, InMemoryDataStore
from chatrooms.services.hasher import CredentialHasher
from chatrooms.services.history_settings import HistorySettingsService
from chatrooms.services.room_access import RoomAccessService
from chatrooms.services.supabase_store import SupabaseDataStore

logger = get_logger(__name__)


@dataclass
class AppState:
    """Everything a request handler needs, built once per application."""

    settings: Settings
    store: DataStore
    identity: IdentityProvider
    rooms: RoomAccessService
    connection_manager: ConnectionManager
    broadcaster: Broadcaster
    history: HistorySettingsService
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    async def close(self) -> None:
        await self.broadcaster.close()
        await self.identity.close()
        await self.store.close()


def build_store(settings: Settings) -> DataStore:
    if settings.DATA_STORE == "supabase":
        logger.info("Using Supabase data store")
        return SupabaseDataStore(
            settings.SUPABASE_URL, settings.SUPABASE_KEY, timeout=settings.STORE_TIMEOUT_SECONDS
        )
    if settings.DATA_STORE != "memory":
        raise ValueError(f"Unknown DATA_STORE: {settings.DATA_STORE}")
    logger.info("Using in-memory data store")
    return InMemoryDataStore()


def build_identity(settings: Settings, store: DataStore) -> IdentityProvider:
    if settings.AUTH_PROVIDER == "supabase":
        return SupabaseIdentityProvider(
            settings.SUPABASE_URL, settings.SUPABASE_KEY, timeout=settings.STORE_TIMEOUT_SECONDS
        )
    if settings.AUTH_PROVIDER != "local":
        raise ValueError(f"Unknown AUTH_PROVIDER: {settings.AUTH_PROVIDER}")
    return LocalIdentityProvider(store, settings.SESSION_SECRET, max_age=settings.SESSION_MAX_AGE)


def build_broadcaster(settings: Settings, connection_manager: ConnectionManager) -> Broadcaster:
    if settings.PUB_SUB_SERVICE == "redis":
        return RedisBroadcaster(connection_manager, settings.redis_url)
    if settings.PUB_SUB_SERVICE != "local":
        raise ValueError(f"Unknown PUB_SUB_SERVICE: {settings.PUB_SUB_SERVICE}")
    return LocalBroadcaster(connection_manager)


def build_state(settings: Settings) -> AppState:
    store = build_store(settings)
    connection_manager = ConnectionManager()
    return AppState(
        settings=settings,
        store=store,
        identity=build_identity(settings, store),
        rooms=RoomAccessService(
            store,
            CredentialHasher(settings.PASSWORD_SALT),
            history_limit=settings.MESSAGE_HISTORY_LIMIT,
        ),
        connection_manager=connection_manager,
        broadcaster=build_broadcaster(settings, connection_manager),
        history=HistorySettingsService(store),
    )
