# chatrooms/services/history_settings.py

from __future__ import annotations

from datetime import timedelta
from typing import Optional

from chatrooms.core.errors import StoreFailure, Unauthenticated
from chatrooms.core.logging import get_logger
from chatrooms.models.models import Account, UserSettings
from chatrooms.services.data_store import Collection, DataStore, StoreError, UniqueViolation, utcnow

logger = get_logger(__name__)


class HistorySettingsService:
    """
    Per-account history preferences and the auto-clear they drive.

    An account with ``auto_clear_history`` on has its own messages older
    than ``clear_after_days`` removed from every room, either on request or
    by the periodic cleanup task.
    """

    def __init__(self, store: DataStore):
        self.store = store

    async def get_settings(self, acting: Optional[Account]) -> UserSettings:
        if acting is None:
            raise Unauthenticated("Authentication required")
        row = await self._call(self.store.select_one(Collection.SETTINGS, {"user_id": acting.id}))
        if row is None:
            return UserSettings(user_id=acting.id)
        return UserSettings(**row)

    async def save_settings(
        self, acting: Optional[Account], auto_clear_history: bool, clear_after_days: int
    ) -> UserSettings:
        """Insert or replace the caller's settings row."""
        if acting is None:
            raise Unauthenticated("Authentication required")
        patch = {
            "auto_clear_history": auto_clear_history,
            "clear_after_days": clear_after_days,
            "updated_at": utcnow(),
        }

        rows = await self._call(self.store.update(Collection.SETTINGS, {"user_id": acting.id}, patch))
        if not rows:
            try:
                rows = [await self.store.insert(Collection.SETTINGS, {"user_id": acting.id, **patch})]
            except UniqueViolation:
                # Lost a race with a concurrent first save
                rows = await self._call(
                    self.store.update(Collection.SETTINGS, {"user_id": acting.id}, patch)
                )
            except StoreError as e:
                raise StoreFailure(str(e)) from e

        logger.info(f"Saved history settings for {acting.id}")
        return UserSettings(**rows[0])

    async def auto_clear(self, acting: Optional[Account]) -> int:
        """Apply the caller's auto-clear setting now. Returns messages deleted."""
        settings = await self.get_settings(acting)
        return await self._clear_expired(settings)

    async def auto_clear_all(self) -> int:
        """Apply auto-clear for every account that enabled it."""
        rows = await self._call(
            self.store.select(Collection.SETTINGS, {"auto_clear_history": True})
        )
        total = 0
        for row in rows:
            total += await self._clear_expired(UserSettings(**row))
        if total:
            logger.info(f"Auto-cleared {total} old message(s)")
        return total

    async def _clear_expired(self, settings: UserSettings) -> int:
        if not settings.auto_clear_history:
            return 0
        cutoff = utcnow() - timedelta(days=settings.clear_after_days or 30)
        return await self._call(
            self.store.delete(
                Collection.MESSAGES,
                {"user_id": settings.user_id},
                older_than=("timestamp", cutoff),
            )
        )

    @staticmethod
    async def _call(awaitable):
        try:
            return await awaitable
        except StoreError as e:
            raise StoreFailure(str(e)) from e
