# chatrooms/services/room_access.py

from __future__ import annotations

from datetime import timedelta
from typing import List, Optional

from chatrooms.core.errors import (
    Forbidden,
    InvalidCredential,
    InvalidRequest,
    NotFound,
    NotMember,
    StoreFailure,
    Unauthenticated,
    WrongRoomKind,
)
from chatrooms.core.logging import get_logger
from chatrooms.models.models import Account, Attachment, Membership, Message, Room, RoomKind
from chatrooms.services.data_store import Collection, DataStore, StoreError, UniqueViolation, utcnow
from chatrooms.services.hasher import CredentialHasher

logger = get_logger(__name__)

DEFAULT_PUBLIC_ROOM = "Public Room"
ANONYMOUS_NAME = "Anonymous"
# Stored in messages.user_id for anonymous senders (the column is NOT NULL)
ANONYMOUS_USER_ID = "anonymous"


# ============================================================================
# ROOM ACCESS SERVICE
# ============================================================================
class RoomAccessService:
    """
    Room creation, password admission and owner-gated history clearing.

    The service holds no state of its own; every operation is a short chain
    of awaited store calls, each depending on the previous one. Concurrent
    admissions to the same room are arbitrated by the store's uniqueness
    constraint on (room_id, user_id).

    Private rooms always require an authenticated account. Public rooms
    accept anonymous senders.

    Usage:
        service = RoomAccessService(InMemoryDataStore(), CredentialHasher())
        room = await service.create_room("Vault", "4821", alice)
        await service.join_room(room.id, "4821", bob)
    """

    def __init__(
        self,
        store: DataStore,
        hasher: CredentialHasher,
        history_limit: int = 100,
    ):
        self.store = store
        self.hasher = hasher
        self.history_limit = history_limit

    # ------------------------------------------------------------------
    # Rooms
    # ------------------------------------------------------------------
    async def get_room(self, room_id: str) -> Room:
        row = await self._call(self.store.select_one(Collection.ROOMS, {"id": room_id}))
        if row is None:
            raise NotFound(f"Room not found: {room_id}")
        return Room(**row)

    async def list_rooms(self) -> List[Room]:
        rows = await self._call(self.store.select(Collection.ROOMS, order_by="created_at"))
        return [Room(**r) for r in rows]

    async def create_room(self, name: str, password: str, acting: Optional[Account]) -> Room:
        """
        Create a private room owned by ``acting`` and admit the creator.

        The room insert and the creator's membership insert are two store
        calls. If the second one fails, the room is deleted again before the
        error is raised, so no ownerless-member private room is left behind.
        """
        if acting is None:
            raise Unauthenticated("Authentication required to create private rooms")
        name = self._clean_name(name)
        if not self.hasher.is_valid_password(password):
            raise InvalidCredential("Password must be exactly 4 digits")

        row = await self._call(
            self.store.insert(
                Collection.ROOMS,
                {
                    "name": name,
                    "type": RoomKind.private.value,
                    "password_hash": self.hasher.digest(password),
                    "owner_id": acting.id,
                    "created_by_authenticated_user": True,
                },
            )
        )
        room = Room(**row)

        try:
            await self.store.insert(
                Collection.MEMBERSHIPS, {"room_id": room.id, "user_id": acting.id}
            )
        except UniqueViolation:
            pass
        except StoreError as e:
            logger.error(f"Creator membership failed for room {room.id}, rolling back: {e}")
            try:
                await self.store.delete(Collection.ROOMS, {"id": room.id})
            except StoreError as rollback_error:
                logger.error(f"Rollback of room {room.id} failed: {rollback_error}")
            raise StoreFailure(str(e)) from e

        logger.info(f"✓ Created private room '{room.name}' ({room.id}) for {acting.id}")
        return room

    async def create_public_room(self, name: str, acting: Optional[Account] = None) -> Room:
        name = self._clean_name(name)
        row = await self._call(
            self.store.insert(
                Collection.ROOMS,
                {
                    "name": name,
                    "type": RoomKind.public.value,
                    "password_hash": None,
                    "owner_id": acting.id if acting else None,
                    "created_by_authenticated_user": acting is not None,
                },
            )
        )
        room = Room(**row)
        logger.info(f"✓ Created public room '{room.name}' ({room.id})")
        return room

    async def ensure_default_rooms(self) -> None:
        """Seed the shared public room on first start."""
        existing = await self._call(
            self.store.select(Collection.ROOMS, {"type": RoomKind.public.value}, limit=1)
        )
        if not existing:
            await self.create_public_room(DEFAULT_PUBLIC_ROOM)

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------
    async def join_room(self, room_id: str, password: str, acting: Optional[Account]) -> Membership:
        """
        Admit ``acting`` to a private room after checking its password.

        Joining twice is not an error: the store's uniqueness violation on
        the second insert is treated as success and the existing membership
        is returned.
        """
        room = await self.get_room(room_id)
        if room.type != RoomKind.private:
            raise WrongRoomKind("Only private rooms can be joined with a password")
        if acting is None:
            raise Unauthenticated("Authentication required for private rooms")
        if not self.hasher.verify(password or "", room.password_hash):
            logger.info(f"✗ Wrong password for room {room_id} from {acting.id}")
            raise InvalidCredential("Invalid password")

        try:
            row = await self.store.insert(
                Collection.MEMBERSHIPS, {"room_id": room_id, "user_id": acting.id}
            )
        except UniqueViolation:
            row = await self._call(
                self.store.select_one(
                    Collection.MEMBERSHIPS, {"room_id": room_id, "user_id": acting.id}
                )
            )
            if row is None:
                raise StoreFailure("Membership reported as duplicate but not found")
        except StoreError as e:
            raise StoreFailure(str(e)) from e

        logger.info(f"→ {acting.id} admitted to '{room.name}'")
        return Membership(**row)

    async def is_member(self, room_id: str, acting: Optional[Account]) -> bool:
        if acting is None:
            return False
        row = await self._call(
            self.store.select_one(
                Collection.MEMBERSHIPS, {"room_id": room_id, "user_id": acting.id}
            )
        )
        return row is not None

    async def leave_room(self, room_id: str, acting: Optional[Account]) -> bool:
        """Drop the caller's own membership. Owners cannot leave their room."""
        if acting is None:
            raise Unauthenticated("Authentication required")
        room = await self.get_room(room_id)
        if room.owner_id == acting.id:
            raise Forbidden("Room owners cannot leave their own room")
        deleted = await self._call(
            self.store.delete(Collection.MEMBERSHIPS, {"room_id": room_id, "user_id": acting.id})
        )
        return deleted > 0

    async def can_read(self, room: Room, acting: Optional[Account]) -> bool:
        if room.type == RoomKind.public:
            return True
        return await self.is_member(room.id, acting)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------
    async def send_message(
        self,
        room_id: str,
        body: str,
        acting: Optional[Account] = None,
        display_name: Optional[str] = None,
        avatar: Optional[str] = None,
        attachments: Optional[List[Attachment]] = None,
    ) -> Message:
        room = await self.get_room(room_id)
        if room.type == RoomKind.private and not await self.is_member(room_id, acting):
            raise NotMember("Join this private room before sending messages")

        attachments = attachments or []
        if not (body or "").strip() and not attachments:
            raise InvalidRequest("Message must have content or attachments")

        user_name = display_name or (acting.display_name if acting else None) or ANONYMOUS_NAME
        if avatar is None and acting is not None:
            avatar = acting.avatar_url

        row = await self._call(
            self.store.insert(
                Collection.MESSAGES,
                {
                    "room_id": room_id,
                    "user_id": acting.id if acting else ANONYMOUS_USER_ID,
                    "user_name": user_name,
                    "user_avatar": avatar,
                    "content": body or "",
                    "attachments": [a.model_dump() for a in attachments],
                    "timestamp": utcnow(),
                },
            )
        )
        return self._to_message(row)

    async def get_messages(
        self, room_id: str, acting: Optional[Account] = None, limit: Optional[int] = None
    ) -> List[Message]:
        """Latest ``limit`` messages of a room, oldest first."""
        room = await self.get_room(room_id)
        if not await self.can_read(room, acting):
            raise NotMember("Join this private room to read its messages")

        rows = await self._call(
            self.store.select(
                Collection.MESSAGES,
                {"room_id": room_id},
                order_by="timestamp",
                descending=True,
                limit=limit or self.history_limit,
            )
        )
        return [self._to_message(r) for r in reversed(rows)]

    async def clear_history(self, room_id: str, acting: Optional[Account]) -> int:
        """Delete every message of the room. Only the owner may do this."""
        room = await self.get_room(room_id)
        if acting is None:
            raise Unauthenticated("Authentication required")
        if room.owner_id is None or room.owner_id != acting.id:
            raise Forbidden("Only the room owner can clear its history")

        deleted = await self._call(self.store.delete(Collection.MESSAGES, {"room_id": room_id}))
        logger.info(f"✓ Cleared {deleted} message(s) from '{room.name}'")
        return deleted

    async def clear_own_messages(self, room_id: str, acting: Optional[Account]) -> int:
        """Delete the caller's own messages in one room."""
        if acting is None:
            raise Unauthenticated("Authentication required")
        room = await self.get_room(room_id)
        deleted = await self._call(
            self.store.delete(Collection.MESSAGES, {"room_id": room.id, "user_id": acting.id})
        )
        logger.info(f"✓ {acting.id} cleared {deleted} own message(s) from '{room.name}'")
        return deleted

    async def clear_all_own_messages(self, acting: Optional[Account]) -> int:
        """Delete the caller's own messages in every room."""
        if acting is None:
            raise Unauthenticated("Authentication required")
        deleted = await self._call(self.store.delete(Collection.MESSAGES, {"user_id": acting.id}))
        logger.info(f"✓ {acting.id} cleared {deleted} own message(s) from all rooms")
        return deleted

    async def cleanup_public_messages(self, max_age: timedelta) -> int:
        """Remove public-room messages older than ``max_age``."""
        cutoff = utcnow() - max_age
        rooms = await self._call(
            self.store.select(Collection.ROOMS, {"type": RoomKind.public.value})
        )
        total = 0
        for room in rooms:
            total += await self._call(
                self.store.delete(
                    Collection.MESSAGES,
                    {"room_id": room["id"]},
                    older_than=("created_at", cutoff),
                )
            )
        if total:
            logger.info(f"Cleaned up {total} old public message(s)")
        return total

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _to_message(row: dict) -> Message:
        if row.get("user_id") == ANONYMOUS_USER_ID:
            row = {**row, "user_id": None}
        return Message(**row)

    @staticmethod
    def _clean_name(name: str) -> str:
        name = (name or "").strip()
        if not name:
            raise InvalidRequest("Room name required")
        return name

    @staticmethod
    async def _call(awaitable):
        """Await a store call, translating store errors to StoreFailure."""
        try:
            return await awaitable
        except StoreError as e:
            raise StoreFailure(str(e)) from e
