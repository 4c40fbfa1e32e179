# chatrooms/models/models.py
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class RoomKind(str, Enum):
    public = "public"
    private = "private"


class Room(BaseModel):
    """
    A chat room as persisted in the store.

    ``password_hash`` is set if and only if the room is private, and
    ``owner_id`` only when an authenticated account created it.
    """

    id: str
    name: str
    type: RoomKind
    owner_id: Optional[str] = None
    password_hash: Optional[str] = None
    created_by_authenticated_user: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_view(self) -> "RoomView":
        return RoomView(**self.model_dump(exclude={"password_hash"}))


class RoomView(BaseModel):
    """Room without its password digest, safe to hand to clients."""

    id: str
    name: str
    type: RoomKind
    owner_id: Optional[str] = None
    created_by_authenticated_user: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Membership(BaseModel):
    id: str
    room_id: str
    user_id: str
    joined_at: Optional[datetime] = None


class Attachment(BaseModel):
    name: str
    type: str = "application/octet-stream"
    size: int = 0
    url: Optional[str] = None


class Message(BaseModel):
    id: str
    room_id: str
    user_id: Optional[str] = None
    user_name: str
    user_avatar: Optional[str] = None
    content: str = ""
    attachments: List[Attachment] = Field(default_factory=list)
    timestamp: datetime
    created_at: Optional[datetime] = None


class Account(BaseModel):
    id: str
    email: str
    display_name: str
    avatar_url: Optional[str] = None


class Session(BaseModel):
    access_token: str
    account: Account


# ============================================================================
# REQUEST BODIES
# ============================================================================

class CreateRoomRequest(BaseModel):
    name: str
    # Generated server-side when omitted
    password: Optional[str] = None


class CreatePublicRoomRequest(BaseModel):
    name: str


class JoinRoomRequest(BaseModel):
    password: str


class SendMessageRequest(BaseModel):
    content: str = ""
    user_name: Optional[str] = None
    user_avatar: Optional[str] = None
    attachments: List[Attachment] = Field(default_factory=list)


class SignInRequest(BaseModel):
    email: str
    password: str


class SignUpRequest(BaseModel):
    email: str
    password: str
    display_name: Optional[str] = None


class UpdateProfileRequest(BaseModel):
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None


# ============================================================================
# HISTORY SETTINGS
# ============================================================================

class UserSettings(BaseModel):
    """Per-account history preferences. Defaults apply until first saved."""

    user_id: str
    auto_clear_history: bool = False
    clear_after_days: int = 30
    updated_at: Optional[datetime] = None


class UpdateSettingsRequest(BaseModel):
    auto_clear_history: bool
    clear_after_days: int = Field(default=30, ge=1, le=365)
