# chatrooms/api/routes/rooms.py

from typing import List, Optional

from fastapi import APIRouter, Depends

from chatrooms.api.deps import get_current_account, get_optional_account, get_state
from chatrooms.api.routes.utils import broadcast_room_event
from chatrooms.core.state import AppState
from chatrooms.models.models import (
    Account,
    CreatePublicRoomRequest,
    CreateRoomRequest,
    JoinRoomRequest,
    Membership,
    RoomView,
)

router = APIRouter(prefix="/rooms", tags=["Rooms"])

# ============================================================================
# ROOM ENDPOINTS
# ============================================================================

@router.get("", response_model=List[RoomView])
async def list_rooms(state: AppState = Depends(get_state)):
    """List all rooms, oldest first. Password digests are never returned."""
    return [room.to_view() for room in await state.rooms.list_rooms()]


@router.post("", response_model=RoomView)
async def create_public_room(
    body: CreatePublicRoomRequest,
    state: AppState = Depends(get_state),
    account: Optional[Account] = Depends(get_optional_account),
):
    """Create a public room. Anyone may do this; signed-in creators become owner."""
    room = await state.rooms.create_public_room(body.name, account)
    return room.to_view()


@router.post("/private")
async def create_private_room(
    body: CreateRoomRequest,
    state: AppState = Depends(get_state),
    account: Account = Depends(get_current_account),
):
    """
    Create a private room protected by a 4-digit password.

    When no password is supplied one is generated. The plain password is
    returned once in this response so the owner can share it.
    """
    password = body.password or state.rooms.hasher.generate_password()
    room = await state.rooms.create_room(body.name, password, account)
    return {"room": room.to_view(), "password": password}


@router.get("/{room_id}", response_model=RoomView)
async def get_room(room_id: str, state: AppState = Depends(get_state)):
    room = await state.rooms.get_room(room_id)
    return room.to_view()


@router.post("/{room_id}/join", response_model=Membership)
async def join_room(
    room_id: str,
    body: JoinRoomRequest,
    state: AppState = Depends(get_state),
    account: Optional[Account] = Depends(get_optional_account),
):
    """Join a private room with its password. Joining again is a no-op."""
    return await state.rooms.join_room(room_id, body.password, account)


@router.post("/{room_id}/leave")
async def leave_room(
    room_id: str,
    state: AppState = Depends(get_state),
    account: Account = Depends(get_current_account),
):
    """Leave a private room. Realtime subscriptions to it end as well."""
    left = await state.rooms.leave_room(room_id, account)
    # Local sockets first so they are dropped even if the publish fails
    await state.connection_manager.unsubscribe_account(room_id, account.id)
    await broadcast_room_event(
        state, room_id, {"type": "member_left", "room_id": room_id, "user_id": account.id}
    )
    return {"status": "left" if left else "not_member", "room_id": room_id}


@router.get("/{room_id}/membership")
async def membership(
    room_id: str,
    state: AppState = Depends(get_state),
    account: Optional[Account] = Depends(get_optional_account),
):
    room = await state.rooms.get_room(room_id)
    return {
        "room_id": room.id,
        "is_member": await state.rooms.is_member(room.id, account),
        "is_owner": account is not None and room.owner_id == account.id,
    }
