# chatrooms/api/routes/messages.py

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from chatrooms.api.deps import get_current_account, get_optional_account, get_state
from chatrooms.api.routes.utils import broadcast_room_event
from chatrooms.core.state import AppState
from chatrooms.models.models import Account, Message, SendMessageRequest

router = APIRouter(prefix="/rooms/{room_id}/messages", tags=["Messages"])


@router.get("", response_model=List[Message])
async def get_messages(
    room_id: str,
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    state: AppState = Depends(get_state),
    account: Optional[Account] = Depends(get_optional_account),
):
    """Latest messages of a room, oldest first. Private rooms need membership."""
    return await state.rooms.get_messages(room_id, account, limit=limit)


@router.post("", response_model=Message)
async def send_message(
    room_id: str,
    body: SendMessageRequest,
    state: AppState = Depends(get_state),
    account: Optional[Account] = Depends(get_optional_account),
):
    """
    Store a message and push it to everyone subscribed to the room.

    Anonymous senders are accepted in public rooms only. The stored message
    is returned even when the realtime push fails.
    """
    message = await state.rooms.send_message(
        room_id,
        body.content,
        account,
        display_name=body.user_name,
        avatar=body.user_avatar,
        attachments=body.attachments,
    )
    await broadcast_room_event(
        state, room_id, {"type": "message", "message": message.model_dump(mode="json")}
    )
    return message


@router.delete("")
async def clear_history(
    room_id: str,
    state: AppState = Depends(get_state),
    account: Account = Depends(get_current_account),
):
    """Delete every message in the room. Owner only."""
    deleted = await state.rooms.clear_history(room_id, account)
    await broadcast_room_event(state, room_id, {"type": "history_cleared", "room_id": room_id})
    return {"status": "cleared", "room_id": room_id, "deleted": deleted}


@router.delete("/mine")
async def clear_own_messages(
    room_id: str,
    state: AppState = Depends(get_state),
    account: Account = Depends(get_current_account),
):
    """Delete the caller's own messages in this room."""
    deleted = await state.rooms.clear_own_messages(room_id, account)
    await broadcast_room_event(
        state,
        room_id,
        {"type": "messages_deleted", "room_id": room_id, "user_id": account.id},
    )
    return {"status": "cleared", "room_id": room_id, "deleted": deleted}
