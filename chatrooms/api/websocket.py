# chatrooms/api/websocket.py

from __future__ import annotations

import json
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from chatrooms.api.deps import COOKIE_NAME, get_ws_state
from chatrooms.core.errors import NotMember, RoomAccessError
from chatrooms.core.logging import get_logger
from chatrooms.core.state import AppState

logger = get_logger(__name__)

router = APIRouter()

# ============================================================================
# WEBSOCKET ENDPOINT
# ============================================================================

async def _subscribe(state: AppState, websocket: WebSocket, room_id: Optional[str]) -> None:
    if not room_id:
        await websocket.send_json({"type": "error", "message": "room_id required"})
        return
    account = state.connection_manager.account_for(websocket)
    try:
        room = await state.rooms.get_room(room_id)
        if not await state.rooms.can_read(room, account):
            raise NotMember("Join this private room before subscribing")
    except RoomAccessError as e:
        await websocket.send_json({"type": "error", "error": e.code, "message": e.message})
        return

    count = state.connection_manager.subscribe(websocket, room.id)
    await websocket.send_json(
        {"type": "subscribed", "room": room.to_view().model_dump(mode="json"), "subscribers": count}
    )


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: Optional[str] = None):
    """
    Realtime room events.

    Protocol:
    =========

    Client -> Server Actions:
    -------------------------
    Subscribe:
        {"action": "subscribe", "room_id": "uuid-123"}
        Response: {"type": "subscribed", "room": {...}, "subscribers": 3}

    Unsubscribe:
        {"action": "unsubscribe", "room_id": "uuid-123"}
        Response: {"type": "unsubscribed", "room_id": "uuid-123"}

    Ping:
        {"action": "ping"}
        Response: {"type": "pong"}

    Server -> Client Messages:
    -------------------------
        {"type": "message", "message": {...}}
        {"type": "history_cleared", "room_id": "uuid-123"}
        {"type": "messages_deleted", "room_id": "uuid-123", "user_id": "..."}
        {"type": "member_left", "room_id": "uuid-123", "user_id": "..."}
        {"type": "unsubscribed", "room_id": "uuid-123"}  (after leaving the room)
        {"type": "error", "message": "..."}

    The session token comes from the ``token`` query parameter or the
    session cookie. Private rooms require membership to subscribe; messages
    are sent through the REST API, not over this socket.
    """
    state = get_ws_state(websocket)
    account = await state.identity.current_account(token or websocket.cookies.get(COOKIE_NAME))
    await state.connection_manager.connect(websocket, account)

    try:
        while True:
            data = await websocket.receive_text()

            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue
            if not isinstance(message, dict):
                await websocket.send_json({"type": "error", "message": "Expected a JSON object"})
                continue

            action = message.get("action")
            logger.debug(f"Websocket input: Action: {action}")

            if action == "subscribe":
                await _subscribe(state, websocket, message.get("room_id"))

            elif action == "unsubscribe":
                room_id = message.get("room_id")
                if room_id:
                    state.connection_manager.unsubscribe(websocket, room_id)
                    await websocket.send_json({"type": "unsubscribed", "room_id": room_id})

            elif action == "ping":
                await websocket.send_json({"type": "pong"})

            else:
                await websocket.send_json(
                    {
                        "type": "error",
                        "message": f"Unknown action: {action}",
                    }
                )

    except WebSocketDisconnect:
        state.connection_manager.disconnect(websocket)
    except Exception as e:
        logger.error("WebSocket error: %s", e)
        state.connection_manager.disconnect(websocket)
