# chatrooms/api/routes/utils.py

from __future__ import annotations

from chatrooms.core.logging import get_logger
from chatrooms.core.state import AppState

logger = get_logger(__name__)


async def broadcast_room_event(state: AppState, room_id: str, event: dict) -> bool:
    """
    Push an event to everyone subscribed to ``room_id``.

    Called after the change is already stored, so a failed publish is
    logged and reported as False instead of failing the request.
    """
    try:
        await state.broadcaster.broadcast_to_room(room_id, event)
    except Exception as e:
        logger.error(f"Broadcast of '{event.get('type')}' to room {room_id} failed: {e}")
        return False
    return True
