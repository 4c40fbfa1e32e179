# chatrooms/api/routes/root.py

from fastapi import APIRouter

from chatrooms import __version__

router = APIRouter()


@router.get("/")
async def root():
    """
    Root endpoint - API information.
    """
    return {
        "message": "Private Chatrooms",
        "version": __version__,
        "features": [
            "public_rooms",
            "private_rooms",
            "password_admission",
            "owner_history_clear",
            "history_auto_clear",
            "realtime",
        ],
        "endpoints": {
            "websocket": "/ws",
            "auth": "/auth",
            "rooms": "/rooms",
            "settings": "/settings",
            "health": "/health",
        },
    }
