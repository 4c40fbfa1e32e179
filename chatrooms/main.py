# chatrooms/main.py

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager, suppress
from datetime import timedelta
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chatrooms.api import websocket as websocket_module
from chatrooms.api.routes import auth, health, history, messages, rooms, root
from chatrooms.core.config import Settings, get_settings
from chatrooms.core.errors import RoomAccessError
from chatrooms.core.logging import get_logger, setup_logging
from chatrooms.core.state import AppState, build_state

# Configure logging first
setup_logging()
logger = get_logger(__name__)


async def run_cleanup(state: AppState) -> None:
    """One cleanup pass: public-room retention, then per-account auto-clear."""
    max_age = timedelta(hours=state.settings.PUBLIC_MESSAGE_RETENTION_HOURS)
    try:
        await state.rooms.cleanup_public_messages(max_age)
    except Exception as e:
        logger.error(f"Public message cleanup failed: {e}")
    try:
        await state.history.auto_clear_all()
    except Exception as e:
        logger.error(f"History auto-clear failed: {e}")


async def periodic_cleanup(state: AppState) -> None:
    """Background task that runs a cleanup pass every interval."""
    interval = state.settings.CLEANUP_INTERVAL_SECONDS
    while True:
        await asyncio.sleep(interval)
        await run_cleanup(state)


async def room_access_error_handler(request: Request, exc: RoomAccessError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.code},
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    state = build_state(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("🚀 Application starting - private rooms enabled")
        await state.broadcaster.start()
        await state.rooms.ensure_default_rooms()

        cleanup_task = None
        if settings.CLEANUP_INTERVAL_SECONDS > 0:
            cleanup_task = asyncio.create_task(periodic_cleanup(state))
        try:
            yield
        finally:
            if cleanup_task:
                cleanup_task.cancel()
                with suppress(asyncio.CancelledError):
                    await cleanup_task
            await state.close()
            logger.info("Application stopped")

    app = FastAPI(title="Private Chatrooms", lifespan=lifespan)
    app.state.chat = state

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RoomAccessError, room_access_error_handler)

    # REST routes
    app.include_router(root.router)
    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(rooms.router)
    app.include_router(messages.router)
    app.include_router(history.router)

    # WebSocket routes
    app.include_router(websocket_module.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("chatrooms.main:app", host="0.0.0.0", port=8000)
