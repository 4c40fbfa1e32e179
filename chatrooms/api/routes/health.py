# chatrooms/api/routes/health.py

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from chatrooms.api.deps import get_state
from chatrooms.core.state import AppState

router = APIRouter()


@router.get("/health")
async def health(state: AppState = Depends(get_state)):
    """
    Health check endpoint.

    Returns the configured backends, uptime and realtime connection counts.
    Used by container health checks and monitoring.
    """
    uptime = (datetime.now(timezone.utc) - state.started_at).total_seconds()
    return {
        "status": "healthy",
        "data_store": state.settings.DATA_STORE,
        "auth_provider": state.settings.AUTH_PROVIDER,
        "pub_sub": state.settings.PUB_SUB_SERVICE,
        "uptime_seconds": round(uptime, 1),
        **state.connection_manager.stats(),
    }
