# chatrooms/api/routes/history.py

from fastapi import APIRouter, Depends

from chatrooms.api.deps import get_current_account, get_state
from chatrooms.core.state import AppState
from chatrooms.models.models import Account, UpdateSettingsRequest, UserSettings

router = APIRouter(tags=["History"])


@router.delete("/messages/mine")
async def clear_all_own_messages(
    state: AppState = Depends(get_state),
    account: Account = Depends(get_current_account),
):
    """Delete the caller's own messages in every room."""
    deleted = await state.rooms.clear_all_own_messages(account)
    return {"status": "cleared", "deleted": deleted}


@router.get("/settings", response_model=UserSettings)
async def get_settings(
    state: AppState = Depends(get_state),
    account: Account = Depends(get_current_account),
):
    return await state.history.get_settings(account)


@router.put("/settings", response_model=UserSettings)
async def save_settings(
    body: UpdateSettingsRequest,
    state: AppState = Depends(get_state),
    account: Account = Depends(get_current_account),
):
    return await state.history.save_settings(
        account, body.auto_clear_history, body.clear_after_days
    )


@router.post("/settings/auto-clear")
async def auto_clear(
    state: AppState = Depends(get_state),
    account: Account = Depends(get_current_account),
):
    """Run the caller's auto-clear now. A no-op when it is switched off."""
    deleted = await state.history.auto_clear(account)
    return {"status": "ok", "deleted": deleted}
