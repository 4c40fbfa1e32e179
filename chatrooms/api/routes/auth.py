# chatrooms/api/routes/auth.py

from fastapi import APIRouter, Depends, Request, Response

from chatrooms.api.deps import COOKIE_NAME, get_current_account, get_state, token_from_request
from chatrooms.core.logging import get_logger
from chatrooms.core.state import AppState
from chatrooms.models.models import (
    Account,
    Session,
    SignInRequest,
    SignUpRequest,
    UpdateProfileRequest,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _set_session_cookie(response: Response, session: Session, state: AppState) -> None:
    response.set_cookie(
        key=COOKIE_NAME,
        value=session.access_token,
        httponly=True,
        secure=state.settings.COOKIE_SECURE,
        samesite="lax",
        max_age=state.settings.SESSION_MAX_AGE,
    )


@router.post("/signup", response_model=Session)
async def sign_up(body: SignUpRequest, response: Response, state: AppState = Depends(get_state)):
    """Create an account and start a session."""
    session = await state.identity.sign_up(body.email, body.password, body.display_name)
    _set_session_cookie(response, session, state)
    return session


@router.post("/login", response_model=Session)
async def sign_in(body: SignInRequest, response: Response, state: AppState = Depends(get_state)):
    session = await state.identity.sign_in(body.email, body.password)
    _set_session_cookie(response, session, state)
    return session


@router.post("/logout")
async def sign_out(request: Request, response: Response, state: AppState = Depends(get_state)):
    await state.identity.sign_out(token_from_request(request))
    response.delete_cookie(key=COOKIE_NAME)
    return {"status": "signed_out"}


@router.get("/me")
async def get_user_profile(current: Account = Depends(get_current_account)):
    """Get current user profile."""
    return {
        "authenticated": True,
        "user": current,
    }


@router.patch("/me", response_model=Account)
async def update_user_profile(
    body: UpdateProfileRequest,
    request: Request,
    state: AppState = Depends(get_state),
):
    """Edit the caller's display name or avatar."""
    return await state.identity.update_profile(
        token_from_request(request), display_name=body.display_name, avatar_url=body.avatar_url
    )
