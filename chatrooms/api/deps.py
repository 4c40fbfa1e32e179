# chatrooms/api/deps.py

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request, WebSocket

from chatrooms.core.errors import Unauthenticated
from chatrooms.core.state import AppState
from chatrooms.models.models import Account

COOKIE_NAME = "session_token"


def get_state(request: Request) -> AppState:
    return request.app.state.chat


def get_ws_state(websocket: WebSocket) -> AppState:
    return websocket.app.state.chat


def token_from_request(request: Request) -> Optional[str]:
    """Session token from the Authorization header, falling back to the cookie."""
    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip() or None
    return request.cookies.get(COOKIE_NAME)


async def get_optional_account(
    request: Request, state: AppState = Depends(get_state)
) -> Optional[Account]:
    """Acting account, or None for anonymous callers."""
    return await state.identity.current_account(token_from_request(request))


async def get_current_account(
    account: Optional[Account] = Depends(get_optional_account),
) -> Account:
    """Use as dependency for endpoints that require a signed-in account."""
    if account is None:
        raise Unauthenticated("Not authenticated")
    return account
