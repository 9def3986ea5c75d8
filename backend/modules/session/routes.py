"""
Session API endpoints.

Every endpoint returns the tagged SessionResult; failures also set an HTTP
status so plain HTTP clients can branch without reading the body.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from api.dependencies import get_session_manager

from .models import (
    AuthState,
    CachedUser,
    LoginCredentials,
    SessionErrorKind,
    SessionFailure,
    SessionInfo,
    SessionResult,
    TokenPair,
)
from .service import SessionManager

router = APIRouter()

FAILURE_STATUS = {
    SessionErrorKind.NO_TOKEN: 401,
    SessionErrorKind.INVALID_CREDENTIALS: 401,
    SessionErrorKind.INVALID_REFRESH_TOKEN: 401,
    SessionErrorKind.SERVER_REJECTED: 401,
    SessionErrorKind.SESSION_EXPIRED: 401,
    SessionErrorKind.REFRESH_IN_PROGRESS: 409,
    SessionErrorKind.NETWORK_ERROR: 503,
    SessionErrorKind.STORE_ERROR: 500,
}


class SessionStatusResponse(BaseModel):
    """Current session as seen by the rest of the app."""

    authenticated: bool
    refreshing: bool
    user: Optional[CachedUser] = None
    auth_state: Optional[AuthState] = None
    info: Optional[SessionInfo] = None


class LoginRequest(BaseModel):
    """
    Either an issued token pair with its user, or credentials for the auth
    service.
    """

    user: Optional[dict[str, Any]] = None
    tokens: Optional[TokenPair] = None
    credentials: Optional[LoginCredentials] = None


def _respond(result: SessionResult, response: Response) -> SessionResult:
    if isinstance(result, SessionFailure):
        response.status_code = FAILURE_STATUS.get(result.error, 400)
    return result


@router.get("", response_model=SessionStatusResponse)
async def get_session(
    manager: SessionManager = Depends(get_session_manager),
) -> SessionStatusResponse:
    """Report whether a session is established and for whom."""
    return SessionStatusResponse(
        authenticated=manager.is_authenticated,
        refreshing=manager.is_refreshing,
        user=manager.user,
        auth_state=manager.auth_state,
        info=manager.get_session_info(),
    )


@router.post("/login", response_model=SessionResult)
async def login(
    request: LoginRequest,
    response: Response,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionResult:
    """Establish a session from issued tokens or from credentials."""
    if request.credentials is not None:
        result = await manager.login_with_credentials(request.credentials)
    else:
        result = await manager.login(request.user or {}, request.tokens)
    return _respond(result, response)


@router.post("/logout", response_model=SessionResult)
async def logout(
    manager: SessionManager = Depends(get_session_manager),
) -> SessionResult:
    return await manager.logout()


@router.post("/refresh", response_model=SessionResult)
async def refresh(
    response: Response,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionResult:
    """Exchange the refresh token; joins a refresh already in flight."""
    return _respond(await manager.refresh(), response)


@router.patch("/user", response_model=SessionResult)
async def update_user(
    updates: dict[str, Any],
    response: Response,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionResult:
    """Merge profile updates into the cached user."""
    return _respond(await manager.update_user(updates), response)
