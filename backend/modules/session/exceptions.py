"""
Session module exceptions.

Raised by the auth client and the session store. The session manager
catches them and reports a SessionFailure instead of propagating.
"""

from typing import Optional

from shared.exceptions import (
    LifelineError,
    AuthenticationError,
    ExternalServiceError,
)


class SessionError(LifelineError):
    """Base exception for session-related errors."""

    pass


class NoTokenError(AuthenticationError):
    """Raised when an operation needs a token and none is stored."""

    def __init__(self, message: str = "No session token available"):
        super().__init__(message, code="NO_TOKEN")


class InvalidRefreshTokenError(AuthenticationError):
    """Raised when the auth service refuses a refresh token."""

    def __init__(self, message: str = "Refresh token is invalid or expired"):
        super().__init__(message, code="INVALID_REFRESH_TOKEN")


class ServerRejectedError(AuthenticationError):
    """Raised when the auth service rejects the access token (401/403)."""

    def __init__(
        self,
        message: str = "Session rejected by server",
        status_code: Optional[int] = None,
    ):
        super().__init__(
            message,
            code="SERVER_REJECTED",
            details={"status_code": status_code} if status_code else None,
        )
        self.status_code = status_code


class SessionExpiredError(AuthenticationError):
    """Raised when the session could not be renewed and the user must sign in again."""

    def __init__(self, message: str = "Session expired, please sign in again"):
        super().__init__(message, code="SESSION_EXPIRED")


class AuthNetworkError(ExternalServiceError):
    """Raised when the auth service cannot be reached."""

    def __init__(self, message: str):
        super().__init__(message, service="auth", code="NETWORK_ERROR")


class SessionStoreError(SessionError):
    """Raised when the persisted session cannot be read or written."""

    def __init__(self, message: str):
        super().__init__(message, code="SESSION_STORE_ERROR")
