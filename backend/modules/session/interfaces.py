"""
Session module interfaces.

Other modules (the OTP controller, the HTTP layer) depend on ISessionManager,
not on the concrete manager. The store and the auth client are injected into
the manager through ISessionStore and IAuthClient.
"""

from typing import Any, Awaitable, Callable, Optional, Protocol, TypeVar, runtime_checkable

from .models import (
    AuthState,
    CachedUser,
    LoginCredentials,
    LoginResponse,
    RefreshResponse,
    SessionResult,
    TokenPair,
)

T = TypeVar("T")


@runtime_checkable
class ISessionStore(Protocol):
    """
    Persistence for the token pair, the cached user and the auth state.

    Implementations store each piece under a fixed key and must survive a
    process restart unless they are explicitly in-memory.
    """

    async def load_tokens(self) -> Optional[TokenPair]:
        """Return the stored token pair, or None when no access token is stored."""
        ...

    async def save_tokens(self, tokens: TokenPair) -> None:
        ...

    async def load_user(self) -> Optional[CachedUser]:
        ...

    async def save_user(self, user: CachedUser) -> None:
        ...

    async def load_auth_state(self) -> Optional[AuthState]:
        ...

    async def save_auth_state(self, state: AuthState) -> None:
        ...

    async def clear(self) -> None:
        """Remove every session key."""
        ...


@runtime_checkable
class IAuthClient(Protocol):
    """Contract of the remote auth service."""

    async def verify_token(self, access_token: str) -> dict[str, Any]:
        """
        Confirm the access token and return the current user profile.

        Raises:
            ServerRejectedError: If the token is rejected
            AuthNetworkError: If the service cannot be reached
        """
        ...

    async def refresh_token(self, refresh_token: str) -> RefreshResponse:
        """
        Exchange a refresh token for a new access token.

        Raises:
            InvalidRefreshTokenError: If the refresh token is refused
            AuthNetworkError: If the service cannot be reached
        """
        ...

    async def login(self, credentials: LoginCredentials) -> LoginResponse:
        ...

    async def logout(self, access_token: Optional[str]) -> None:
        ...


@runtime_checkable
class ISessionManager(Protocol):
    """Interface of the session manager as seen by the rest of the app."""

    @property
    def is_authenticated(self) -> bool:
        ...

    @property
    def user(self) -> Optional[CachedUser]:
        ...

    async def initialize(self) -> SessionResult:
        ...

    async def login(
        self,
        user: CachedUser | dict[str, Any],
        tokens: TokenPair | dict[str, Any] | None,
    ) -> SessionResult:
        ...

    async def logout(self) -> SessionResult:
        ...

    async def refresh(self) -> SessionResult:
        ...

    async def request_with_refresh(
        self,
        operation: Callable[[str], Awaitable[T]],
    ) -> T:
        ...
