"""
Session module.

Manages the bearer token pair, the cached user snapshot and the auth state,
with single-flight refresh and a cache-trust window.

Public API:
- ISessionManager, ISessionStore, IAuthClient: Interfaces
- SessionManager: The manager implementation
- InMemorySessionStore, FileSessionStore: Stores
- HttpAuthClient: Auth service client
- TokenPair, CachedUser, AuthState: Models
- SessionSuccess, SessionFailure, SessionErrorKind: Operation results
"""

from .interfaces import ISessionManager, ISessionStore, IAuthClient
from .models import (
    TokenPair,
    CachedUser,
    AuthState,
    SessionInfo,
    SessionErrorKind,
    SessionSuccess,
    SessionFailure,
    SessionResult,
    LoginCredentials,
)
from .exceptions import (
    SessionError,
    NoTokenError,
    InvalidRefreshTokenError,
    ServerRejectedError,
    SessionExpiredError,
    AuthNetworkError,
)
from .store import InMemorySessionStore, FileSessionStore
from .client import HttpAuthClient
from .service import SessionManager

__all__ = [
    # Interfaces
    "ISessionManager",
    "ISessionStore",
    "IAuthClient",
    # Implementations
    "SessionManager",
    "InMemorySessionStore",
    "FileSessionStore",
    "HttpAuthClient",
    # Models
    "TokenPair",
    "CachedUser",
    "AuthState",
    "SessionInfo",
    "SessionErrorKind",
    "SessionSuccess",
    "SessionFailure",
    "SessionResult",
    "LoginCredentials",
    # Exceptions
    "SessionError",
    "NoTokenError",
    "InvalidRefreshTokenError",
    "ServerRejectedError",
    "SessionExpiredError",
    "AuthNetworkError",
]
