"""
Session manager implementation.

Owns the token pair and the cached user. Every operation resolves to a
SessionSuccess or SessionFailure; exceptions from the store or the auth
client are translated at this boundary.

Refresh is single-flight: while one refresh is in flight every caller awaits
the same task. Results of network calls that finish after the session has
moved on (logout, or a new login) are discarded.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Optional, TypeVar

from shared.exceptions import LifelineError
from shared.models import Clock, utc_now
from shared.scheduler import PeriodicTask

from .exceptions import (
    AuthNetworkError,
    InvalidRefreshTokenError,
    NoTokenError,
    ServerRejectedError,
    SessionExpiredError,
    SessionStoreError,
)
from .interfaces import IAuthClient, ISessionStore
from .models import (
    AuthState,
    CachedUser,
    LoginCredentials,
    SessionErrorKind,
    SessionFailure,
    SessionInfo,
    SessionResult,
    SessionSuccess,
    TokenPair,
)
from .tokens import decode_expiry, seconds_until_expiry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionManager:
    """
    Session lifecycle over an injected store and auth client.

    Args:
        store: Where the token pair, cached user and auth state live.
        auth_client: The remote auth service.
        cache_ttl_seconds: How long a verified cached user is trusted
            without asking the server again.
        max_session_age_days: A persisted session last confirmed longer ago
            than this is discarded at initialize.
        refresh_threshold_seconds: The background check refreshes once the
            access token has less than this left.
        refresh_check_interval_seconds: How often the background check runs.
        clock: Source of the current time.
    """

    def __init__(
        self,
        store: ISessionStore,
        auth_client: IAuthClient,
        cache_ttl_seconds: int = 300,
        max_session_age_days: int = 30,
        refresh_threshold_seconds: int = 900,
        refresh_check_interval_seconds: int = 300,
        clock: Clock = utc_now,
    ):
        self._store = store
        self._auth = auth_client
        self._cache_ttl = timedelta(seconds=cache_ttl_seconds)
        self._max_session_age = timedelta(days=max_session_age_days)
        self._refresh_threshold = refresh_threshold_seconds
        self._clock = clock

        self._tokens: Optional[TokenPair] = None
        self._user: Optional[CachedUser] = None
        self._auth_state: Optional[AuthState] = None
        self._tokens_issued_at: Optional[datetime] = None

        self._refresh_task: Optional[asyncio.Task] = None
        # Bumped whenever the session identity changes; in-flight results
        # captured under an older generation are dropped.
        self._generation = 0

        self._monitor = PeriodicTask(
            "session-refresh-check",
            refresh_check_interval_seconds,
            self.check_token_lifetime,
        )

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def is_authenticated(self) -> bool:
        return (
            self._tokens is not None
            and self._user is not None
            and self._auth_state is not None
            and self._auth_state.verified
        )

    @property
    def user(self) -> Optional[CachedUser]:
        return self._user

    @property
    def tokens(self) -> Optional[TokenPair]:
        return self._tokens

    @property
    def auth_state(self) -> Optional[AuthState]:
        return self._auth_state

    @property
    def is_refreshing(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    def get_access_token(self) -> str:
        """Return the current access token or raise NoTokenError."""
        if self._tokens is None or not self._tokens.access_token:
            raise NoTokenError()
        return self._tokens.access_token

    def get_session_info(self) -> Optional[SessionInfo]:
        if not self.is_authenticated:
            return None
        now = self._clock()
        return SessionInfo(
            user_id=self._user.id,
            authenticated_at=self._auth_state.timestamp,
            session_expires_at=self._auth_state.timestamp + self._max_session_age,
            access_token_expires_at=decode_expiry(self._tokens.access_token),
            seconds_until_token_expiry=self._remaining_token_lifetime(now),
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self) -> SessionResult:
        """
        Restore the persisted session.

        A verified cached user younger than the cache TTL is trusted without a
        network call. Otherwise the token is verified with the auth service,
        with a single refresh attempt if the server rejects it.
        """
        tokens = await self._store.load_tokens()
        if tokens is None:
            logger.debug("No persisted session found")
            await self._clear_local()
            return SessionFailure(
                error=SessionErrorKind.NO_TOKEN,
                message="No persisted session",
            )

        user = await self._store.load_user()
        state = await self._store.load_auth_state()
        now = self._clock()

        if state is not None and now - state.timestamp > self._max_session_age:
            logger.info("Persisted session older than %s, discarding", self._max_session_age)
            await self._clear_local()
            return SessionFailure(
                error=SessionErrorKind.SESSION_EXPIRED,
                message="Session expired, please sign in again",
                forced_logout=True,
            )

        self._tokens = tokens
        self._tokens_issued_at = state.timestamp if state else now

        if self._is_cache_fresh(user, state, now):
            self._user = user
            self._auth_state = state
            logger.debug("Trusting cached user %s without server check", user.id)
            return SessionSuccess(user=user, tokens=tokens, from_cache=True)

        return await self.check_auth_status()

    def _is_cache_fresh(
        self,
        user: Optional[CachedUser],
        state: Optional[AuthState],
        now: datetime,
    ) -> bool:
        if user is None or state is None or not state.verified:
            return False
        return now - state.timestamp < self._cache_ttl

    async def check_auth_status(self) -> SessionResult:
        """
        Verify the stored access token with the auth service.

        Success refreshes the cached user and the auth-state timestamp. A
        rejection is followed by exactly one refresh; if that fails the
        session is cleared. Network failures leave the state untouched.
        """
        tokens = self._tokens or await self._store.load_tokens()
        if tokens is None:
            return SessionFailure(
                error=SessionErrorKind.NO_TOKEN,
                message="No session token available",
            )
        self._tokens = tokens

        result = await self._verify(tokens)
        if not isinstance(result, ServerRejectedError):
            return result

        logger.info("Access token rejected, attempting one refresh")
        refreshed = await self.refresh()
        if isinstance(refreshed, SessionFailure):
            if refreshed.error == SessionErrorKind.NO_TOKEN:
                await self._force_logout("Access token rejected and no refresh token stored")
                return SessionFailure(
                    error=SessionErrorKind.SESSION_EXPIRED,
                    message="Session expired, please sign in again",
                    forced_logout=True,
                )
            return refreshed
        if refreshed.user is not None:
            return refreshed

        # The refresh did not carry a profile and none was cached.
        result = await self._verify(refreshed.tokens)
        if isinstance(result, ServerRejectedError):
            await self._force_logout("Session rejected after refresh")
            return SessionFailure(
                error=SessionErrorKind.SERVER_REJECTED,
                message=result.message,
                forced_logout=True,
            )
        return result

    async def _verify(self, tokens: TokenPair) -> SessionResult | ServerRejectedError:
        generation = self._generation
        try:
            profile = await self._auth.verify_token(tokens.access_token)
        except ServerRejectedError as e:
            return e
        except AuthNetworkError as e:
            logger.warning("Could not reach auth service to verify session: %s", e.message)
            if self._user is None:
                self._user = await self._store.load_user()
                self._auth_state = await self._store.load_auth_state()
            return SessionFailure(error=SessionErrorKind.NETWORK_ERROR, message=e.message)

        if generation != self._generation:
            return self._discarded()

        try:
            user = CachedUser.from_profile(profile)
        except ValueError as e:
            return SessionFailure(error=SessionErrorKind.SERVER_REJECTED, message=str(e))

        return await self._persist(user, tokens)

    async def login(
        self,
        user: CachedUser | dict[str, Any],
        tokens: TokenPair | dict[str, Any] | None,
    ) -> SessionResult:
        """
        Establish a session from an issued token pair.

        Calling it again with the same user and tokens leaves the same state.
        """
        if isinstance(tokens, dict):
            tokens = TokenPair.model_validate(tokens)
        if tokens is None or not tokens.access_token:
            logger.warning("Login attempted without an access token")
            return SessionFailure(
                error=SessionErrorKind.INVALID_CREDENTIALS,
                message="Access token is required",
            )

        try:
            cached = CachedUser.from_profile(user)
        except ValueError as e:
            return SessionFailure(error=SessionErrorKind.INVALID_CREDENTIALS, message=str(e))

        self._generation += 1

        result = await self._persist(cached, tokens, issued=True)
        if isinstance(result, SessionSuccess):
            logger.info("User %s logged in", cached.id)
        return result

    async def login_with_credentials(self, credentials: LoginCredentials) -> SessionResult:
        """Log in through the auth service, then establish the session."""
        try:
            response = await self._auth.login(credentials)
        except ServerRejectedError as e:
            return SessionFailure(error=SessionErrorKind.INVALID_CREDENTIALS, message=e.message)
        except AuthNetworkError as e:
            return SessionFailure(error=SessionErrorKind.NETWORK_ERROR, message=e.message)
        return await self.login(response.user, response.tokens)

    async def logout(self) -> SessionResult:
        """Tell the server (best effort) and clear the local session."""
        tokens = self._tokens
        user_id = self._user.id if self._user else None
        self._generation += 1

        try:
            await self._auth.logout(tokens.access_token if tokens else None)
        except LifelineError as e:
            logger.warning("Logout notification to auth service failed: %s", e.message)

        await self._clear_local()
        logger.info("User %s logged out", user_id)
        return SessionSuccess()

    async def update_user(self, updates: dict[str, Any]) -> SessionResult:
        """Merge profile updates into the cached user."""
        if self._user is None:
            return SessionFailure(error=SessionErrorKind.NO_TOKEN, message="Not signed in")
        self._user = self._user.merged(updates)
        await self._store.save_user(self._user)
        return SessionSuccess(user=self._user, tokens=self._tokens)

    # -------------------------------------------------------------------------
    # Refresh
    # -------------------------------------------------------------------------

    async def refresh(self, join: bool = True) -> SessionResult:
        """
        Exchange the refresh token for a new token pair.

        Concurrent callers share one network call and one outcome. With
        join=False a caller that finds a refresh in flight gets a
        REFRESH_IN_PROGRESS failure instead of waiting.
        """
        if self._refresh_task is not None and not self._refresh_task.done():
            if not join:
                return SessionFailure(
                    error=SessionErrorKind.REFRESH_IN_PROGRESS,
                    message="Token refresh already in progress",
                )
            logger.debug("Joining in-flight refresh")
        else:
            self._refresh_task = asyncio.create_task(self._run_refresh())
        return await asyncio.shield(self._refresh_task)

    async def _run_refresh(self) -> SessionResult:
        generation = self._generation
        tokens = self._tokens or await self._store.load_tokens()
        if tokens is None or not tokens.refresh_token:
            return SessionFailure(
                error=SessionErrorKind.NO_TOKEN,
                message="No refresh token available",
            )

        try:
            response = await self._auth.refresh_token(tokens.refresh_token)
        except AuthNetworkError as e:
            logger.warning("Token refresh failed on the network, keeping session: %s", e.message)
            return SessionFailure(error=SessionErrorKind.NETWORK_ERROR, message=e.message)
        except (InvalidRefreshTokenError, ServerRejectedError) as e:
            if generation == self._generation:
                await self._force_logout(e.message)
            return SessionFailure(
                error=SessionErrorKind.SESSION_EXPIRED,
                message="Session expired, please sign in again",
                forced_logout=True,
            )

        if generation != self._generation:
            return self._discarded()

        new_tokens = TokenPair(
            access_token=response.access_token,
            refresh_token=response.refresh_token or tokens.refresh_token,
            expires_in=response.expires_in,
        )
        user = self._user or await self._store.load_user()
        if response.user:
            try:
                user = CachedUser.from_profile(response.user)
            except ValueError:
                logger.debug("Ignoring refresh profile without an id")

        if user is None:
            await self._store.save_tokens(new_tokens)
            self._tokens = new_tokens
            self._tokens_issued_at = self._clock()
            return SessionSuccess(tokens=new_tokens)

        result = await self._persist(user, new_tokens, issued=True)
        if isinstance(result, SessionSuccess):
            logger.info("Tokens refreshed for user %s", user.id)
        return result

    async def check_token_lifetime(self) -> Optional[SessionResult]:
        """
        Refresh proactively when the access token is close to expiry.

        Runs from the background monitor. Returns the refresh outcome, or None
        when no refresh was needed.
        """
        if not self.is_authenticated or self.is_refreshing:
            return None
        remaining = self._remaining_token_lifetime(self._clock())
        if remaining is None or remaining >= self._refresh_threshold:
            return None
        logger.info("Access token expires in %.0fs, refreshing", remaining)
        return await self.refresh(join=False)

    def _remaining_token_lifetime(self, now: datetime) -> Optional[float]:
        if self._tokens is None:
            return None
        return seconds_until_expiry(
            self._tokens.access_token,
            now,
            issued_at=self._tokens_issued_at,
            expires_in=self._tokens.expires_in,
        )

    async def request_with_refresh(
        self,
        operation: Callable[[str], Awaitable[T]],
    ) -> T:
        """
        Run an authenticated call, refreshing at most once on rejection.

        The operation receives the access token and signals an auth rejection
        by raising ServerRejectedError. After one refresh the operation is
        retried; a second rejection propagates to the caller.

        Raises:
            NoTokenError: If there is no session
            SessionExpiredError: If the refresh failed authoritatively
            AuthNetworkError: If the refresh could not reach the server
        """
        token = self.get_access_token()
        try:
            return await operation(token)
        except ServerRejectedError:
            logger.info("Request rejected with current token, refreshing once")

        result = await self.refresh()
        if isinstance(result, SessionFailure):
            if result.error == SessionErrorKind.NETWORK_ERROR:
                raise AuthNetworkError(result.message)
            raise SessionExpiredError()
        return await operation(result.tokens.access_token)

    # -------------------------------------------------------------------------
    # Background monitor
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start the background token lifetime check."""
        self._monitor.start()

    async def shutdown(self) -> None:
        """
        Stop the background check.

        An in-flight refresh is left to finish so rotated tokens are not lost.
        """
        await self._monitor.stop()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _persist(
        self,
        user: CachedUser,
        tokens: TokenPair,
        issued: bool = False,
    ) -> SessionResult:
        now = self._clock()
        state = AuthState(timestamp=now, verified=True)
        try:
            await self._store.save_tokens(tokens)
            await self._store.save_user(user)
            await self._store.save_auth_state(state)
        except SessionStoreError as e:
            logger.error("Failed to persist session: %s", e.message)
            return SessionFailure(error=SessionErrorKind.STORE_ERROR, message=e.message)

        self._tokens = tokens
        self._user = user
        self._auth_state = state
        if issued or self._tokens_issued_at is None:
            self._tokens_issued_at = now
        return SessionSuccess(user=user, tokens=tokens)

    async def _force_logout(self, reason: str) -> None:
        logger.error("Forcing logout: %s", reason)
        self._generation += 1
        await self._clear_local()

    async def _clear_local(self) -> None:
        self._tokens = None
        self._user = None
        self._auth_state = None
        self._tokens_issued_at = None
        try:
            await self._store.clear()
        except SessionStoreError as e:
            logger.error("Failed to clear persisted session: %s", e.message)

    @staticmethod
    def _discarded() -> SessionFailure:
        logger.debug("Discarding result for a session that has ended")
        return SessionFailure(
            error=SessionErrorKind.SESSION_EXPIRED,
            message="Session changed while the request was in flight",
        )
