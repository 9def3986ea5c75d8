"""
Session store implementations.

Both stores keep the session under the same fixed keys, mirroring what a
browser client keeps in local storage:

    token         access token
    refreshToken  refresh token
    expiresIn     access token lifetime as issued, in seconds
    user          serialized CachedUser
    authState     {"timestamp": ..., "verified": ...}
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from .exceptions import SessionStoreError
from .models import AuthState, CachedUser, TokenPair

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "token"
REFRESH_TOKEN_KEY = "refreshToken"
EXPIRES_IN_KEY = "expiresIn"
USER_KEY = "user"
AUTH_STATE_KEY = "authState"

SESSION_KEYS = (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    EXPIRES_IN_KEY,
    USER_KEY,
    AUTH_STATE_KEY,
)


class InMemorySessionStore:
    """
    Session store kept in a dictionary.

    For testing and for hosts that do not need the session to outlive the
    process. FileSessionStore extends it with persistence.
    """

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    @property
    def is_empty(self) -> bool:
        return not any(key in self._data for key in SESSION_KEYS)

    def _get(self, key: str) -> Any:
        return self._data.get(key)

    def _set(self, values: dict[str, Any]) -> None:
        for key, value in values.items():
            if value is None:
                self._data.pop(key, None)
            else:
                self._data[key] = value
        self._flush()

    def _flush(self) -> None:
        """Hook for persistent subclasses."""
        pass

    async def load_tokens(self) -> Optional[TokenPair]:
        access_token = self._get(ACCESS_TOKEN_KEY)
        if not access_token:
            return None
        return TokenPair(
            access_token=access_token,
            refresh_token=self._get(REFRESH_TOKEN_KEY),
            expires_in=self._get(EXPIRES_IN_KEY),
        )

    async def save_tokens(self, tokens: TokenPair) -> None:
        self._set({
            ACCESS_TOKEN_KEY: tokens.access_token,
            REFRESH_TOKEN_KEY: tokens.refresh_token,
            EXPIRES_IN_KEY: tokens.expires_in,
        })

    async def load_user(self) -> Optional[CachedUser]:
        raw = self._get(USER_KEY)
        if not raw:
            return None
        try:
            return CachedUser.model_validate(raw)
        except PydanticValidationError:
            logger.warning("Discarding unreadable cached user")
            return None

    async def save_user(self, user: CachedUser) -> None:
        self._set({USER_KEY: user.model_dump(mode="json", by_alias=True)})

    async def load_auth_state(self) -> Optional[AuthState]:
        raw = self._get(AUTH_STATE_KEY)
        if not raw:
            return None
        try:
            return AuthState.model_validate(raw)
        except PydanticValidationError:
            logger.warning("Discarding unreadable auth state")
            return None

    async def save_auth_state(self, state: AuthState) -> None:
        self._set({AUTH_STATE_KEY: state.model_dump(mode="json")})

    async def clear(self) -> None:
        for key in SESSION_KEYS:
            self._data.pop(key, None)
        self._flush()


class FileSessionStore(InMemorySessionStore):
    """
    Session store persisted as a JSON document on disk.

    The whole document is rewritten on every change through a temporary
    file and os.replace, so a crash never leaves a half-written session.
    """

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self._path = Path(path)
        self._data = self._read()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Session file %s unreadable, starting empty: %s", self._path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _flush(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self._path.parent, prefix=".session-")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh)
            os.replace(tmp_path, self._path)
        except OSError as e:
            raise SessionStoreError(f"Failed to write session file: {e}") from e
