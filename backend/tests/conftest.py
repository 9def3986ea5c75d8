"""
Shared test fixtures and utilities.

This module provides common test infrastructure used across all test modules.
"""

import pytest
from datetime import datetime, timezone, timedelta
from typing import Optional
import jwt  # PyJWT

from api.dependencies import reset_container
from shared.config import get_settings


# Test JWT secret (only for testing). The session manager never checks
# signatures, so any key works.
TEST_JWT_SECRET = "test-secret-key-for-testing-only"

T0 = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def create_test_token(
    user_id: str = "u1",
    issued_at: datetime = T0,
    lifetime: Optional[timedelta] = timedelta(hours=1),
) -> str:
    """
    Create a test JWT access token.

    Args:
        user_id: Subject of the token
        issued_at: iat claim
        lifetime: Time until exp; None leaves the exp claim out

    Returns:
        JWT token string
    """
    payload = {"sub": user_id, "iat": int(issued_at.timestamp())}
    if lifetime is not None:
        payload["exp"] = int((issued_at + lifetime).timestamp())
    return jwt.encode(payload, TEST_JWT_SECRET, algorithm="HS256")


class FakeClock:
    """Controllable clock; call it to read, advance() to move time."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset the service container and settings cache around each test."""
    reset_container()
    get_settings.cache_clear()
    yield
    reset_container()
    get_settings.cache_clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def access_token() -> str:
    return create_test_token()


@pytest.fixture
def token_factory():
    """Return create_test_token for tests that need several tokens."""
    return create_test_token
