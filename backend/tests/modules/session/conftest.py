"""
Pytest fixtures for session module tests.

The auth client is an AsyncMock; tests set return values or side effects
per method.
"""

import pytest
from unittest.mock import AsyncMock

from modules.session.models import RefreshResponse
from modules.session.service import SessionManager
from modules.session.store import InMemorySessionStore


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def auth_client() -> AsyncMock:
    client = AsyncMock()
    client.verify_token.return_value = {"_id": "u1", "email": "donor@example.com"}
    client.refresh_token.return_value = RefreshResponse(
        access_token="A2", refresh_token="R2", expires_in=3600
    )
    client.logout.return_value = None
    return client


@pytest.fixture
def manager(store, auth_client, clock) -> SessionManager:
    return SessionManager(store=store, auth_client=auth_client, clock=clock)


@pytest.fixture
def make_manager(store, auth_client, clock):
    """Build another manager over the same store, as after a restart."""

    def _make(**kwargs) -> SessionManager:
        return SessionManager(store=store, auth_client=auth_client, clock=clock, **kwargs)

    return _make
