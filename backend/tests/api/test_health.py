"""Tests for health check endpoints."""

import pytest
from fastapi.testclient import TestClient
from unittest.mock import MagicMock

from api import app
from api.dependencies import get_notification_manager, get_session_manager


client = TestClient(app)


@pytest.fixture
def managers():
    session = MagicMock(is_authenticated=False)
    notifications = MagicMock(is_syncing=False, is_online=True)
    app.dependency_overrides[get_session_manager] = lambda: session
    app.dependency_overrides[get_notification_manager] = lambda: notifications
    yield session, notifications
    app.dependency_overrides.clear()


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_health_check(self):
        """Health endpoint should return 200 with status."""
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == "0.1.0"

    def test_health_response_structure(self):
        """Health response should have correct structure."""
        response = client.get("/api/health")
        data = response.json()
        assert set(data.keys()) == {"status", "version"}

    def test_readiness_check(self, managers):
        """Readiness endpoint should report session and sync state."""
        response = client.get("/api/ready")
        assert response.status_code == 200
        data = response.json()
        assert data == {"status": "ready", "session": "anonymous", "notification_sync": "idle"}

    def test_readiness_authenticated_and_syncing(self, managers):
        session, notifications = managers
        session.is_authenticated = True
        notifications.is_syncing = True

        data = client.get("/api/ready").json()

        assert data["session"] == "authenticated"
        assert data["notification_sync"] == "syncing"

    def test_readiness_offline(self, managers):
        _, notifications = managers
        notifications.is_online = False

        assert client.get("/api/ready").json()["notification_sync"] == "offline"
