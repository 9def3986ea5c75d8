"""
Tests for the OTP API endpoints.
"""

import pytest
from fastapi.testclient import TestClient

from api import app
from api.dependencies import get_otp_controller
from modules.otp.models import OTPVerifyResponse


@pytest.fixture
def client(make_controller):
    controller = make_controller(close_delay_seconds=60)
    app.dependency_overrides[get_otp_controller] = lambda: controller
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestOTPRoutes:
    def test_idle_state(self, client):
        response = client.get("/api/otp")

        assert response.status_code == 200
        assert response.json()["phase"] == "idle"

    def test_open_requests_code(self, client, otp_client):
        response = client.post(
            "/api/otp/open", json={"phoneNumber": "9999999999", "purpose": "login"}
        )

        assert response.status_code == 200
        assert response.json()["kind"] == "success"
        otp_client.request_otp.assert_awaited_once_with("9999999999", "login")

    def test_open_rejects_unknown_purpose(self, client):
        response = client.post(
            "/api/otp/open", json={"phoneNumber": "9999999999", "purpose": "banking"}
        )

        assert response.status_code == 422

    def test_request_without_identifier(self, client):
        response = client.post("/api/otp/request", json={})

        assert response.status_code == 422
        assert response.json()["error"] == "EMPTY_IDENTIFIER"

    def test_rejected_code(self, client):
        client.post("/api/otp/request", json={"phoneNumber": "9999999999", "purpose": "login"})

        response = client.post("/api/otp/verify", json={"otp": "000000"})

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "REJECTED"
        assert data["remaining_attempts"] == 2

    def test_malformed_code(self, client):
        response = client.post("/api/otp/verify", json={"otp": "12"})

        assert response.status_code == 422
        assert response.json()["error"] == "INVALID_FORMAT"

    def test_verified_code(self, client, otp_client):
        otp_client.verify_otp.return_value = OTPVerifyResponse(success=True, message="Verified")
        client.post("/api/otp/request", json={"phoneNumber": "9999999999"})

        response = client.post("/api/otp/verify", json={"otp": "123456"})

        assert response.status_code == 200
        assert response.json()["message"] == "Verified"
        assert client.get("/api/otp").json()["verified"] is True

    def test_resend(self, client, otp_client):
        client.post("/api/otp/request", json={"phoneNumber": "9999999999"})

        response = client.post("/api/otp/resend")

        assert response.status_code == 200
        assert otp_client.request_otp.await_count == 2

    def test_close(self, client, on_close):
        response = client.post("/api/otp/close")

        assert response.status_code == 204
        assert client.get("/api/otp").json()["phase"] == "closed"
        on_close.assert_called_once()
