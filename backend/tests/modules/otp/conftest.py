"""
Pytest fixtures for OTP module tests.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from modules.otp.models import OTPRequestResponse, OTPVerifyResponse
from modules.otp.service import OTPVerificationController


@pytest.fixture
def otp_client() -> AsyncMock:
    """OTP service that sends codes and rejects every verification."""
    client = AsyncMock()
    client.request_otp.return_value = OTPRequestResponse(success=True, message="OTP sent")
    client.verify_otp.return_value = OTPVerifyResponse(success=False, message="Invalid OTP")
    return client


@pytest.fixture
def on_close() -> MagicMock:
    return MagicMock()


@pytest.fixture
def make_controller(otp_client, on_close, clock):
    def _make(**kwargs) -> OTPVerificationController:
        kwargs.setdefault("close_delay_seconds", 0.01)
        return OTPVerificationController(
            client=otp_client, on_close=on_close, clock=clock, **kwargs
        )

    return _make


@pytest.fixture
def controller(make_controller) -> OTPVerificationController:
    return make_controller()
