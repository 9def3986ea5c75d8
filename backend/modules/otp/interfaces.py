"""
OTP module interfaces.
"""

from typing import Optional, Protocol, runtime_checkable

from .models import OTPRequestResponse, OTPResult, OTPState, OTPVerifyResponse


@runtime_checkable
class IOTPClient(Protocol):
    """
    Contract of the remote OTP service.

    Rejections come back as responses with success=False. Only transport
    failures raise (OTPNetworkError).
    """

    async def request_otp(self, identifier: str, purpose: str) -> OTPRequestResponse:
        ...

    async def verify_otp(self, identifier: str, code: str, purpose: str) -> OTPVerifyResponse:
        ...


@runtime_checkable
class IOTPController(Protocol):
    """Interface for the OTP verification flow."""

    async def open(
        self, identifier: str, purpose: str, auto_request: bool = True
    ) -> OTPResult:
        """Start a fresh verification, optionally requesting a code at once."""
        ...

    async def request(
        self, identifier: Optional[str] = None, purpose: Optional[str] = None
    ) -> OTPResult:
        ...

    async def verify(self, code: str) -> OTPResult:
        ...

    async def resend(self) -> OTPResult:
        ...

    def expire(self) -> bool:
        ...

    def close(self) -> None:
        ...

    def get_state(self) -> OTPState:
        ...
