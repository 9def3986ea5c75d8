"""
OTP module.

One-time-code verification with bounded attempts, an expiry window and
idempotent success. Login and registration verifications hand the issued
tokens to the session manager.

Public API:
- IOTPController, IOTPClient: Interfaces
- OTPVerificationController: The controller implementation
- HttpOTPClient: OTP service client
- OTPSuccess, OTPFailure, OTPErrorKind: Operation results
"""

from .interfaces import IOTPController, IOTPClient
from .models import (
    OTPPurpose,
    OTPPhase,
    OTPSession,
    OTPState,
    OTPErrorKind,
    OTPSuccess,
    OTPFailure,
    OTPResult,
    OTPRequestResponse,
    OTPVerifyResponse,
    describe_purpose,
)
from .exceptions import OTPNetworkError
from .client import HttpOTPClient
from .service import OTPVerificationController

__all__ = [
    # Interfaces
    "IOTPController",
    "IOTPClient",
    # Implementations
    "OTPVerificationController",
    "HttpOTPClient",
    # Models
    "OTPPurpose",
    "OTPPhase",
    "OTPSession",
    "OTPState",
    "OTPErrorKind",
    "OTPSuccess",
    "OTPFailure",
    "OTPResult",
    "OTPRequestResponse",
    "OTPVerifyResponse",
    "describe_purpose",
    # Exceptions
    "OTPNetworkError",
]
