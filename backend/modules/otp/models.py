"""
OTP module data models.

An OTPSession tracks one code window for an identifier and purpose. Every
controller operation resolves to an OTPSuccess or an OTPFailure.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from modules.session.models import TokenPair


class OTPPurpose(str, Enum):
    """What the one-time code is being used for."""

    REGISTRATION = "registration"
    LOGIN = "login"
    VERIFICATION = "verification"
    PASSWORD_RESET = "password_reset"


PURPOSE_TEXTS: dict[str, str] = {
    OTPPurpose.REGISTRATION.value: "complete your registration",
    OTPPurpose.LOGIN.value: "log into your account",
    OTPPurpose.VERIFICATION.value: "verify your phone number",
    OTPPurpose.PASSWORD_RESET.value: "reset your password",
}

# Purposes whose successful verification establishes a session.
SESSION_PURPOSES = frozenset({OTPPurpose.LOGIN.value, OTPPurpose.REGISTRATION.value})


def describe_purpose(purpose: Optional[str]) -> str:
    """Human-readable description of a purpose; unknown purposes read as verification."""
    return PURPOSE_TEXTS.get(purpose or "", PURPOSE_TEXTS[OTPPurpose.VERIFICATION.value])


class OTPPhase(str, Enum):
    """Where the controller is in the request/verify protocol."""

    IDLE = "idle"
    REQUESTING = "requesting"
    REQUESTED = "requested"
    VERIFYING = "verifying"
    VERIFIED = "verified"
    FAILED = "failed"
    EXPIRED = "expired"
    CLOSED = "closed"


class OTPSession(BaseModel):
    """One code window for an identifier and purpose."""

    identifier: str
    purpose: str = OTPPurpose.VERIFICATION.value
    requested_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    remaining_attempts: int = 3
    verified: bool = False
    entered_code: str = ""


class OTPState(BaseModel):
    """Read-only view of the controller for display."""

    phase: OTPPhase
    identifier: Optional[str] = Field(None, description="Masked identifier")
    purpose: Optional[str] = None
    purpose_text: Optional[str] = None
    remaining_attempts: int = 0
    seconds_remaining: Optional[int] = None
    verified: bool = False
    is_requesting: bool = False
    is_verifying: bool = False


class OTPErrorKind(str, Enum):
    """Why an OTP operation failed."""

    EMPTY_IDENTIFIER = "EMPTY_IDENTIFIER"
    REQUEST_IN_PROGRESS = "REQUEST_IN_PROGRESS"
    NOT_REQUESTED = "NOT_REQUESTED"
    INVALID_FORMAT = "INVALID_FORMAT"
    VERIFICATION_IN_PROGRESS = "VERIFICATION_IN_PROGRESS"
    REJECTED = "REJECTED"
    ATTEMPTS_EXHAUSTED = "ATTEMPTS_EXHAUSTED"
    EXPIRED = "EXPIRED"
    NETWORK_ERROR = "NETWORK_ERROR"
    RESEND_NOT_ALLOWED = "RESEND_NOT_ALLOWED"
    CLOSED = "CLOSED"


class OTPSuccess(BaseModel):
    """An OTP operation succeeded."""

    kind: Literal["success"] = "success"
    message: str
    already_verified: bool = False
    session_established: bool = False
    expires_at: Optional[datetime] = None
    data: dict[str, Any] = Field(default_factory=dict)


class OTPFailure(BaseModel):
    """An OTP operation failed."""

    kind: Literal["error"] = "error"
    error: OTPErrorKind
    message: str
    remaining_attempts: Optional[int] = None


OTPResult = Annotated[
    Union[OTPSuccess, OTPFailure],
    Field(discriminator="kind"),
]


class OTPRequestResponse(BaseModel):
    """Answer of the OTP service to a code request."""

    success: bool
    message: str = ""


class OTPVerifyResponse(BaseModel):
    """Answer of the OTP service to a verification."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    message: str = ""
    remaining_attempts: Optional[int] = None
    tokens: Optional[TokenPair] = None
    user: Optional[dict[str, Any]] = None
    data: dict[str, Any] = Field(default_factory=dict)
