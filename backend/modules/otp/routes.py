"""
OTP API endpoints.

Thin wrappers over the OTP controller. Results are the tagged OTPResult;
failures also set an HTTP status.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, ConfigDict, Field

from api.dependencies import get_otp_controller

from .models import OTPErrorKind, OTPFailure, OTPPurpose, OTPResult, OTPState
from .service import OTPVerificationController

router = APIRouter()

FAILURE_STATUS = {
    OTPErrorKind.EMPTY_IDENTIFIER: 422,
    OTPErrorKind.INVALID_FORMAT: 422,
    OTPErrorKind.NOT_REQUESTED: 409,
    OTPErrorKind.REQUEST_IN_PROGRESS: 409,
    OTPErrorKind.VERIFICATION_IN_PROGRESS: 409,
    OTPErrorKind.RESEND_NOT_ALLOWED: 409,
    OTPErrorKind.CLOSED: 409,
    OTPErrorKind.REJECTED: 400,
    OTPErrorKind.ATTEMPTS_EXHAUSTED: 429,
    OTPErrorKind.EXPIRED: 410,
    OTPErrorKind.NETWORK_ERROR: 503,
}


class OpenRequest(BaseModel):
    phone_number: str = Field(..., alias="phoneNumber")
    purpose: OTPPurpose = OTPPurpose.VERIFICATION
    auto_request: bool = Field(True, alias="autoRequest")

    model_config = ConfigDict(populate_by_name=True)


class CodeRequest(BaseModel):
    phone_number: Optional[str] = Field(None, alias="phoneNumber")
    purpose: Optional[OTPPurpose] = None

    model_config = ConfigDict(populate_by_name=True)


class VerifyRequest(BaseModel):
    otp: str


def _respond(result: OTPResult, response: Response) -> OTPResult:
    if isinstance(result, OTPFailure):
        response.status_code = FAILURE_STATUS.get(result.error, 400)
    return result


@router.get("", response_model=OTPState)
async def get_state(
    controller: OTPVerificationController = Depends(get_otp_controller),
) -> OTPState:
    return controller.get_state()


@router.post("/open", response_model=OTPResult)
async def open_verification(
    request: OpenRequest,
    response: Response,
    controller: OTPVerificationController = Depends(get_otp_controller),
) -> OTPResult:
    """Start a fresh verification, requesting a code unless autoRequest is false."""
    result = await controller.open(
        request.phone_number, request.purpose.value, auto_request=request.auto_request
    )
    return _respond(result, response)


@router.post("/request", response_model=OTPResult)
async def request_code(
    request: CodeRequest,
    response: Response,
    controller: OTPVerificationController = Depends(get_otp_controller),
) -> OTPResult:
    purpose = request.purpose.value if request.purpose else None
    return _respond(await controller.request(request.phone_number, purpose), response)


@router.post("/verify", response_model=OTPResult)
async def verify_code(
    request: VerifyRequest,
    response: Response,
    controller: OTPVerificationController = Depends(get_otp_controller),
) -> OTPResult:
    return _respond(await controller.verify(request.otp), response)


@router.post("/resend", response_model=OTPResult)
async def resend_code(
    response: Response,
    controller: OTPVerificationController = Depends(get_otp_controller),
) -> OTPResult:
    return _respond(await controller.resend(), response)


@router.post("/close", status_code=204)
async def close_verification(
    controller: OTPVerificationController = Depends(get_otp_controller),
) -> None:
    controller.close()
