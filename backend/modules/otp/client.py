"""
HTTP client for the remote OTP service.
"""

import logging
from typing import Any, Optional

import httpx

from shared.http import envelope_body, envelope_message

from .exceptions import OTPNetworkError
from .models import OTPRequestResponse, OTPVerifyResponse

logger = logging.getLogger(__name__)


class HttpOTPClient:
    """
    OTP service client over httpx.

    4xx answers (bad code, unknown OTP, rate limit) are returned as
    unsuccessful responses carrying the server message. Transport errors and
    5xx raise OTPNetworkError.
    """

    REQUEST_PATH = "/api/v1/otp/request"
    VERIFY_PATH = "/api/v1/otp/verify"

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        try:
            response = await self._client.post(path, json=payload)
        except httpx.HTTPError as e:
            raise OTPNetworkError(f"OTP service unreachable: {e}") from e
        if response.status_code >= 500:
            raise OTPNetworkError(
                envelope_message(response, f"OTP service error: HTTP {response.status_code}")
            )
        return response

    async def request_otp(self, identifier: str, purpose: str) -> OTPRequestResponse:
        response = await self._post(
            self.REQUEST_PATH, {"phoneNumber": identifier, "purpose": purpose}
        )
        body = envelope_body(response)
        success = bool(body.get("success")) and response.is_success
        return OTPRequestResponse(
            success=success,
            message=envelope_message(
                response, "OTP sent" if success else "Failed to send OTP"
            ),
        )

    async def verify_otp(self, identifier: str, code: str, purpose: str) -> OTPVerifyResponse:
        response = await self._post(
            self.VERIFY_PATH,
            {"phoneNumber": identifier, "otp": code, "purpose": purpose},
        )
        body = envelope_body(response)
        data = body.get("data") if isinstance(body.get("data"), dict) else {}
        success = bool(body.get("success")) and response.is_success

        remaining = data.get("remainingAttempts", body.get("remainingAttempts"))
        tokens = data.get("tokens")
        if tokens is None:
            access = body.get("token") or data.get("token") or data.get("accessToken")
            if access:
                tokens = {
                    "accessToken": access,
                    "refreshToken": body.get("refreshToken") or data.get("refreshToken"),
                    "expiresIn": data.get("expiresIn"),
                }

        return OTPVerifyResponse(
            success=success,
            message=envelope_message(
                response, "OTP verified" if success else "OTP verification failed"
            ),
            remaining_attempts=remaining if isinstance(remaining, int) else None,
            tokens=tokens,
            user=data.get("user") if isinstance(data.get("user"), dict) else None,
            data=data,
        )
