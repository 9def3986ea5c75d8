"""
HTTP client for the remote auth service.

Responses use the envelope {"success": bool, "data": {...}, "message": str}.
Status codes are mapped onto session exceptions so the manager can tell a
transient failure from an authoritative rejection.
"""

import logging
from typing import Any, Optional

import httpx

from shared.http import envelope_data, envelope_message

from .exceptions import (
    AuthNetworkError,
    InvalidRefreshTokenError,
    ServerRejectedError,
)
from .models import LoginCredentials, LoginResponse, RefreshResponse, TokenPair

logger = logging.getLogger(__name__)

REJECTION_STATUSES = (400, 401, 403)


class HttpAuthClient:
    """
    Auth service client over httpx.

    A single AsyncClient is kept for the lifetime of the object; call
    aclose() on shutdown.
    """

    ME_PATH = "/api/v1/auth/me"
    REFRESH_PATH = "/api/v1/auth/refresh"
    LOGIN_PATH = "/api/v1/auth/login"
    LOGOUT_PATH = "/api/v1/auth/logout"

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(
        self,
        method: str,
        path: str,
        access_token: Optional[str] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        headers = {"Content-Type": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        try:
            response = await self._client.request(method, path, headers=headers, json=json)
        except httpx.HTTPError as e:
            raise AuthNetworkError(f"Auth service unreachable: {e}") from e

        if response.status_code >= 500:
            raise AuthNetworkError(f"Auth service error: HTTP {response.status_code}")
        return response

    async def verify_token(self, access_token: str) -> dict[str, Any]:
        response = await self._send("GET", self.ME_PATH, access_token=access_token)
        if response.status_code in REJECTION_STATUSES:
            raise ServerRejectedError(
                envelope_message(response, "Token verification failed"),
                status_code=response.status_code,
            )
        data = envelope_data(response)
        user = data.get("user")
        if not isinstance(user, dict):
            raise ServerRejectedError("Token verification returned no user")
        return user

    async def refresh_token(self, refresh_token: str) -> RefreshResponse:
        response = await self._send(
            "POST", self.REFRESH_PATH, json={"refreshToken": refresh_token}
        )
        if response.status_code in REJECTION_STATUSES:
            raise InvalidRefreshTokenError(envelope_message(response, "Token refresh failed"))
        data = envelope_data(response)
        if not data.get("accessToken"):
            raise InvalidRefreshTokenError("Token refresh returned no access token")
        return RefreshResponse.model_validate(data)

    async def login(self, credentials: LoginCredentials) -> LoginResponse:
        response = await self._send(
            "POST",
            self.LOGIN_PATH,
            json=credentials.model_dump(by_alias=True, exclude_none=True),
        )
        if response.status_code in REJECTION_STATUSES:
            raise ServerRejectedError(
                envelope_message(response, "Login failed"),
                status_code=response.status_code,
            )
        data = envelope_data(response)
        tokens = data.get("tokens") or {
            "accessToken": data.get("accessToken"),
            "refreshToken": data.get("refreshToken"),
            "expiresIn": data.get("expiresIn"),
        }
        return LoginResponse(
            user=data.get("user") or {},
            tokens=TokenPair.model_validate(tokens),
        )

    async def logout(self, access_token: Optional[str]) -> None:
        response = await self._send("POST", self.LOGOUT_PATH, access_token=access_token)
        if response.status_code >= 400:
            logger.debug("Auth service logout returned HTTP %s", response.status_code)
