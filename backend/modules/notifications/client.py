"""
Sync service client and the default badge.
"""

import logging
from typing import Any, Optional

import httpx

from shared.exceptions import LifelineError
from shared.http import envelope_data, envelope_message
from modules.session.exceptions import ServerRejectedError
from modules.session.interfaces import ISessionManager

from .exceptions import SyncNetworkError
from .models import NotificationRecord, SyncAck

logger = logging.getLogger(__name__)


def _ack_error(error: Any) -> Optional[str]:
    """The service reports a per-record error as a string or as {code, message}."""
    if error is None:
        return None
    if isinstance(error, dict):
        return str(error.get("message") or error.get("code") or "Sync refused")
    return str(error)


class HttpSyncClient:
    """
    Notification sync client over httpx.

    When a session manager is given, requests carry its bearer token and a
    401/403 goes through one refresh-then-retry. Failing to authenticate is
    reported as SyncNetworkError so the batch stays queued for the next pass.
    """

    SYNC_PATH = "/api/v1/notifications/sync"

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        session_manager: Optional[ISessionManager] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._session_manager = session_manager

    async def aclose(self) -> None:
        await self._client.aclose()

    async def sync_responses(self, records: list[NotificationRecord]) -> list[SyncAck]:
        payload = {
            "responses": [
                {
                    "id": r.id,
                    "kind": r.kind.value,
                    "priority": r.priority.value,
                    "payload": r.payload,
                    "createdAt": r.created_at.isoformat(),
                    "attempts": r.attempts,
                }
                for r in records
            ]
        }

        try:
            if self._session_manager is None:
                data = await self._post(payload, None)
            else:
                data = await self._session_manager.request_with_refresh(
                    lambda token: self._post(payload, token)
                )
        except SyncNetworkError:
            raise
        except LifelineError as e:
            raise SyncNetworkError(f"Not authorized to sync: {e.message}") from e

        return self._acks(records, data)

    async def _post(self, payload: dict[str, Any], token: Optional[str]) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        try:
            response = await self._client.post(self.SYNC_PATH, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise SyncNetworkError(f"Sync service unreachable: {e}") from e

        if response.status_code in (401, 403):
            raise ServerRejectedError(
                envelope_message(response, "Sync rejected"),
                status_code=response.status_code,
            )
        if response.status_code >= 400:
            raise SyncNetworkError(
                envelope_message(response, f"Sync service error: HTTP {response.status_code}")
            )
        return envelope_data(response)

    @staticmethod
    def _acks(records: list[NotificationRecord], data: dict[str, Any]) -> list[SyncAck]:
        by_id: dict[str, SyncAck] = {}
        for item in data.get("results") or []:
            if isinstance(item, dict) and item.get("id"):
                ack = SyncAck(
                    id=str(item["id"]),
                    success=bool(item.get("success")),
                    error=_ack_error(item.get("error")),
                )
                by_id[ack.id] = ack
        return [
            by_id.get(r.id) or SyncAck(id=r.id, success=False, error="No acknowledgement")
            for r in records
        ]


class InMemoryBadge:
    """Badge counter for hosts without a platform badge API."""

    def __init__(self) -> None:
        self.count = 0

    async def set_badge(self, count: int) -> None:
        self.count = max(0, count)

    async def clear_badge(self) -> None:
        self.count = 0
