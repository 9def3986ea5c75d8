"""
Tests for the sync client, the default badge and the payload builders.
"""

import json
from datetime import datetime, timezone

import httpx
import pytest
from unittest.mock import AsyncMock

from modules.notifications.builders import (
    build_confirmation_payload,
    build_emergency_payload,
    build_payload,
    build_reminder_payload,
)
from modules.notifications.client import HttpSyncClient, InMemoryBadge
from modules.notifications.exceptions import SyncNetworkError
from modules.notifications.models import (
    NotificationKind,
    NotificationPriority,
    NotificationRecord,
    NotificationStatus,
)
from modules.notifications.service import NotificationQueueManager
from modules.session.exceptions import SessionExpiredError


NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def _records(*ids: str) -> list[NotificationRecord]:
    return [
        NotificationRecord(
            id=record_id,
            kind=NotificationKind.EMERGENCY,
            priority=NotificationPriority.CRITICAL,
            payload={"title": "O- needed"},
            created_at=NOW,
        )
        for record_id in ids
    ]


def _client(handler, session_manager=None) -> HttpSyncClient:
    return HttpSyncClient(
        base_url="https://sync.test",
        session_manager=session_manager,
        client=httpx.AsyncClient(
            base_url="https://sync.test", transport=httpx.MockTransport(handler)
        ),
    )


def _acks(*results) -> httpx.Response:
    return httpx.Response(200, json={"success": True, "data": {"results": list(results)}})


class TestHttpSyncClient:
    @pytest.mark.asyncio
    async def test_posts_records(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.read()))
            return _acks({"id": "n1", "success": True})

        acks = await _client(handler).sync_responses(_records("n1"))

        assert acks[0].success is True
        sent = bodies[0]["responses"][0]
        assert sent["id"] == "n1"
        assert sent["priority"] == "critical"
        assert sent["payload"] == {"title": "O- needed"}

    @pytest.mark.asyncio
    async def test_missing_acknowledgement_is_failure(self):
        handler = lambda request: _acks(
            {"id": "n1", "success": True},
            {"id": "n2", "success": False, "error": "Duplicate"},
        )

        acks = await _client(handler).sync_responses(_records("n1", "n2", "n3"))

        assert [(a.id, a.success, a.error) for a in acks] == [
            ("n1", True, None),
            ("n2", False, "Duplicate"),
            ("n3", False, "No acknowledgement"),
        ]

    @pytest.mark.asyncio
    async def test_object_error_is_read_as_message(self):
        handler = lambda request: _acks(
            {"id": "n1", "success": False, "error": {"code": "EXPIRED", "message": "Request closed"}},
            {"id": "n2", "success": False, "error": {"code": "DUPLICATE"}},
        )

        acks = await _client(handler).sync_responses(_records("n1", "n2"))

        assert [a.error for a in acks] == ["Request closed", "DUPLICATE"]

    @pytest.mark.asyncio
    async def test_queue_retries_record_refused_with_object_error(self, notification_store, clock):
        def handler(request):
            record_id = json.loads(request.read())["responses"][0]["id"]
            return _acks(
                {"id": record_id, "success": False, "error": {"code": "X", "message": "bad"}}
            )

        queue = NotificationQueueManager(
            store=notification_store, sync_client=_client(handler), clock=clock
        )
        queued = await queue.enqueue("emergency", {})

        result = await queue.sync_notification_responses()

        assert result.kind == "success"
        assert result.report.failed == 1
        record = await notification_store.get(queued.record.id)
        assert record.status == NotificationStatus.FAILED
        assert record.last_error == "bad"
        assert record.attempts == 1

    @pytest.mark.asyncio
    async def test_server_error_raises(self):
        with pytest.raises(SyncNetworkError):
            await _client(lambda request: httpx.Response(502)).sync_responses(_records("n1"))

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("offline", request=request)

        with pytest.raises(SyncNetworkError):
            await _client(handler).sync_responses(_records("n1"))

    @pytest.mark.asyncio
    async def test_unauthorized_without_session_raises_network_error(self):
        with pytest.raises(SyncNetworkError):
            await _client(lambda request: httpx.Response(401)).sync_responses(_records("n1"))

    @pytest.mark.asyncio
    async def test_uses_session_token(self):
        headers = []

        def handler(request):
            headers.append(request.headers.get("Authorization"))
            return _acks({"id": "n1", "success": True})

        async def with_token(operation):
            return await operation("A")

        session_manager = AsyncMock()
        session_manager.request_with_refresh.side_effect = with_token

        await _client(handler, session_manager).sync_responses(_records("n1"))

        assert headers == ["Bearer A"]

    @pytest.mark.asyncio
    async def test_expired_session_becomes_network_error(self):
        session_manager = AsyncMock()
        session_manager.request_with_refresh.side_effect = SessionExpiredError()

        with pytest.raises(SyncNetworkError):
            await _client(lambda request: _acks(), session_manager).sync_responses(
                _records("n1")
            )


class TestInMemoryBadge:
    @pytest.mark.asyncio
    async def test_set_and_clear(self):
        badge = InMemoryBadge()

        await badge.set_badge(3)
        assert badge.count == 3

        await badge.clear_badge()
        assert badge.count == 0

    @pytest.mark.asyncio
    async def test_negative_count_floors_at_zero(self):
        badge = InMemoryBadge()
        await badge.set_badge(-1)
        assert badge.count == 0


class TestBuilders:
    def test_emergency_payload(self, clock):
        payload = build_emergency_payload(
            {
                "id": "req-1",
                "bloodType": "O-",
                "hospital": {"name": "City Hospital"},
                "distance": 3,
            },
            clock,
        )

        assert payload["title"] == "O- Blood Needed URGENTLY"
        assert payload["body"] == "Emergency at City Hospital - 3km away"
        assert payload["tag"] == "emergency-req-1"
        assert payload["requireInteraction"] is True
        assert payload["data"]["requiresResponse"] is True
        assert payload["data"]["notificationId"] == (
            f"emergency-req-1-{int(clock.now.timestamp() * 1000)}"
        )

    def test_reminder_payload(self, clock):
        payload = build_reminder_payload(
            {"donorId": "d1", "daysSinceLastDonation": 120}, clock
        )

        assert payload["body"] == "You haven't donated in 120 days. Ready to save lives?"
        assert payload["data"]["requiresResponse"] is False

    def test_confirmation_payload(self, clock):
        payload = build_confirmation_payload(
            {"responseId": "r1", "requestId": "req-1", "bloodType": "A+", "action": "accept"},
            clock,
        )

        assert payload["tag"] == "confirmation-r1"
        assert payload["data"]["action"] == "accept"

    def test_build_payload_dispatches_on_kind(self, clock):
        payload = build_payload(NotificationKind.URGENT, {"id": "req-2", "bloodType": "B+"}, clock)

        assert payload["type"] == "blood_request_urgent"
        assert payload["tag"] == "urgent-req-2"
