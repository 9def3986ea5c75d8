"""
Pytest fixtures for notification queue tests.

FakeSyncClient stands in for the remote sync service and records every
batch it receives, in order.
"""

import asyncio
from typing import Optional

import pytest

from modules.notifications.client import InMemoryBadge
from modules.notifications.exceptions import SyncNetworkError
from modules.notifications.models import NotificationRecord, SyncAck
from modules.notifications.service import NotificationQueueManager
from modules.notifications.store import InMemoryNotificationStore


class FakeSyncClient:
    """Acknowledges every record except those listed in refuse."""

    def __init__(self) -> None:
        self.batches: list[list[NotificationRecord]] = []
        self.refuse: set[str] = set()
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

    @property
    def synced_ids(self) -> list[str]:
        return [record.id for batch in self.batches for record in batch]

    async def sync_responses(self, records: list[NotificationRecord]) -> list[SyncAck]:
        self.batches.append(list(records))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return [
            SyncAck(id=r.id, success=False, error="Refused")
            if r.id in self.refuse
            else SyncAck(id=r.id, success=True)
            for r in records
        ]


@pytest.fixture
def notification_store() -> InMemoryNotificationStore:
    return InMemoryNotificationStore()


@pytest.fixture
def sync_client() -> FakeSyncClient:
    return FakeSyncClient()


@pytest.fixture
def badge() -> InMemoryBadge:
    return InMemoryBadge()


@pytest.fixture
def make_queue(notification_store, sync_client, badge, clock):
    def _make(**kwargs) -> NotificationQueueManager:
        kwargs.setdefault("store", notification_store)
        return NotificationQueueManager(
            sync_client=sync_client, badge=badge, clock=clock, **kwargs
        )

    return _make


@pytest.fixture
def queue(make_queue) -> NotificationQueueManager:
    return make_queue()
