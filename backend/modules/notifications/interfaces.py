"""
Notification queue interfaces.

The manager depends on a record store, a sync client and a badge. Each has
an in-memory implementation for tests and for hosts without the real thing.
"""

from typing import Any, Optional, Protocol, runtime_checkable

from .models import NotificationRecord, QueueResult, QueueStatus, SyncAck


@runtime_checkable
class INotificationStore(Protocol):
    """
    Durable set of notification records keyed by id.

    Write methods raise NotificationStoreError when the backing storage fails.
    """

    async def list_records(self) -> list[NotificationRecord]:
        """Return every record, in no particular order."""
        ...

    async def get(self, record_id: str) -> Optional[NotificationRecord]:
        ...

    async def save(self, record: NotificationRecord) -> None:
        """Insert or replace a record by id."""
        ...

    async def delete(self, record_ids: list[str]) -> int:
        """Delete records by id and return how many existed."""
        ...

    async def clear(self) -> None:
        ...


@runtime_checkable
class ISyncClient(Protocol):
    """Contract of the remote notification sync service."""

    async def sync_responses(self, records: list[NotificationRecord]) -> list[SyncAck]:
        """
        Deliver a batch and return one ack per record.

        Raises:
            SyncNetworkError: If the batch could not be delivered at all
        """
        ...


@runtime_checkable
class IBadge(Protocol):
    """Platform badge counter."""

    async def set_badge(self, count: int) -> None:
        ...

    async def clear_badge(self) -> None:
        ...


@runtime_checkable
class INotificationQueueManager(Protocol):
    """Interface for the notification queue."""

    async def enqueue(self, kind: str, payload: dict[str, Any]) -> QueueResult:
        ...

    async def get_queue_status(self) -> QueueStatus:
        ...

    async def sync_notification_responses(self) -> QueueResult:
        ...

    async def clear_notification_badge(self) -> None:
        ...
