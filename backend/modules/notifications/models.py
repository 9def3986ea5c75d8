"""
Notification queue data models.

Records are persisted one per notification. Queue status is never stored;
it is recomputed from the full record set on every call.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Iterable, Literal, Optional, Union
from pydantic import BaseModel, Field


class NotificationKind(str, Enum):
    """What produced the notification."""

    EMERGENCY = "emergency"
    URGENT = "urgent"
    REMINDER = "reminder"
    CONFIRMATION = "confirmation"


class NotificationPriority(str, Enum):
    """Severity tag; sync order follows PRIORITY_RANK."""

    CRITICAL = "critical"
    URGENT = "urgent"
    NORMAL = "normal"
    LOW = "low"


class NotificationStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    SYNCED = "synced"


PRIORITY_RANK: dict[NotificationPriority, int] = {
    NotificationPriority.CRITICAL: 1,
    NotificationPriority.URGENT: 2,
    NotificationPriority.NORMAL: 3,
    NotificationPriority.LOW: 4,
}

KIND_PRIORITY: dict[NotificationKind, NotificationPriority] = {
    NotificationKind.EMERGENCY: NotificationPriority.CRITICAL,
    NotificationKind.URGENT: NotificationPriority.URGENT,
    NotificationKind.REMINDER: NotificationPriority.NORMAL,
    NotificationKind.CONFIRMATION: NotificationPriority.LOW,
}

# Records in these states are picked up by the next sync.
SYNCABLE_STATUSES = frozenset({NotificationStatus.PENDING, NotificationStatus.FAILED})


class NotificationRecord(BaseModel):
    """One queued notification."""

    id: str
    kind: NotificationKind
    priority: NotificationPriority
    status: NotificationStatus = NotificationStatus.PENDING
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    expires_at: Optional[datetime] = None
    last_attempt_at: Optional[datetime] = None
    attempts: int = 0
    last_error: Optional[str] = None

    @property
    def is_syncable(self) -> bool:
        return self.status in SYNCABLE_STATUSES

    def sort_key(self) -> tuple[int, datetime, str]:
        """Priority first, then age, then id for a stable order."""
        return (PRIORITY_RANK[self.priority], self.created_at, self.id)


def sort_records(records: Iterable[NotificationRecord]) -> list[NotificationRecord]:
    return sorted(records, key=NotificationRecord.sort_key)


class QueueStatus(BaseModel):
    """Aggregate view of the queue."""

    total_items: int = 0
    by_priority: dict[str, int] = Field(default_factory=dict)
    by_status: dict[str, int] = Field(default_factory=dict)
    processing: bool = False
    badge_count: int = 0
    last_sync_at: Optional[datetime] = None

    @classmethod
    def from_records(
        cls,
        records: Iterable[NotificationRecord],
        processing: bool = False,
        badge_count: int = 0,
        last_sync_at: Optional[datetime] = None,
    ) -> "QueueStatus":
        by_priority = {p.value: 0 for p in NotificationPriority}
        by_status = {s.value: 0 for s in NotificationStatus}
        total = 0
        for record in records:
            total += 1
            by_priority[record.priority.value] += 1
            by_status[record.status.value] += 1
        return cls(
            total_items=total,
            by_priority=by_priority,
            by_status=by_status,
            processing=processing,
            badge_count=badge_count,
            last_sync_at=last_sync_at,
        )


class SyncAck(BaseModel):
    """Per-record answer of the sync service."""

    id: str
    success: bool
    error: Optional[str] = None


class SyncReport(BaseModel):
    """Outcome of one sync pass."""

    attempted: int = 0
    sent: int = 0
    failed: int = 0
    removed: int = 0
    network_error: Optional[str] = None
    started_at: datetime
    finished_at: Optional[datetime] = None

    @property
    def completed(self) -> bool:
        return self.network_error is None


class QueueErrorKind(str, Enum):
    """Why a queue operation failed."""

    QUEUE_FULL = "QUEUE_FULL"
    UNKNOWN_KIND = "UNKNOWN_KIND"
    STORE_ERROR = "STORE_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"


class QueueSuccess(BaseModel):
    """A queue operation succeeded."""

    kind: Literal["success"] = "success"
    record: Optional[NotificationRecord] = None
    report: Optional[SyncReport] = None
    status: QueueStatus


class QueueFailure(BaseModel):
    """A queue operation failed."""

    kind: Literal["error"] = "error"
    error: QueueErrorKind
    message: str
    report: Optional[SyncReport] = None


QueueResult = Annotated[
    Union[QueueSuccess, QueueFailure],
    Field(discriminator="kind"),
]
