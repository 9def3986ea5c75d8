"""
Notifications module.

Durable, priority-ordered notification queue with periodic and
reconnect-triggered synchronization.

Public API:
- INotificationQueueManager, INotificationStore, ISyncClient, IBadge: Interfaces
- NotificationQueueManager: The manager implementation
- InMemoryNotificationStore, FileNotificationStore, SupabaseNotificationStore: Stores
- HttpSyncClient, InMemoryBadge: Sync service client and default badge
"""

from .interfaces import INotificationQueueManager, INotificationStore, ISyncClient, IBadge
from .models import (
    NotificationKind,
    NotificationPriority,
    NotificationStatus,
    NotificationRecord,
    QueueStatus,
    SyncAck,
    SyncReport,
    QueueErrorKind,
    QueueSuccess,
    QueueFailure,
    QueueResult,
    KIND_PRIORITY,
    PRIORITY_RANK,
)
from .exceptions import NotificationError, NotificationStoreError, SyncNetworkError
from .store import InMemoryNotificationStore, FileNotificationStore, SupabaseNotificationStore
from .client import HttpSyncClient, InMemoryBadge
from .builders import build_payload
from .service import NotificationQueueManager

__all__ = [
    # Interfaces
    "INotificationQueueManager",
    "INotificationStore",
    "ISyncClient",
    "IBadge",
    # Implementations
    "NotificationQueueManager",
    "InMemoryNotificationStore",
    "FileNotificationStore",
    "SupabaseNotificationStore",
    "HttpSyncClient",
    "InMemoryBadge",
    "build_payload",
    # Models
    "NotificationKind",
    "NotificationPriority",
    "NotificationStatus",
    "NotificationRecord",
    "QueueStatus",
    "SyncAck",
    "SyncReport",
    "QueueErrorKind",
    "QueueSuccess",
    "QueueFailure",
    "QueueResult",
    "KIND_PRIORITY",
    "PRIORITY_RANK",
    # Exceptions
    "NotificationError",
    "NotificationStoreError",
    "SyncNetworkError",
]
