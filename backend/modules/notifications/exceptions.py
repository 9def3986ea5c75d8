"""
Notification queue exceptions.
"""

from shared.exceptions import LifelineError, ExternalServiceError


class NotificationError(LifelineError):
    """Base exception for notification queue errors."""

    pass


class NotificationStoreError(NotificationError):
    """Raised when queue records cannot be read or written."""

    def __init__(self, message: str):
        super().__init__(message, code="NOTIFICATION_STORE_ERROR")


class SyncNetworkError(ExternalServiceError):
    """Raised when the sync service cannot be reached or fails internally."""

    def __init__(self, message: str):
        super().__init__(message, service="notification-sync", code="NETWORK_ERROR")
