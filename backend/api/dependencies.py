"""
Dependency injection setup for FastAPI.

This module provides the "container" that wires together all module
implementations. Each module exposes its manager through an interface,
and this file creates the concrete implementations from Settings.

The modules themselves hold no global state; the container owns exactly one
instance of each manager for the lifetime of the application.
"""

import logging
from typing import TYPE_CHECKING, Optional

from shared.config import Settings, get_settings

# Type checking imports for interfaces (avoids circular imports)
if TYPE_CHECKING:
    from modules.session.interfaces import ISessionStore
    from modules.session.client import HttpAuthClient
    from modules.session.service import SessionManager
    from modules.otp.client import HttpOTPClient
    from modules.otp.service import OTPVerificationController
    from modules.notifications.interfaces import IBadge, INotificationStore
    from modules.notifications.client import HttpSyncClient
    from modules.notifications.service import NotificationQueueManager

logger = logging.getLogger(__name__)


class ServiceContainer:
    """
    Container for all service instances.

    Services are created lazily on first access and cached within the
    container. startup() and shutdown() run from the application lifespan.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._session_store: "ISessionStore | None" = None
        self._auth_client: "HttpAuthClient | None" = None
        self._session: "SessionManager | None" = None
        self._otp_client: "HttpOTPClient | None" = None
        self._otp: "OTPVerificationController | None" = None
        self._notification_store: "INotificationStore | None" = None
        self._sync_client: "HttpSyncClient | None" = None
        self._badge: "IBadge | None" = None
        self._notifications: "NotificationQueueManager | None" = None

    @property
    def settings(self) -> Settings:
        return self._settings

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    @property
    def session_store(self) -> "ISessionStore":
        """Get the session store instance."""
        if self._session_store is None:
            from modules.session.store import FileSessionStore
            self._session_store = FileSessionStore(self._settings.session_store_path)
        return self._session_store

    @property
    def auth_client(self) -> "HttpAuthClient":
        if self._auth_client is None:
            from modules.session.client import HttpAuthClient
            self._auth_client = HttpAuthClient(
                self._settings.auth_service_url,
                timeout=self._settings.http_timeout_seconds,
            )
        return self._auth_client

    @property
    def session(self) -> "SessionManager":
        """Get the session manager instance."""
        if self._session is None:
            from modules.session.service import SessionManager
            s = self._settings
            self._session = SessionManager(
                store=self.session_store,
                auth_client=self.auth_client,
                cache_ttl_seconds=s.session_cache_ttl_seconds,
                max_session_age_days=s.session_max_age_days,
                refresh_threshold_seconds=s.refresh_threshold_seconds,
                refresh_check_interval_seconds=s.refresh_check_interval_seconds,
            )
        return self._session

    # -------------------------------------------------------------------------
    # OTP
    # -------------------------------------------------------------------------

    @property
    def otp_client(self) -> "HttpOTPClient":
        if self._otp_client is None:
            from modules.otp.client import HttpOTPClient
            self._otp_client = HttpOTPClient(
                self._settings.otp_service_url,
                timeout=self._settings.http_timeout_seconds,
            )
        return self._otp_client

    @property
    def otp(self) -> "OTPVerificationController":
        """Get the OTP controller instance."""
        if self._otp is None:
            from modules.otp.service import OTPVerificationController
            s = self._settings
            self._otp = OTPVerificationController(
                client=self.otp_client,
                session_manager=self.session,
                expiry_seconds=s.otp_expiry_seconds,
                max_attempts=s.otp_max_attempts,
                code_length=s.otp_code_length,
                close_delay_seconds=s.otp_close_delay_seconds,
            )
        return self._otp

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    @property
    def notification_store(self) -> "INotificationStore":
        """Get the notification store for the configured backend."""
        if self._notification_store is None:
            backend = self._settings.notification_store_backend
            if backend == "memory":
                from modules.notifications.store import InMemoryNotificationStore
                self._notification_store = InMemoryNotificationStore()
            elif backend == "supabase":
                from modules.notifications.store import SupabaseNotificationStore
                from shared.database import get_supabase_client
                self._notification_store = SupabaseNotificationStore(get_supabase_client())
            elif backend == "file":
                from modules.notifications.store import FileNotificationStore
                self._notification_store = FileNotificationStore(
                    self._settings.notification_store_path
                )
            else:
                raise ValueError(f"Unknown notification store backend: {backend}")
        return self._notification_store

    @property
    def sync_client(self) -> "HttpSyncClient":
        if self._sync_client is None:
            from modules.notifications.client import HttpSyncClient
            self._sync_client = HttpSyncClient(
                self._settings.sync_service_url,
                timeout=self._settings.http_timeout_seconds,
                session_manager=self.session,
            )
        return self._sync_client

    @property
    def badge(self) -> "IBadge":
        if self._badge is None:
            from modules.notifications.client import InMemoryBadge
            self._badge = InMemoryBadge()
        return self._badge

    @property
    def notifications(self) -> "NotificationQueueManager":
        """Get the notification queue manager instance."""
        if self._notifications is None:
            from modules.notifications.service import NotificationQueueManager
            s = self._settings
            self._notifications = NotificationQueueManager(
                store=self.notification_store,
                sync_client=self.sync_client,
                badge=self.badge,
                sync_interval_seconds=s.queue_sync_interval_seconds,
                cleanup_interval_seconds=s.queue_cleanup_interval_seconds,
                max_queue_size=s.queue_max_size,
                max_age_days=s.queue_max_age_days,
                sync_batch_size=s.queue_sync_batch_size,
                retain_synced=s.queue_retain_synced,
            )
        return self._notifications

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def startup(self) -> None:
        """Restore the session and start the background tasks."""
        result = await self.session.initialize()
        logger.info("Session restored: %s", result.kind)
        self.session.start()
        self.notifications.start()

    async def shutdown(self) -> None:
        """Stop background tasks and close HTTP clients."""
        if self._notifications is not None:
            await self._notifications.stop()
        if self._otp is not None:
            self._otp.close()
        if self._session is not None:
            await self._session.shutdown()
        for client in (self._auth_client, self._otp_client, self._sync_client):
            if client is not None:
                await client.aclose()

    def reset(self) -> None:
        """
        Reset all cached services.

        This is primarily for testing - allows tests to get fresh
        service instances with different mock dependencies.
        """
        self._session_store = None
        self._auth_client = None
        self._session = None
        self._otp_client = None
        self._otp = None
        self._notification_store = None
        self._sync_client = None
        self._badge = None
        self._notifications = None


# Module-level container singleton
_container: ServiceContainer | None = None


def get_container() -> ServiceContainer:
    """Get the singleton service container."""
    global _container
    if _container is None:
        _container = ServiceContainer()
    return _container


def set_container(container: ServiceContainer) -> None:
    """Install a prepared container (used by tests)."""
    global _container
    _container = container


def reset_container() -> None:
    """
    Reset the service container.

    The next call to get_container() creates a fresh container with new
    service instances. Primarily used for testing.
    """
    global _container
    _container = None


# FastAPI dependency functions
# These are the functions that should be used in route Depends() calls


def get_session_manager() -> "SessionManager":
    """FastAPI dependency for the session manager."""
    return get_container().session


def get_otp_controller() -> "OTPVerificationController":
    """FastAPI dependency for the OTP controller."""
    return get_container().otp


def get_notification_manager() -> "NotificationQueueManager":
    """FastAPI dependency for the notification queue manager."""
    return get_container().notifications
