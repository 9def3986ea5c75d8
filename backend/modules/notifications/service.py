"""
Notification queue manager.

Producers enqueue notifications; the manager persists them and
synchronizes them with the remote sync service in priority order
(critical, urgent, normal, low, then oldest first).

Sync is single-flight: a caller that finds a pass in flight awaits that
pass. It runs on a fixed interval while the host is in the foreground and
online, immediately when the host comes back to the foreground or
reconnects, and on demand.

A record the service acknowledges becomes "sent" and is removed once the
pass completes (or kept as "synced" with retain_synced). A record that is
refused, or that was in a batch the network dropped, becomes "failed" and is
retried on the next pass.
"""

import asyncio
import inspect
import logging
import uuid
from datetime import datetime, timedelta
from itertools import groupby
from typing import Any, Callable, Optional

from shared.models import Clock, utc_now
from shared.scheduler import PeriodicTask

from .builders import build_payload
from .client import InMemoryBadge
from .exceptions import NotificationStoreError, SyncNetworkError
from .interfaces import IBadge, INotificationStore, ISyncClient
from .models import (
    KIND_PRIORITY,
    NotificationKind,
    NotificationRecord,
    NotificationStatus,
    QueueErrorKind,
    QueueFailure,
    QueueResult,
    QueueStatus,
    QueueSuccess,
    SyncReport,
    sort_records,
)

logger = logging.getLogger(__name__)

SyncListener = Callable[[SyncReport], Any]


class NotificationQueueManager:
    """
    Durable, priority-ordered notification queue.

    Args:
        store: Where records live.
        sync_client: The remote sync service.
        badge: Platform badge; an in-memory counter by default.
        sync_interval_seconds: Periodic sync interval while foregrounded.
        cleanup_interval_seconds: Periodic cleanup interval.
        max_queue_size: Enqueue is refused beyond this many records.
        max_age_days: Records older than this are removed by cleanup.
        sync_batch_size: Records per sync request.
        retain_synced: Keep acknowledged records as "synced" instead of
            removing them.
        clock: Source of the current time.
    """

    def __init__(
        self,
        store: INotificationStore,
        sync_client: ISyncClient,
        badge: Optional[IBadge] = None,
        sync_interval_seconds: int = 30,
        cleanup_interval_seconds: int = 3600,
        max_queue_size: int = 500,
        max_age_days: int = 7,
        sync_batch_size: int = 50,
        retain_synced: bool = False,
        clock: Clock = utc_now,
    ):
        self._store = store
        self._sync_client = sync_client
        self._badge = badge or InMemoryBadge()
        self._max_queue_size = max_queue_size
        self._max_age = timedelta(days=max_age_days)
        self._batch_size = max(1, sync_batch_size)
        self._retain_synced = retain_synced
        self._clock = clock

        self._badge_count = 0
        self._last_sync_at: Optional[datetime] = None
        self._sync_task: Optional[asyncio.Task] = None
        self._listeners: list[SyncListener] = []

        self._started = False
        self._foreground = True
        self._online = True
        self._sync_timer = PeriodicTask(
            "notification-sync", sync_interval_seconds, self._periodic_sync
        )
        self._cleanup_timer = PeriodicTask(
            "notification-cleanup", cleanup_interval_seconds, self.cleanup
        )

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def is_syncing(self) -> bool:
        return self._sync_task is not None and not self._sync_task.done()

    @property
    def badge_count(self) -> int:
        return self._badge_count

    @property
    def is_foreground(self) -> bool:
        return self._foreground

    @property
    def is_online(self) -> bool:
        return self._online

    async def get_queue_status(self) -> QueueStatus:
        """
        Recompute the queue status from the stored records.

        Reads the store on every call, so the answer is correct after a cold
        restart with no in-memory state.
        """
        try:
            records = await self._store.list_records()
        except NotificationStoreError as e:
            logger.error("Could not read queue for status: %s", e.message)
            records = []
        return self._status(records)

    def _status(self, records: list[NotificationRecord]) -> QueueStatus:
        return QueueStatus.from_records(
            records,
            processing=self.is_syncing,
            badge_count=self._badge_count,
            last_sync_at=self._last_sync_at,
        )

    # -------------------------------------------------------------------------
    # Producers
    # -------------------------------------------------------------------------

    async def enqueue(self, kind: str, payload: dict[str, Any]) -> QueueResult:
        """
        Queue a notification.

        The priority follows from the kind. When the queue is full, cleanup
        runs first; if that frees nothing the notification is refused.
        Pending records are never evicted to make room.
        """
        try:
            notification_kind = NotificationKind(kind)
        except ValueError:
            return QueueFailure(
                error=QueueErrorKind.UNKNOWN_KIND,
                message=f"Unknown notification kind: {kind}",
            )

        try:
            records = await self._store.list_records()
            if len(records) >= self._max_queue_size:
                logger.warning("Queue is full, cleaning up old notifications")
                await self.cleanup()
                records = await self._store.list_records()
                if len(records) >= self._max_queue_size:
                    return QueueFailure(
                        error=QueueErrorKind.QUEUE_FULL,
                        message=f"Notification queue is full ({self._max_queue_size} items)",
                    )

            now = self._clock()
            record = NotificationRecord(
                id=f"notification_{uuid.uuid4().hex}",
                kind=notification_kind,
                priority=KIND_PRIORITY[notification_kind],
                payload=dict(payload or {}),
                created_at=now,
                expires_at=now + self._max_age,
            )
            await self._store.save(record)
            records.append(record)
        except NotificationStoreError as e:
            logger.error("Failed to queue notification: %s", e.message)
            return QueueFailure(error=QueueErrorKind.STORE_ERROR, message=e.message)

        self._badge_count += 1
        await self._badge.set_badge(self._badge_count)
        logger.info(
            "Notification queued: %s (%s, %s)",
            record.id,
            record.kind.value,
            record.priority.value,
        )
        return QueueSuccess(record=record, status=self._status(records))

    async def queue_emergency(self, blood_request: dict[str, Any]) -> QueueResult:
        return await self._queue_built(NotificationKind.EMERGENCY, blood_request)

    async def queue_urgent(self, blood_request: dict[str, Any]) -> QueueResult:
        return await self._queue_built(NotificationKind.URGENT, blood_request)

    async def queue_reminder(self, reminder: dict[str, Any]) -> QueueResult:
        return await self._queue_built(NotificationKind.REMINDER, reminder)

    async def queue_confirmation(self, response: dict[str, Any]) -> QueueResult:
        return await self._queue_built(NotificationKind.CONFIRMATION, response)

    async def _queue_built(self, kind: NotificationKind, source: dict[str, Any]) -> QueueResult:
        return await self.enqueue(kind.value, build_payload(kind, source, self._clock))

    # -------------------------------------------------------------------------
    # Sync
    # -------------------------------------------------------------------------

    async def sync_notification_responses(self) -> QueueResult:
        """
        Deliver pending and failed records to the sync service.

        Concurrent callers share one pass and its outcome.
        """
        if self.is_syncing:
            logger.debug("Joining in-flight notification sync")
        else:
            self._sync_task = asyncio.create_task(self._run_sync())
        return await asyncio.shield(self._sync_task)

    async def _run_sync(self) -> QueueResult:
        report = SyncReport(started_at=self._clock())
        try:
            records = await self._store.list_records()
            report.removed += await self._finalize_sent(records)

            now = self._clock()
            candidates = sort_records(
                r for r in records if r.is_syncable and not self._is_expired(r, now)
            )
            if candidates:
                logger.info("Syncing %d queued notifications", len(candidates))

            sent: list[NotificationRecord] = []
            for batch in self._batches(candidates):
                try:
                    acks = await self._sync_client.sync_responses(batch)
                except SyncNetworkError as e:
                    logger.warning("Notification sync interrupted: %s", e.message)
                    report.network_error = e.message
                    await self._mark_failed(batch, e.message)
                    report.failed += len(batch)
                    break
                except Exception as e:
                    logger.exception("Sync client failed unexpectedly")
                    report.network_error = f"Unexpected sync failure: {e}"
                    await self._mark_failed(batch, report.network_error)
                    report.failed += len(batch)
                    break

                attempted_at = self._clock()
                by_id = {ack.id: ack for ack in acks}
                for record in batch:
                    ack = by_id.get(record.id)
                    record.attempts += 1
                    record.last_attempt_at = attempted_at
                    if ack is not None and ack.success:
                        record.status = NotificationStatus.SENT
                        record.last_error = None
                        sent.append(record)
                        report.sent += 1
                    else:
                        record.status = NotificationStatus.FAILED
                        record.last_error = ack.error if ack else "No acknowledgement"
                        report.failed += 1
                    await self._store.save(record)
                report.attempted += len(batch)

            report.removed += await self._finalize_sent(sent)
        except NotificationStoreError as e:
            logger.error("Notification sync aborted, store unavailable: %s", e.message)
            report.finished_at = self._clock()
            return QueueFailure(
                error=QueueErrorKind.STORE_ERROR, message=e.message, report=report
            )

        report.finished_at = self._clock()
        if report.completed:
            self._last_sync_at = report.finished_at
        logger.info(
            "Notification sync finished: %d sent, %d failed, %d removed",
            report.sent,
            report.failed,
            report.removed,
        )
        await self._notify_listeners(report)

        # Still inside the task, so is_syncing would report this pass.
        status = (await self.get_queue_status()).model_copy(update={"processing": False})
        if not report.completed:
            return QueueFailure(
                error=QueueErrorKind.NETWORK_ERROR,
                message=report.network_error,
                report=report,
            )
        return QueueSuccess(report=report, status=status)

    def _batches(self, records: list[NotificationRecord]):
        """Split sorted records into batches that never mix priorities."""
        for _, group in groupby(records, key=lambda r: r.priority):
            group = list(group)
            for start in range(0, len(group), self._batch_size):
                yield group[start:start + self._batch_size]

    async def _mark_failed(self, records: list[NotificationRecord], error: str) -> None:
        attempted_at = self._clock()
        for record in records:
            record.status = NotificationStatus.FAILED
            record.attempts += 1
            record.last_attempt_at = attempted_at
            record.last_error = error
            await self._store.save(record)

    async def _finalize_sent(self, records: list[NotificationRecord]) -> int:
        """Remove acknowledged records, or mark them synced when retained."""
        sent = [r for r in records if r.status == NotificationStatus.SENT]
        if not sent:
            return 0
        if self._retain_synced:
            for record in sent:
                record.status = NotificationStatus.SYNCED
                await self._store.save(record)
            return 0
        return await self._store.delete([r.id for r in sent])

    def add_sync_listener(self, listener: SyncListener) -> None:
        """Register a callback that receives the report of every sync pass."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_sync_listener(self, listener: SyncListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def _notify_listeners(self, report: SyncReport) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(report)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Sync listener failed")

    # -------------------------------------------------------------------------
    # Badge and maintenance
    # -------------------------------------------------------------------------

    async def clear_notification_badge(self) -> None:
        """Zero the badge. Queue records are not touched."""
        self._badge_count = 0
        await self._badge.clear_badge()

    async def cleanup(self) -> int:
        """
        Remove expired records and old delivered ones.

        Returns the number of records removed.
        """
        now = self._clock()
        try:
            records = await self._store.list_records()
            stale = [r for r in records if self._is_expired(r, now)]
            dropped = [r for r in stale if r.is_syncable]
            if dropped:
                logger.warning(
                    "Dropping %d undelivered notifications older than %s",
                    len(dropped),
                    self._max_age,
                )
            removed = await self._store.delete([r.id for r in stale])
        except NotificationStoreError as e:
            logger.error("Queue cleanup failed: %s", e.message)
            return 0
        if removed:
            logger.debug("Cleaned up %d old notifications", removed)
        return removed

    def _is_expired(self, record: NotificationRecord, now: datetime) -> bool:
        expires_at = record.expires_at or record.created_at + self._max_age
        return now >= expires_at

    async def clear_queue(self) -> QueueResult:
        """
        Delete every record and zero the badge.

        A sync pass in flight is awaited first; its writes would otherwise
        bring cleared records back.
        """
        if self.is_syncing:
            logger.debug("Waiting for in-flight notification sync before clearing")
            await asyncio.wait([self._sync_task])
        try:
            await self._store.clear()
        except NotificationStoreError as e:
            return QueueFailure(error=QueueErrorKind.STORE_ERROR, message=e.message)
        await self.clear_notification_badge()
        logger.info("Notification queue cleared")
        return QueueSuccess(status=self._status([]))

    # -------------------------------------------------------------------------
    # Host lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start periodic cleanup, and periodic sync if foregrounded and online."""
        self._started = True
        self._cleanup_timer.start()
        self._resume_sync_timer()

    async def stop(self) -> None:
        """
        Stop both timers.

        A sync pass already in flight is allowed to finish.
        """
        self._started = False
        await self._sync_timer.stop()
        await self._cleanup_timer.stop()

    async def on_foreground(self) -> Optional[QueueResult]:
        """The host became visible: clear the badge and sync at once."""
        self._foreground = True
        await self.clear_notification_badge()
        self._resume_sync_timer()
        if not self._online:
            return None
        return await self.sync_notification_responses()

    async def on_background(self) -> None:
        """The host went to the background: pause periodic sync."""
        self._foreground = False
        await self._sync_timer.stop()

    async def on_network_lost(self) -> None:
        self._online = False
        await self._sync_timer.stop()
        logger.info("Network lost, notification sync suspended")

    async def on_network_restored(self) -> QueueResult:
        """Connectivity is back: resume periodic sync and sync at once."""
        self._online = True
        logger.info("Network restored, syncing notifications")
        self._resume_sync_timer()
        return await self.sync_notification_responses()

    def _resume_sync_timer(self) -> None:
        if self._started and self._foreground and self._online:
            self._sync_timer.start()

    async def _periodic_sync(self) -> None:
        if self._online and self._foreground:
            await self.sync_notification_responses()
