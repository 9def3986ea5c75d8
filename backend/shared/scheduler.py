"""
Cancellable scheduled tasks.

Managers own their timers through these wrappers instead of creating bare
asyncio tasks, so a restart or shutdown never leaves a duplicate loop behind.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """
    Run an async callback at a fixed interval until stopped.

    The first run happens after one interval. Exceptions raised by the
    callback are logged and the loop keeps going; the callback is expected to
    handle its own failures.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        callback: Callable[[], Awaitable[object]],
    ):
        self.name = name
        self.interval = interval
        self._callback = callback
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the loop. Starting a running task is a no-op."""
        if self.is_running:
            logger.debug("Periodic task %s already running", self.name)
            return
        self._task = asyncio.create_task(self._run(), name=self.name)
        logger.debug("Periodic task %s started (every %ss)", self.name, self.interval)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("Periodic task %s stopped", self.name)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self._callback()
            except Exception:
                logger.exception("Periodic task %s failed", self.name)


class DelayedCall:
    """
    A one-shot timer that can be rescheduled or cancelled.

    Scheduling again cancels the pending call first, so at most one call is
    ever outstanding.
    """

    def __init__(self, name: str, callback: Callable[[], object]):
        self.name = name
        self._callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, delay: float) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(max(delay, 0), self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        result = self._callback()
        if asyncio.iscoroutine(result):
            asyncio.ensure_future(result)
