"""
Notification dispatcher.

Bounded in-process event bus:
- emit() enqueues without blocking and never raises
- a worker task delivers each notification to every registered handler
- handler failures are logged and never reach the emitter
"""

import asyncio
from contextlib import suppress
from typing import Dict, List, Optional

from ...core import get_logger
from .events import Notification
from .handlers import NotificationHandler

logger = get_logger(__name__)


class NotificationDispatcher:
    """Fire-and-forget notification bus backed by an asyncio.Queue"""

    def __init__(self, max_queue_size: int = 1000):
        self._handlers: Dict[str, NotificationHandler] = {}
        self._queue: "asyncio.Queue[Notification]" = asyncio.Queue(maxsize=max_queue_size)
        self._worker: Optional[asyncio.Task] = None

        self.emitted_count = 0
        self.dropped_count = 0
        self.delivered_count = 0
        self.failed_count = 0

    # ------------------------------------------
    # Handler registration
    # ------------------------------------------

    def register_handler(self, name: str, handler: NotificationHandler) -> None:
        self._handlers[name] = handler
        logger.info("Notification handler registered", handler=name)

    def unregister_handler(self, name: str) -> bool:
        removed = self._handlers.pop(name, None) is not None
        if removed:
            logger.info("Notification handler unregistered", handler=name)
        return removed

    def get_handler(self, name: str) -> Optional[NotificationHandler]:
        return self._handlers.get(name)

    @property
    def handler_names(self) -> List[str]:
        return list(self._handlers)

    # ------------------------------------------
    # Emission
    # ------------------------------------------

    def emit(self, notification: Notification) -> bool:
        """
        Enqueue a notification for delivery.

        Returns False when the queue is full and the notification was dropped.
        """
        try:
            self._queue.put_nowait(notification)
        except asyncio.QueueFull:
            self.dropped_count += 1
            logger.warning(
                "Notification queue full, dropping notification",
                notification_id=notification.id,
                type=notification.type.value,
                queue_size=self._queue.qsize(),
            )
            return False

        self.emitted_count += 1
        return True

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def _deliver(self, notification: Notification) -> None:
        handlers = list(self._handlers.items())
        if not handlers:
            return

        results = await asyncio.gather(
            *(handler.handle(notification) for _, handler in handlers),
            return_exceptions=True,
        )
        for (name, _), result in zip(handlers, results):
            if isinstance(result, Exception):
                self.failed_count += 1
                logger.error(
                    "Notification handler failed",
                    handler=name,
                    notification_id=notification.id,
                    type=notification.type.value,
                    error=str(result),
                )
            else:
                self.delivered_count += 1

    # ------------------------------------------
    # Worker lifecycle
    # ------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def start(self) -> None:
        if self.is_running:
            return
        self._worker = asyncio.create_task(self._run(), name="notification-dispatcher")
        logger.info("Notification dispatcher started", handlers=self.handler_names)

    async def _run(self) -> None:
        while True:
            notification = await self._queue.get()
            try:
                await self._deliver(notification)
            except Exception as e:
                logger.error("Notification delivery error", error=str(e), exc_info=True)
            finally:
                self._queue.task_done()

    async def drain(self) -> int:
        """
        Deliver every queued notification and return how many were processed.

        With a running worker this waits for the queue to empty; otherwise the
        notifications are delivered inline.
        """
        if self.is_running:
            count = self._queue.qsize()
            await self._queue.join()
            return count

        count = 0
        while not self._queue.empty():
            notification = self._queue.get_nowait()
            try:
                await self._deliver(notification)
            finally:
                self._queue.task_done()
            count += 1
        return count

    async def stop(self, timeout: float = 5.0) -> None:
        """Flush pending notifications (bounded by timeout) and stop the worker."""
        if self._worker is None:
            return

        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Notification dispatcher stopped with pending notifications",
                pending=self._queue.qsize(),
            )

        self._worker.cancel()
        with suppress(asyncio.CancelledError):
            await self._worker
        self._worker = None
        logger.info(
            "Notification dispatcher stopped",
            emitted=self.emitted_count,
            delivered=self.delivered_count,
            dropped=self.dropped_count,
            failed=self.failed_count,
        )
