"""
Notification handlers.

A handler receives every notification drained from the dispatcher
queue. Handler failures are isolated by the dispatcher.
"""

from abc import ABC, abstractmethod
from collections import deque
from typing import Callable, Deque, List, Optional

import httpx

from ...core import get_logger
from .events import Notification

logger = get_logger(__name__)


class NotificationHandler(ABC):
    """Notification handler interface"""

    @abstractmethod
    async def handle(self, notification: Notification) -> None:
        pass


class LoggingNotificationHandler(NotificationHandler):
    """Writes each notification to the structured log"""

    async def handle(self, notification: Notification) -> None:
        logger.info(
            "Notification",
            notification_id=notification.id,
            type=notification.type.value,
            title=notification.title,
            recipients=notification.recipients,
            data=notification.data,
        )


class InAppNotificationHandler(NotificationHandler):
    """
    Keeps the most recent notifications in memory for in-app display.

    Newest first; older entries fall off once max_notifications is reached.
    """

    def __init__(self, max_notifications: int = 100):
        self._notifications: Deque[Notification] = deque(maxlen=max_notifications)

    async def handle(self, notification: Notification) -> None:
        self._notifications.appendleft(notification)

    def get_notifications(self) -> List[Notification]:
        return list(self._notifications)

    def get_for_recipient(self, recipient: str) -> List[Notification]:
        return [n for n in self._notifications if n.is_for(recipient)]

    def mark_as_read(self, notification_id: str, user_id: str) -> bool:
        for notification in self._notifications:
            if notification.id == notification_id:
                if user_id not in notification.read_by:
                    notification.read_by.append(user_id)
                notification.read = True
                return True
        return False

    def mark_all_as_read(self, user_id: str) -> int:
        count = 0
        for notification in self._notifications:
            if notification.is_for(user_id) and user_id not in notification.read_by:
                notification.read_by.append(user_id)
                notification.read = True
                count += 1
        return count

    def clear(self) -> None:
        self._notifications.clear()


class WebhookNotificationHandler(NotificationHandler):
    """
    POSTs each notification as JSON to every configured URL.

    Configured from NOTIFICATION_WEBHOOK_URLS.
    """

    def __init__(
        self,
        urls: List[str],
        timeout: float = 10.0,
        client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
    ):
        self.webhook_urls = [url for url in urls if url]
        self.timeout = timeout
        self._client_factory = client_factory or httpx.AsyncClient

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_urls)

    async def handle(self, notification: Notification) -> None:
        await self.send(notification)

    async def send(self, notification: Notification) -> int:
        """Returns the number of webhooks that accepted the notification."""
        if not self.enabled:
            return 0

        payload = {"notification": notification.to_dict()}
        success_count = 0

        async with self._client_factory() as client:
            for url in self.webhook_urls:
                try:
                    response = await client.post(
                        url,
                        json=payload,
                        timeout=self.timeout,
                        headers={"User-Agent": "ContentEngine-Notifications/1.0"},
                    )
                    if response.status_code < 300:
                        success_count += 1
                    else:
                        logger.warning(
                            "Webhook returned non-success status",
                            url=url[:50],
                            status_code=response.status_code,
                        )
                except httpx.HTTPError as e:
                    logger.error("Error sending to webhook", url=url[:50], error=str(e))

        return success_count
