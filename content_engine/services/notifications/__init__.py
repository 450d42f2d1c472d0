"""
Notification bus for content lifecycle events.
"""

from .events import Notification, NotificationType, content_notification
from .handlers import (
    NotificationHandler,
    LoggingNotificationHandler,
    InAppNotificationHandler,
    WebhookNotificationHandler,
)
from .dispatcher import NotificationDispatcher

__all__ = [
    "Notification",
    "NotificationType",
    "content_notification",
    "NotificationHandler",
    "LoggingNotificationHandler",
    "InAppNotificationHandler",
    "WebhookNotificationHandler",
    "NotificationDispatcher",
]
