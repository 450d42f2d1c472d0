"""
Notification event types.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class NotificationType(str, Enum):
    """Notification type"""
    DRAFT_CREATED = "content.draft.created"
    SCHEDULED = "content.scheduled"
    PUBLISHED = "content.published"
    ARCHIVED = "content.archived"
    SYSTEM_ERROR = "system.error"
    SYSTEM_WARNING = "system.warning"
    SYSTEM_INFO = "system.info"


@dataclass
class Notification:
    """A single broadcast event"""
    type: NotificationType
    title: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    recipients: List[str] = field(default_factory=list)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    read: bool = False
    read_by: List[str] = field(default_factory=list)

    def is_for(self, recipient: str) -> bool:
        return recipient in self.recipients or "all" in self.recipients

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "data": self.data,
            "recipients": list(self.recipients),
            "createdAt": self.created_at.isoformat(),
            "read": self.read,
            "readBy": list(self.read_by),
        }


def content_notification(
    notification_type: NotificationType,
    title: str,
    message: str,
    recipients: List[str],
    version: Optional[Any] = None,
    **extra: Any,
) -> Notification:
    """Build a content lifecycle notification carrying the version's identity."""
    data: Dict[str, Any] = {}
    if version is not None:
        data.update({
            "contentType": version.content_type,
            "contentId": version.content_id,
            "versionId": version.id,
            "versionNumber": version.version_number,
        })
    data.update(extra)
    return Notification(
        type=notification_type,
        title=title,
        message=message,
        data=data,
        recipients=recipients,
    )
