"""
Content version data model.

A ContentVersion is one revision of a content item identified by
(content_type, content_id). Its ``data`` snapshot is written once at
creation; only status and timestamp fields change afterwards.
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from ..exceptions import InvalidTimestampError


class VersionStatus(str, Enum):
    """Version status"""
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    PUBLISHED = "published"
    ARCHIVED = "archived"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any, field_name: str = "timestamp") -> Optional[datetime]:
    """
    Parse an ISO-8601 string (or pass through a datetime) into aware UTC.

    Accepts the trailing ``Z`` form produced by JavaScript clients.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            return ensure_utc(datetime.fromisoformat(raw))
        except ValueError as e:
            raise InvalidTimestampError(field_name, value) from e
    raise InvalidTimestampError(field_name, value)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class ContentVersion:
    """One revision of a content item"""
    id: str
    content_type: str
    content_id: str
    version_number: int
    status: VersionStatus = VersionStatus.DRAFT
    data: Dict[str, Any] = field(default_factory=dict)
    author_id: str = ""
    change_description: Optional[str] = None

    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    published_at: Optional[datetime] = None
    scheduled_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None

    @property
    def content_key(self) -> tuple:
        return (self.content_type, self.content_id)

    def is_due(self, now: datetime) -> bool:
        return (
            self.status == VersionStatus.SCHEDULED
            and self.scheduled_at is not None
            and self.scheduled_at <= now
        )

    def to_dict(self) -> Dict[str, Any]:
        """Storage form (snake_case, datetimes kept as datetime)"""
        return {
            "id": self.id,
            "content_type": self.content_type,
            "content_id": self.content_id,
            "version_number": self.version_number,
            "status": self.status.value,
            "data": copy.deepcopy(self.data),
            "author_id": self.author_id,
            "change_description": self.change_description,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "published_at": self.published_at,
            "scheduled_at": self.scheduled_at,
            "archived_at": self.archived_at,
        }

    def to_api_dict(self) -> Dict[str, Any]:
        """API form (camelCase, ISO-8601 timestamps)"""
        return {
            "id": self.id,
            "contentType": self.content_type,
            "contentId": self.content_id,
            "versionNumber": self.version_number,
            "status": self.status.value,
            "data": self.data,
            "authorId": self.author_id,
            "changeDescription": self.change_description,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
            "publishedAt": _iso(self.published_at),
            "scheduledAt": _iso(self.scheduled_at),
            "archivedAt": _iso(self.archived_at),
        }

    def to_metadata(self) -> "VersionMetadata":
        return VersionMetadata(
            id=self.id,
            version_number=self.version_number,
            status=self.status,
            author_id=self.author_id,
            change_description=self.change_description,
            created_at=self.created_at,
            published_at=self.published_at,
            scheduled_at=self.scheduled_at,
            archived_at=self.archived_at,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContentVersion":
        created_at = parse_timestamp(data.get("created_at"), "created_at") or utcnow()
        updated_at = parse_timestamp(data.get("updated_at"), "updated_at") or created_at

        return cls(
            id=str(data.get("id", data.get("_id", ""))),
            content_type=str(data.get("content_type", "")),
            content_id=str(data.get("content_id", "")),
            version_number=int(data.get("version_number", 1)),
            status=VersionStatus(data.get("status", VersionStatus.DRAFT.value)),
            data=copy.deepcopy(data.get("data") or {}),
            author_id=str(data.get("author_id", "")),
            change_description=data.get("change_description"),
            created_at=created_at,
            updated_at=updated_at,
            published_at=parse_timestamp(data.get("published_at"), "published_at"),
            scheduled_at=parse_timestamp(data.get("scheduled_at"), "scheduled_at"),
            archived_at=parse_timestamp(data.get("archived_at"), "archived_at"),
        )


@dataclass
class VersionMetadata:
    """Version history entry without the data payload"""
    id: str
    version_number: int
    status: VersionStatus
    author_id: str
    change_description: Optional[str] = None
    created_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    scheduled_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None

    def to_api_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "versionNumber": self.version_number,
            "status": self.status.value,
            "authorId": self.author_id,
            "changeDescription": self.change_description,
            "createdAt": _iso(self.created_at),
            "publishedAt": _iso(self.published_at),
            "scheduledAt": _iso(self.scheduled_at),
            "archivedAt": _iso(self.archived_at),
        }


@dataclass
class FieldChanges:
    """Key-level changes between two data snapshots"""
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)

    @property
    def total_changes(self) -> int:
        return len(self.added) + len(self.removed) + len(self.modified)

    @property
    def has_changes(self) -> bool:
        return self.total_changes > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "added": list(self.added),
            "removed": list(self.removed),
            "modified": list(self.modified),
        }


@dataclass
class VersionComparison:
    """Result of comparing two versions of the same content item"""
    previous_version: ContentVersion
    current_version: ContentVersion
    changes: FieldChanges
    field_details: Optional[List[Dict[str, Any]]] = None

    def to_api_dict(self) -> Dict[str, Any]:
        result = {
            "previousVersion": self.previous_version.to_api_dict(),
            "currentVersion": self.current_version.to_api_dict(),
            "changes": self.changes.to_dict(),
        }
        if self.field_details is not None:
            result["fieldDetails"] = self.field_details
        return result
