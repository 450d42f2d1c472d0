"""Data models for content versions and API payloads."""

from .content_version import (
    ContentVersion,
    FieldChanges,
    VersionComparison,
    VersionMetadata,
    VersionStatus,
    ensure_utc,
    parse_timestamp,
    utcnow,
)

__all__ = [
    "ContentVersion",
    "FieldChanges",
    "VersionComparison",
    "VersionMetadata",
    "VersionStatus",
    "ensure_utc",
    "parse_timestamp",
    "utcnow",
]
