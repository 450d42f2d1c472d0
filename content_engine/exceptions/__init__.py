"""
Engine exception hierarchy.

Every error raised by the versioning and scheduling services belongs to
one of four kinds, each carrying its HTTP status:

- ValidationError (V000-V099) -> 400
- NotFoundError   (N001-N099) -> 404
- ConflictError   (C001-C099) -> 409
- UnexpectedError (U000-U099) -> 500
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class ContentEngineException(Exception):
    """Root of all engine exceptions"""

    http_status: int = 500
    default_user_message: str = "An unexpected error occurred. Please try again later."

    def __init__(
        self,
        message: str,
        error_code: str = "E000",
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)
        super().__init__(self.message)

    @property
    def user_message(self) -> str:
        """Message safe to show to end users"""
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def __str__(self):
        return f"[{self.error_code}] {self.message}"

    def __repr__(self):
        return f"{self.__class__.__name__}(code={self.error_code}, message={self.message})"


# ============================================
# Validation (V000-V099)
# ============================================

class ValidationError(ContentEngineException):
    """Bad input"""
    http_status = 400

    @property
    def user_message(self) -> str:
        field_errors = self.details.get("fields") or {}
        if not field_errors:
            return self.message
        lines = [f"- {name}: {', '.join(errors)}" for name, errors in field_errors.items()]
        return f"{self.message}\n\nPlease fix the following issues:\n" + "\n".join(lines)


class UnknownContentTypeError(ValidationError):
    """Content type is not registered"""
    def __init__(self, content_type: str):
        super().__init__(
            message=f"Content type '{content_type}' is not registered",
            error_code="V001",
            details={
                "content_type": content_type,
                "fields": {"contentType": [f"Content type '{content_type}' is not registered"]},
            },
        )


class SchedulePastDateError(ValidationError):
    """Scheduled time is not in the future"""
    def __init__(self, scheduled_at: datetime, now: datetime):
        super().__init__(
            message="Scheduled time must be in the future",
            error_code="V002",
            details={
                "scheduled_at": scheduled_at.isoformat(),
                "now": now.isoformat(),
                "fields": {"scheduledAt": ["Scheduled time must be in the future"]},
            },
        )


class ComparisonMismatchError(ValidationError):
    """Versions belong to different content items"""
    def __init__(self, version_id_1: str, version_id_2: str):
        super().__init__(
            message="Cannot compare versions from different content items",
            error_code="V003",
            details={
                "version_ids": [version_id_1, version_id_2],
                "fields": {"versions": ["Versions must be from the same content item"]},
            },
        )


class MissingFieldsError(ValidationError):
    """Required request fields are missing"""
    def __init__(self, missing: List[str]):
        super().__init__(
            message=f"Missing required fields: {', '.join(missing)}",
            error_code="V004",
            details={
                "missing": missing,
                "fields": {name: ["This field is required"] for name in missing},
            },
        )


class InvalidTimestampError(ValidationError):
    """Timestamp could not be parsed"""
    def __init__(self, field_name: str, value: Any):
        super().__init__(
            message=f"Invalid ISO timestamp for '{field_name}'",
            error_code="V005",
            details={
                "value": str(value)[:100],
                "fields": {field_name: ["Expected an ISO-8601 timestamp"]},
            },
        )


# ============================================
# Not found (N001-N099)
# ============================================

class NotFoundError(ContentEngineException):
    """Unknown record"""
    http_status = 404


class VersionNotFoundError(NotFoundError):
    """Unknown version id"""
    def __init__(self, version_id: str):
        super().__init__(
            message=f"Version not found: {version_id}",
            error_code="N001",
            details={"version_id": version_id},
        )


# ============================================
# Conflict (C001-C099)
# ============================================

class ConflictError(ContentEngineException):
    """Operation conflicts with the current version state"""
    http_status = 409


class AlreadyPublishedError(ConflictError):
    def __init__(self, version_id: str):
        super().__init__(
            message="Version is already published",
            error_code="C001",
            details={"version_id": version_id, "status": "published"},
        )


class NotScheduledError(ConflictError):
    def __init__(self, version_id: str, status: str):
        super().__init__(
            message=f"Version {version_id} is not scheduled",
            error_code="C002",
            details={"version_id": version_id, "status": status},
        )


class ArchivedVersionError(ConflictError):
    def __init__(self, version_id: str, operation: str):
        super().__init__(
            message=f"Archived versions cannot be {operation}; roll back to create a new draft instead",
            error_code="C003",
            details={"version_id": version_id, "operation": operation, "status": "archived"},
        )


class UnexpectedStatusError(ConflictError):
    def __init__(self, version_id: str, expected: str, actual: str):
        super().__init__(
            message=f"Version {version_id} is {actual}, expected {expected}",
            error_code="C004",
            details={"version_id": version_id, "expected": expected, "actual": actual},
        )


class DuplicateVersionError(ConflictError):
    def __init__(self, content_type: str, content_id: str, version_number: int):
        super().__init__(
            message=(
                f"Version {version_number} of {content_type}/{content_id} "
                f"was created concurrently; retry the request"
            ),
            error_code="C005",
            details={
                "content_type": content_type,
                "content_id": content_id,
                "version_number": version_number,
            },
        )


# ============================================
# Unexpected (U000-U099)
# ============================================

class UnexpectedError(ContentEngineException):
    """Lower-layer failure"""
    http_status = 500

    @property
    def user_message(self) -> str:
        return self.default_user_message


class StoreOperationError(UnexpectedError):
    """Version store call failed"""
    def __init__(self, operation: str, reason: str, cause: Optional[Exception] = None):
        super().__init__(
            message=f"Version store operation failed ({operation}): {reason}",
            error_code="U001",
            details={"operation": operation, "reason": reason},
            cause=cause,
        )


# ============================================
# Mapping utilities
# ============================================

ERROR_CODE_MAPPING = {
    # Validation
    "V000": ValidationError,
    "V001": UnknownContentTypeError,
    "V002": SchedulePastDateError,
    "V003": ComparisonMismatchError,
    "V004": MissingFieldsError,
    "V005": InvalidTimestampError,
    # Not found
    "N001": VersionNotFoundError,
    # Conflict
    "C001": AlreadyPublishedError,
    "C002": NotScheduledError,
    "C003": ArchivedVersionError,
    "C004": UnexpectedStatusError,
    "C005": DuplicateVersionError,
    # Unexpected
    "U000": UnexpectedError,
    "U001": StoreOperationError,
}


def get_exception_class(error_code: str) -> type:
    return ERROR_CODE_MAPPING.get(error_code, ContentEngineException)


def get_http_status(exc: BaseException) -> int:
    """HTTP status for any exception; non-engine exceptions map to 500"""
    if isinstance(exc, ContentEngineException):
        return exc.http_status
    return 500


__all__ = [
    "ContentEngineException",
    # Validation
    "ValidationError",
    "UnknownContentTypeError",
    "SchedulePastDateError",
    "ComparisonMismatchError",
    "MissingFieldsError",
    "InvalidTimestampError",
    # Not found
    "NotFoundError",
    "VersionNotFoundError",
    # Conflict
    "ConflictError",
    "AlreadyPublishedError",
    "NotScheduledError",
    "ArchivedVersionError",
    "UnexpectedStatusError",
    "DuplicateVersionError",
    # Unexpected
    "UnexpectedError",
    "StoreOperationError",
    # Utilities
    "ERROR_CODE_MAPPING",
    "get_exception_class",
    "get_http_status",
]
