"""
Request bodies for the versions API.

Field names are camelCase on the wire. Missing or empty required fields
are reported as a 400 MissingFieldsError by the application's validation
handler.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CreateDraftRequest(_Request):
    content_type: str = Field(..., alias="contentType", min_length=1)
    content_id: str = Field(..., alias="contentId", min_length=1)
    data: Dict[str, Any]
    author_id: str = Field(..., alias="authorId", min_length=1)
    change_description: Optional[str] = Field(default=None, alias="changeDescription")


class VersionActionRequest(_Request):
    """publish / archive / unschedule"""
    version_id: str = Field(..., alias="versionId", min_length=1)
    author_id: str = Field(..., alias="authorId", min_length=1)


class RollbackRequest(VersionActionRequest):
    change_description: Optional[str] = Field(default=None, alias="changeDescription")


class ScheduleRequest(VersionActionRequest):
    # Parsed by the scheduling service so malformed values raise InvalidTimestampError
    scheduled_at: str = Field(..., alias="scheduledAt", min_length=1)


class MarkReadRequest(_Request):
    notification_id: str = Field(..., alias="notificationId", min_length=1)
    user_id: str = Field(..., alias="userId", min_length=1)


class MarkAllReadRequest(_Request):
    user_id: str = Field(..., alias="userId", min_length=1)
