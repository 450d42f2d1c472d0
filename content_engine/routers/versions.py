"""
Content Versions API Router.

Version lifecycle and scheduling endpoints. Every successful response is
wrapped as ``{"data": ...}``; errors are rendered by the application's
exception handlers.
"""

from fastapi import APIRouter, Depends, Query

from ..models.schemas import (
    CreateDraftRequest,
    RollbackRequest,
    ScheduleRequest,
    VersionActionRequest,
)
from ..services import SchedulingService, VersioningService
from .deps import get_scheduling, get_versioning

router = APIRouter()


# ============================================================
# Queries
# ============================================================

@router.get("/list")
async def list_versions(
    content_type: str = Query(..., alias="contentType", min_length=1),
    content_id: str = Query(..., alias="contentId", min_length=1),
    versioning: VersioningService = Depends(get_versioning),
):
    """Version history of a content item, oldest first."""
    versions = await versioning.get_content_versions(content_type, content_id)
    return {"data": [v.to_api_dict() for v in versions]}


@router.get("/get")
async def get_version(
    version_id: str = Query(..., alias="id", min_length=1),
    versioning: VersioningService = Depends(get_versioning),
):
    version = await versioning.get_version(version_id)
    return {"data": version.to_api_dict()}


@router.get("/latest")
async def get_latest_version(
    content_type: str = Query(..., alias="contentType", min_length=1),
    content_id: str = Query(..., alias="contentId", min_length=1),
    include_drafts: bool = Query(False, alias="includeDrafts"),
    include_scheduled: bool = Query(True, alias="includeScheduled"),
    versioning: VersioningService = Depends(get_versioning),
):
    version = await versioning.get_latest_version(
        content_type, content_id, include_drafts, include_scheduled
    )
    return {"data": version.to_api_dict() if version else None}


@router.get("/published")
async def get_published_version(
    content_type: str = Query(..., alias="contentType", min_length=1),
    content_id: str = Query(..., alias="contentId", min_length=1),
    versioning: VersioningService = Depends(get_versioning),
):
    version = await versioning.get_published_version(content_type, content_id)
    return {"data": version.to_api_dict() if version else None}


@router.get("/compare")
async def compare_versions(
    version_id_1: str = Query(..., alias="versionId1", min_length=1),
    version_id_2: str = Query(..., alias="versionId2", min_length=1),
    detail: bool = Query(False),
    versioning: VersioningService = Depends(get_versioning),
):
    """Compare two versions; ``detail=true`` adds per-field old/new values."""
    comparison = await versioning.compare_versions(version_id_1, version_id_2, detail=detail)
    return {"data": comparison.to_api_dict()}


@router.get("/scheduled")
async def list_scheduled(scheduling: SchedulingService = Depends(get_scheduling)):
    versions = await scheduling.get_scheduled_content()
    return {"data": [v.to_api_dict() for v in versions]}


# ============================================================
# Transitions
# ============================================================

@router.post("/create")
async def create_draft(
    body: CreateDraftRequest,
    versioning: VersioningService = Depends(get_versioning),
):
    version = await versioning.create_draft(
        body.content_type,
        body.content_id,
        body.data,
        body.author_id,
        body.change_description,
    )
    return {"data": version.to_api_dict()}


@router.post("/publish")
async def publish_version(
    body: VersionActionRequest,
    versioning: VersioningService = Depends(get_versioning),
):
    version = await versioning.publish_version(body.version_id, body.author_id)
    return {"data": version.to_api_dict()}


@router.post("/archive")
async def archive_version(
    body: VersionActionRequest,
    versioning: VersioningService = Depends(get_versioning),
):
    version = await versioning.archive_version(body.version_id, body.author_id)
    return {"data": version.to_api_dict()}


@router.post("/rollback")
async def rollback_version(
    body: RollbackRequest,
    versioning: VersioningService = Depends(get_versioning),
):
    version = await versioning.rollback_to_version(
        body.version_id, body.author_id, body.change_description
    )
    return {"data": version.to_api_dict()}


@router.post("/schedule")
async def schedule_version(
    body: ScheduleRequest,
    scheduling: SchedulingService = Depends(get_scheduling),
):
    version = await scheduling.schedule_content(body.version_id, body.scheduled_at, body.author_id)
    return {"data": version.to_api_dict()}


@router.post("/unschedule")
async def unschedule_version(
    body: VersionActionRequest,
    scheduling: SchedulingService = Depends(get_scheduling),
):
    version = await scheduling.unschedule_content(body.version_id, body.author_id)
    return {"data": version.to_api_dict()}
