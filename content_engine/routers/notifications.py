"""
In-app notifications API Router.
"""

from fastapi import APIRouter, Depends, Query

from ..models.schemas import MarkAllReadRequest, MarkReadRequest
from ..services.notifications import InAppNotificationHandler
from .deps import get_in_app_notifications

router = APIRouter()


@router.get("")
async def list_notifications(
    user_id: str = Query(..., alias="userId", min_length=1),
    handler: InAppNotificationHandler = Depends(get_in_app_notifications),
):
    """Recent notifications addressed to a recipient (or to "all"), newest first."""
    notifications = handler.get_for_recipient(user_id)
    return {"notifications": [n.to_dict() for n in notifications]}


@router.post("/mark-read")
async def mark_read(
    body: MarkReadRequest,
    handler: InAppNotificationHandler = Depends(get_in_app_notifications),
):
    return {"success": handler.mark_as_read(body.notification_id, body.user_id)}


@router.post("/mark-all-read")
async def mark_all_read(
    body: MarkAllReadRequest,
    handler: InAppNotificationHandler = Depends(get_in_app_notifications),
):
    count = handler.mark_all_as_read(body.user_id)
    return {"success": True, "count": count}
