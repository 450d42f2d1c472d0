"""
External sweep trigger.

Lets an outside scheduler (cron, a platform scheduler) drive the
due-publication sweep instead of, or in addition to, the in-process task.
"""

from fastapi import APIRouter, Depends

from ..auth import verify_cron_secret
from ..core import get_logger, sweep_context
from ..services import SchedulingService
from .deps import get_scheduling

logger = get_logger(__name__)

router = APIRouter()


@router.get("/publish-scheduled", dependencies=[Depends(verify_cron_secret)])
async def publish_scheduled(scheduling: SchedulingService = Depends(get_scheduling)):
    """Run one sweep and return its result (no ``data`` envelope)."""
    with sweep_context("cron"):
        result = await scheduling.process_scheduled_content()
        logger.info(
            "Sweep triggered externally",
            published=result.published,
            total=result.total,
            skipped=result.skipped,
        )
    return result.to_dict()
