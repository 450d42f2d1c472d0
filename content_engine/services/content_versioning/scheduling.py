"""
Scheduling Service - timed publication.

Owns the ``scheduled`` status, the due-publication sweep and the periodic
task that drives it. Publication itself always goes through
VersioningService.publish_version.
"""

import asyncio
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union

from pymongo import ASCENDING

from ...core import get_logger, sweep_context
from ...exceptions import (
    AlreadyPublishedError,
    ArchivedVersionError,
    ContentEngineException,
    NotScheduledError,
    SchedulePastDateError,
)
from ...models import ContentVersion, VersionStatus, parse_timestamp, utcnow
from ..cache_service import CacheService
from ..notifications import (
    Notification,
    NotificationDispatcher,
    NotificationType,
    content_notification,
)
from ..version_store import CONTENT_VERSION, VersionStore
from .versioning import (
    EDITORS,
    SCHEDULED_CONTENT_KEY,
    SCHEDULING_NAMESPACE,
    SYSTEM_AUTHOR,
    VersioningService,
    store_guard,
)

logger = get_logger(__name__)


@dataclass
class SweepItemResult:
    """Outcome of publishing one due version"""
    version_id: str
    content_type: str
    content_id: str
    version_number: int
    success: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "versionId": self.version_id,
            "contentType": self.content_type,
            "contentId": self.content_id,
            "versionNumber": self.version_number,
            "success": self.success,
        }
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class SweepResult:
    """Outcome of one sweep"""
    published: int = 0
    total: int = 0
    results: List[SweepItemResult] = field(default_factory=list)
    skipped: bool = False

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "published": self.published,
            "total": self.total,
            "results": [r.to_dict() for r in self.results],
            "skipped": self.skipped,
        }


class SchedulingService:
    """
    Scheduled publication.

    The sweep is single-flight per process: an overlapping call returns a
    SweepResult with skipped=True. Across processes the sweep is
    at-least-once; a racing replica's publish fails with a ConflictError
    that is reported per item.
    """

    def __init__(
        self,
        store: VersionStore,
        versioning: VersioningService,
        cache: Optional[CacheService] = None,
        notifications: Optional[NotificationDispatcher] = None,
        clock: Callable[[], datetime] = utcnow,
        check_interval: float = 60.0,
        scheduled_cache_ttl: float = 300,
    ):
        self.store = store
        self.versioning = versioning
        self.cache = cache
        self.notifications = notifications
        self._clock = clock
        self.check_interval = check_interval
        self.scheduled_cache_ttl = scheduled_cache_ttl

        self._sweeping = False
        self._task: Optional[asyncio.Task] = None
        self._stop: Optional[asyncio.Event] = None
        self.last_sweep: Optional[SweepResult] = None
        self.last_sweep_at: Optional[datetime] = None

    # ==================== Schedule / unschedule ====================

    @store_guard("schedule_content")
    async def schedule_content(
        self,
        version_id: str,
        scheduled_at: Union[datetime, str],
        author_id: str,
    ) -> ContentVersion:
        """
        Schedule a draft (or reschedule a scheduled version) for publication.

        Raises:
            InvalidTimestampError: scheduled_at is not a valid timestamp
            SchedulePastDateError: scheduled_at is not in the future
            VersionNotFoundError: unknown id
            AlreadyPublishedError / ArchivedVersionError: version cannot be scheduled
        """
        when = parse_timestamp(scheduled_at, "scheduledAt")
        now = self._clock()
        if when <= now:
            raise SchedulePastDateError(when, now)

        version = await self.versioning.get_version(version_id)
        if version.status == VersionStatus.PUBLISHED:
            raise AlreadyPublishedError(version_id)
        if version.status == VersionStatus.ARCHIVED:
            raise ArchivedVersionError(version_id, "scheduled")

        scheduled = await self.versioning.update_fields(version_id, {
            "status": VersionStatus.SCHEDULED.value,
            "scheduled_at": when,
            "updated_at": now,
        })

        logger.info(
            "Version scheduled",
            content_type=scheduled.content_type,
            content_id=scheduled.content_id,
            version_id=version_id,
            version_number=scheduled.version_number,
            scheduled_at=when.isoformat(),
            rescheduled=version.status == VersionStatus.SCHEDULED,
            author_id=author_id,
        )

        self._notify(content_notification(
            NotificationType.SCHEDULED,
            "Content Scheduled",
            f"Version {scheduled.version_number} of {scheduled.content_type}/"
            f"{scheduled.content_id} is scheduled for {when.isoformat()}",
            EDITORS,
            version=scheduled,
            authorId=author_id,
            scheduledAt=when.isoformat(),
        ))
        await self.invalidate_scheduled_cache()

        return scheduled

    @store_guard("unschedule_content")
    async def unschedule_content(self, version_id: str, author_id: str) -> ContentVersion:
        """Revert a scheduled version to draft."""
        version = await self.versioning.get_version(version_id)
        if version.status != VersionStatus.SCHEDULED:
            raise NotScheduledError(version_id, version.status.value)

        draft = await self.versioning.update_fields(version_id, {
            "status": VersionStatus.DRAFT.value,
            "scheduled_at": None,
            "updated_at": self._clock(),
        })

        logger.info(
            "Version unscheduled",
            content_type=draft.content_type,
            content_id=draft.content_id,
            version_id=version_id,
            version_number=draft.version_number,
            author_id=author_id,
        )
        await self.invalidate_scheduled_cache()

        return draft

    # ==================== Queries ====================

    @store_guard("get_scheduled_content")
    async def get_scheduled_content(self) -> List[ContentVersion]:
        """All scheduled versions, earliest first. Cached for scheduled_cache_ttl."""
        cached = await self._cache_get()
        if cached is not None:
            return [ContentVersion.from_dict(r) for r in cached]

        records = await self.store.query(
            CONTENT_VERSION,
            {"status": VersionStatus.SCHEDULED.value},
            sort=[("scheduled_at", ASCENDING)],
        )
        versions = [ContentVersion.from_dict(r) for r in records]
        await self._cache_set([v.to_dict() for v in versions])
        return versions

    async def get_due_content(self, now: Optional[datetime] = None) -> List[ContentVersion]:
        """Scheduled versions whose time has come, earliest first."""
        now = now or self._clock()
        due = [v for v in await self.get_scheduled_content() if v.is_due(now)]
        due.sort(key=lambda v: v.scheduled_at)
        return due

    # ==================== Sweep ====================

    async def process_scheduled_content(self) -> SweepResult:
        """
        Publish every due version.

        Per-item failures are logged and reported in the result; only a
        failure to enumerate due content propagates.
        """
        if self._sweeping:
            logger.info("Scheduled content sweep already running, skipping")
            return SweepResult(skipped=True)

        self._sweeping = True
        try:
            now = self._clock()
            due = await self.get_due_content(now)
            result = SweepResult(total=len(due))
            logger.info("Processing scheduled content", due=len(due))

            for version in due:
                item = SweepItemResult(
                    version_id=version.id,
                    content_type=version.content_type,
                    content_id=version.content_id,
                    version_number=version.version_number,
                )
                try:
                    await self.versioning.publish_version(
                        version.id, SYSTEM_AUTHOR, expected_status=VersionStatus.SCHEDULED
                    )
                    item.success = True
                    result.published += 1
                except Exception as e:
                    item.error = e.message if isinstance(e, ContentEngineException) else str(e)
                    logger.error(
                        "Failed to publish scheduled content",
                        content_type=version.content_type,
                        content_id=version.content_id,
                        version_id=version.id,
                        version_number=version.version_number,
                        error=item.error,
                    )
                result.results.append(item)

            if due:
                await self.invalidate_scheduled_cache()
            if result.failed:
                self._notify(content_notification(
                    NotificationType.SYSTEM_WARNING,
                    "Scheduled Publishing Failed",
                    f"{result.failed} of {result.total} scheduled versions could not be published",
                    ["admins"],
                    failed=[r.to_dict() for r in result.results if not r.success],
                ))

            self.last_sweep = result
            self.last_sweep_at = now
            logger.info(
                "Scheduled content processed",
                published=result.published,
                total=result.total,
                failed=result.failed,
            )
            return result
        finally:
            self._sweeping = False

    # ==================== Periodic task ====================

    @property
    def is_scheduler_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start_scheduler(self) -> None:
        """Sweep immediately, then every check_interval seconds."""
        if self.is_scheduler_running:
            return
        logger.info("Starting scheduler", check_interval=self.check_interval)
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(
            self._run_periodic(self._stop), name="scheduled-publisher"
        )

    async def _run_periodic(self, stop: asyncio.Event) -> None:
        while not stop.is_set():
            try:
                with sweep_context("scheduler"):
                    await self.process_scheduled_content()
            except Exception as e:
                logger.error("Scheduled content sweep failed", error=str(e), exc_info=True)
                self._notify(content_notification(
                    NotificationType.SYSTEM_ERROR,
                    "Scheduled Publishing Error",
                    f"Scheduled content sweep failed: {e}",
                    ["admins"],
                ))
            with suppress(asyncio.TimeoutError):
                await asyncio.wait_for(stop.wait(), timeout=self.check_interval)

    async def stop_scheduler(self) -> None:
        """
        Stop the periodic task.

        A sweep already in progress runs to completion before this returns.
        """
        task, self._task = self._task, None
        stop, self._stop = self._stop, None
        if task is None:
            return
        if stop is not None:
            stop.set()
        with suppress(asyncio.CancelledError):
            await task
        logger.info("Scheduler stopped")

    async def set_check_interval(self, seconds: float) -> None:
        """Change the sweep interval, restarting a running scheduler."""
        if seconds <= 0:
            raise ValueError("check interval must be positive")
        self.check_interval = seconds
        logger.info("Scheduler check interval set", check_interval=seconds)

        if self.is_scheduler_running:
            await self.stop_scheduler()
            await self.start_scheduler()

    # ==================== Side effects ====================

    def _notify(self, notification: Notification) -> None:
        if self.notifications is None:
            return
        try:
            self.notifications.emit(notification)
        except Exception as e:
            logger.warning("Failed to emit notification", type=notification.type.value, error=str(e))

    async def invalidate_scheduled_cache(self) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.remove(SCHEDULED_CONTENT_KEY, namespace=SCHEDULING_NAMESPACE)
        except Exception as e:
            logger.warning("Scheduled content cache invalidation failed", error=str(e))

    async def _cache_get(self) -> Optional[List[Dict[str, Any]]]:
        if self.cache is None:
            return None
        try:
            return await self.cache.get(SCHEDULED_CONTENT_KEY, namespace=SCHEDULING_NAMESPACE)
        except Exception as e:
            logger.warning("Scheduled content cache read failed", error=str(e))
            return None

    async def _cache_set(self, records: List[Dict[str, Any]]) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.set(
                SCHEDULED_CONTENT_KEY,
                records,
                namespace=SCHEDULING_NAMESPACE,
                ttl=self.scheduled_cache_ttl,
            )
        except Exception as e:
            logger.warning("Scheduled content cache write failed", error=str(e))
