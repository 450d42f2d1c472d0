"""
Versioning Service - content version lifecycle.

Transitions owned here:
- create_draft: new draft with the next version number
- publish_version: draft/scheduled -> published, archiving the previous live version
- archive_version: any -> archived (terminal)
- rollback_to_version: new draft copying an older version's data

Durable state lives in the VersionStore; this service holds none.
"""

import copy
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, Union

from pymongo import ASCENDING, DESCENDING

from ...core import get_logger
from ...exceptions import (
    AlreadyPublishedError,
    ArchivedVersionError,
    ComparisonMismatchError,
    ContentEngineException,
    UnexpectedError,
    UnexpectedStatusError,
    UnknownContentTypeError,
    VersionNotFoundError,
)
from ...models import (
    ContentVersion,
    VersionComparison,
    VersionMetadata,
    VersionStatus,
    utcnow,
)
from ..cache_service import CacheService
from ..content_types import ContentTypeRegistry
from ..notifications import Notification, NotificationDispatcher, NotificationType, content_notification
from ..version_store import CONTENT_VERSION, VersionStore
from .comparator import compare_data, diff_fields

logger = get_logger(__name__)

SCHEDULING_NAMESPACE = "scheduling"
SCHEDULED_CONTENT_KEY = "scheduled-content"
SYSTEM_AUTHOR = "system"

EDITORS = ["editors", "admins"]
EVERYONE = ["editors", "admins", "subscribers"]


def content_namespace(content_type: str) -> str:
    return f"content:{content_type}"


def store_guard(operation: str):
    """
    Engine exceptions propagate unchanged; anything else raised below a
    service operation is logged and wrapped in UnexpectedError.
    """
    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except ContentEngineException:
                raise
            except Exception as e:
                logger.error(
                    "Unexpected error in content operation",
                    operation=operation,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                raise UnexpectedError(
                    message=f"Unexpected error during {operation}: {e}",
                    error_code="U000",
                    details={"operation": operation, "error_type": type(e).__name__},
                    cause=e,
                ) from e
        return wrapper
    return decorator


class VersioningService:
    """
    Content version lifecycle.

    Collaborators are injected; notifications and cache are optional and
    their failures never fail a committed transition.
    """

    def __init__(
        self,
        store: VersionStore,
        content_types: ContentTypeRegistry,
        notifications: Optional[NotificationDispatcher] = None,
        cache: Optional[CacheService] = None,
        clock: Callable[[], Any] = utcnow,
        content_cache_ttl: float = 60,
    ):
        self.store = store
        self.content_types = content_types
        self.notifications = notifications
        self.cache = cache
        self._clock = clock
        self.content_cache_ttl = content_cache_ttl

    # ==================== Side effects ====================

    def _notify(self, notification: Notification) -> None:
        if self.notifications is None:
            return
        try:
            self.notifications.emit(notification)
        except Exception as e:
            logger.warning("Failed to emit notification", type=notification.type.value, error=str(e))

    async def _invalidate(self, namespace: str) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.invalidate_namespace(namespace)
        except Exception as e:
            logger.warning("Cache invalidation failed", namespace=namespace, error=str(e))

    async def _after_transition(self, previous: ContentVersion) -> None:
        await self._invalidate(content_namespace(previous.content_type))
        if previous.status == VersionStatus.SCHEDULED:
            await self._invalidate(SCHEDULING_NAMESPACE)

    async def update_fields(self, version_id: str, changes: Dict[str, Any]) -> ContentVersion:
        record = await self.store.update(CONTENT_VERSION, version_id, changes)
        if record is None:
            raise VersionNotFoundError(version_id)
        return ContentVersion.from_dict(record)

    async def _query_versions(
        self,
        content_type: str,
        content_id: str,
        status: Optional[VersionStatus] = None,
        descending: bool = False,
    ) -> List[ContentVersion]:
        filters: Dict[str, Any] = {"content_type": content_type, "content_id": content_id}
        if status is not None:
            filters["status"] = status.value
        records = await self.store.query(
            CONTENT_VERSION,
            filters,
            sort=[("version_number", DESCENDING if descending else ASCENDING)],
        )
        return [ContentVersion.from_dict(r) for r in records]

    # ==================== Creation ====================

    @store_guard("create_draft")
    async def create_draft(
        self,
        content_type: str,
        content_id: str,
        data: Dict[str, Any],
        author_id: str,
        change_description: Optional[str] = None,
    ) -> ContentVersion:
        """
        Create a new draft version.

        Raises:
            UnknownContentTypeError: content type not registered
            DuplicateVersionError: the version number was taken concurrently
        """
        if not self.content_types.exists(content_type):
            raise UnknownContentTypeError(content_type)

        version_number = await self._latest_version_number(content_type, content_id) + 1
        now = self._clock()

        draft = ContentVersion(
            id="",
            content_type=content_type,
            content_id=content_id,
            version_number=version_number,
            status=VersionStatus.DRAFT,
            data=copy.deepcopy(data),
            author_id=author_id,
            change_description=change_description,
            created_at=now,
            updated_at=now,
        )
        record = {k: v for k, v in draft.to_dict().items() if k != "id" and v is not None}
        saved = ContentVersion.from_dict(await self.store.create(CONTENT_VERSION, record))

        logger.info(
            "Draft version created",
            content_type=content_type,
            content_id=content_id,
            version_id=saved.id,
            version_number=version_number,
            author_id=author_id,
        )

        self._notify(content_notification(
            NotificationType.DRAFT_CREATED,
            "Draft Created",
            f"A new draft (v{version_number}) was created for {content_type}/{content_id}",
            EDITORS,
            version=saved,
            authorId=author_id,
        ))
        await self._invalidate(content_namespace(content_type))

        return saved

    async def _latest_version_number(self, content_type: str, content_id: str) -> int:
        versions = await self._query_versions(content_type, content_id, descending=True)
        return max((v.version_number for v in versions), default=0)

    # ==================== Transitions ====================

    @store_guard("publish_version")
    async def publish_version(
        self,
        version_id: str,
        author_id: str,
        expected_status: Optional[Union[VersionStatus, str]] = None,
    ) -> ContentVersion:
        """
        Publish a version and archive every other published version of the
        same content item.

        Args:
            version_id: Version to publish
            author_id: Actor ("system" for the scheduler)
            expected_status: If given, the stored status must match

        Raises:
            VersionNotFoundError: unknown id
            AlreadyPublishedError: version is already live
            ArchivedVersionError: archived versions are terminal
            UnexpectedStatusError: stored status differs from expected_status
        """
        version = await self.get_version(version_id)

        if version.status == VersionStatus.PUBLISHED:
            raise AlreadyPublishedError(version_id)
        if version.status == VersionStatus.ARCHIVED:
            raise ArchivedVersionError(version_id, "published")
        if expected_status is not None:
            expected = VersionStatus(expected_status)
            if version.status != expected:
                raise UnexpectedStatusError(version_id, expected.value, version.status.value)

        now = self._clock()
        published = await self.update_fields(version_id, {
            "status": VersionStatus.PUBLISHED.value,
            "published_at": now,
            "scheduled_at": None,
            "updated_at": now,
        })

        # Not atomic with the publish above; a failure here leaves two live versions
        await self._archive_previously_published(published, author_id)

        logger.info(
            "Version published",
            content_type=published.content_type,
            content_id=published.content_id,
            version_id=version_id,
            version_number=published.version_number,
            author_id=author_id,
        )

        self._notify(content_notification(
            NotificationType.PUBLISHED,
            "Content Published",
            f"Version {published.version_number} of "
            f"{published.content_type}/{published.content_id} has been published",
            EVERYONE,
            version=published,
            authorId=author_id,
        ))
        await self._after_transition(version)

        return published

    async def _archive_previously_published(self, published: ContentVersion, author_id: str) -> None:
        live = await self._query_versions(
            published.content_type, published.content_id, status=VersionStatus.PUBLISHED
        )
        for version in live:
            if version.id != published.id:
                await self.archive_version(version.id, author_id)

    @store_guard("archive_version")
    async def archive_version(self, version_id: str, author_id: str) -> ContentVersion:
        """Archive a version. Already-archived versions are returned unchanged."""
        version = await self.get_version(version_id)
        if version.status == VersionStatus.ARCHIVED:
            logger.debug("Version already archived", version_id=version_id)
            return version

        now = self._clock()
        archived = await self.update_fields(version_id, {
            "status": VersionStatus.ARCHIVED.value,
            "archived_at": now,
            "scheduled_at": None,
            "updated_at": now,
        })

        logger.info(
            "Version archived",
            content_type=archived.content_type,
            content_id=archived.content_id,
            version_id=version_id,
            version_number=archived.version_number,
            previous_status=version.status.value,
            author_id=author_id,
        )

        self._notify(content_notification(
            NotificationType.ARCHIVED,
            "Content Archived",
            f"Version {archived.version_number} of "
            f"{archived.content_type}/{archived.content_id} has been archived",
            EDITORS,
            version=archived,
            authorId=author_id,
        ))
        await self._after_transition(version)

        return archived

    @store_guard("rollback_to_version")
    async def rollback_to_version(
        self,
        version_id: str,
        author_id: str,
        change_description: Optional[str] = None,
    ) -> ContentVersion:
        """Create a new draft carrying the data of an older version."""
        target = await self.get_version(version_id)
        description = change_description or f"Rollback to version {target.version_number}"

        draft = await self.create_draft(
            target.content_type,
            target.content_id,
            target.data,
            author_id,
            description,
        )
        logger.info(
            "Rolled back to version",
            content_type=target.content_type,
            content_id=target.content_id,
            target_version=target.version_number,
            new_version=draft.version_number,
            author_id=author_id,
        )
        return draft

    # ==================== Queries ====================

    @store_guard("get_version")
    async def get_version(self, version_id: str) -> ContentVersion:
        record = await self.store.get(CONTENT_VERSION, version_id)
        if record is None:
            raise VersionNotFoundError(version_id)
        return ContentVersion.from_dict(record)

    @store_guard("get_latest_version")
    async def get_latest_version(
        self,
        content_type: str,
        content_id: str,
        include_drafts: bool = True,
        include_scheduled: bool = True,
    ) -> Optional[ContentVersion]:
        """Highest-numbered non-archived version matching the filters."""
        allowed = {VersionStatus.PUBLISHED}
        if include_drafts:
            allowed.add(VersionStatus.DRAFT)
        if include_scheduled:
            allowed.add(VersionStatus.SCHEDULED)

        for version in await self._query_versions(content_type, content_id, descending=True):
            if version.status in allowed:
                return version
        return None

    @store_guard("get_published_version")
    async def get_published_version(self, content_type: str, content_id: str) -> Optional[ContentVersion]:
        namespace = content_namespace(content_type)

        cached = await self._cache_get(content_id, namespace)
        if cached is not None:
            return ContentVersion.from_dict(cached)

        live = await self._query_versions(
            content_type, content_id, status=VersionStatus.PUBLISHED, descending=True
        )
        if not live:
            return None

        version = live[0]
        await self._cache_set(content_id, version.to_dict(), namespace)
        return version

    async def _cache_get(self, key: str, namespace: str) -> Optional[Dict[str, Any]]:
        if self.cache is None:
            return None
        try:
            return await self.cache.get(key, namespace=namespace)
        except Exception as e:
            logger.warning("Cache read failed", key=key, namespace=namespace, error=str(e))
            return None

    async def _cache_set(self, key: str, value: Dict[str, Any], namespace: str) -> None:
        if self.cache is None or self.content_cache_ttl <= 0:
            return
        try:
            await self.cache.set(key, value, namespace=namespace, ttl=self.content_cache_ttl)
        except Exception as e:
            logger.warning("Cache write failed", key=key, namespace=namespace, error=str(e))

    @store_guard("get_content_versions")
    async def get_content_versions(self, content_type: str, content_id: str) -> List[VersionMetadata]:
        """Version history, oldest first."""
        versions = await self._query_versions(content_type, content_id)
        return [v.to_metadata() for v in versions]

    @store_guard("compare_versions")
    async def compare_versions(
        self,
        version_id_1: str,
        version_id_2: str,
        detail: bool = False,
    ) -> VersionComparison:
        """
        Compare two versions of the same content item. The lower version
        number is treated as the previous one regardless of argument order.
        """
        first = await self.get_version(version_id_1)
        second = await self.get_version(version_id_2)

        if first.content_key != second.content_key:
            raise ComparisonMismatchError(version_id_1, version_id_2)

        previous, current = (
            (first, second) if first.version_number < second.version_number else (second, first)
        )
        changes = compare_data(previous.data, current.data)
        field_details = None
        if detail:
            field_details = [fc.to_dict() for fc in diff_fields(previous.data, current.data)]

        return VersionComparison(
            previous_version=previous,
            current_version=current,
            changes=changes,
            field_details=field_details,
        )
