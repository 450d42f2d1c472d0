"""
Tests for VersioningService.

Tests cover:
- Draft creation and per-item version numbering
- Publishing, single-live-version guarantee and conflicts
- Archiving (idempotent)
- Rollback, comparison, history and latest/published queries
- Notification, cache and store-failure side effects
"""

from unittest.mock import AsyncMock

import pytest

from content_engine.exceptions import (
    AlreadyPublishedError,
    ArchivedVersionError,
    ComparisonMismatchError,
    ConflictError,
    UnexpectedError,
    UnexpectedStatusError,
    UnknownContentTypeError,
    ValidationError,
    VersionNotFoundError,
)
from content_engine.models import VersionStatus
from content_engine.services import ContentTypeRegistry, VersioningService
from content_engine.services.content_versioning import content_namespace
from content_engine.services.notifications import NotificationType


# ============================================
# create_draft Tests
# ============================================


class TestCreateDraft:
    @pytest.mark.asyncio
    async def test_first_draft_is_version_one(self, versioning, sample_data, clock):
        draft = await versioning.create_draft("page", "home", sample_data, "alice", "Initial")

        assert draft.id
        assert draft.version_number == 1
        assert draft.status == VersionStatus.DRAFT
        assert draft.data == sample_data
        assert draft.author_id == "alice"
        assert draft.change_description == "Initial"
        assert draft.created_at == clock.now
        assert draft.updated_at == clock.now
        assert draft.published_at is None
        assert draft.scheduled_at is None
        assert draft.archived_at is None

    @pytest.mark.asyncio
    async def test_numbering_is_per_content_item(self, versioning):
        a1 = await versioning.create_draft("post", "a", {"n": 1}, "u")
        b1 = await versioning.create_draft("post", "b", {"n": 1}, "u")
        a2 = await versioning.create_draft("post", "a", {"n": 2}, "u")
        page_a1 = await versioning.create_draft("page", "a", {"n": 1}, "u")
        a3 = await versioning.create_draft("post", "a", {"n": 3}, "u")

        assert [a1.version_number, a2.version_number, a3.version_number] == [1, 2, 3]
        assert b1.version_number == 1
        assert page_a1.version_number == 1

    @pytest.mark.asyncio
    async def test_unknown_content_type_rejected(self, versioning, store):
        with pytest.raises(UnknownContentTypeError) as exc_info:
            await versioning.create_draft("recipe", "x", {}, "u")

        assert isinstance(exc_info.value, ValidationError)
        assert exc_info.value.error_code == "V001"
        assert await store.query("contentVersion") == []

    @pytest.mark.asyncio
    async def test_data_is_copied(self, versioning):
        data = {"tags": ["a"]}
        draft = await versioning.create_draft("post", "p", data, "u")
        data["tags"].append("b")

        stored = await versioning.get_version(draft.id)
        assert stored.data == {"tags": ["a"]}

    @pytest.mark.asyncio
    async def test_emits_draft_created(self, versioning, dispatcher, in_app):
        draft = await versioning.create_draft("post", "p", {}, "alice")
        await dispatcher.drain()

        [notification] = in_app.get_notifications()
        assert notification.type == NotificationType.DRAFT_CREATED
        assert notification.recipients == ["editors", "admins"]
        assert notification.data["versionId"] == draft.id
        assert notification.data["authorId"] == "alice"

    @pytest.mark.asyncio
    async def test_registered_type_accepted(self, store, dispatcher, cache, clock):
        registry = ContentTypeRegistry(["recipe"])
        service = VersioningService(store, registry, dispatcher, cache, clock)

        draft = await service.create_draft("recipe", "soup", {"serves": 2}, "chef")
        assert draft.version_number == 1


# ============================================
# publish_version Tests
# ============================================


class TestPublishVersion:
    @pytest.mark.asyncio
    async def test_publish_draft(self, versioning, clock):
        draft = await versioning.create_draft("page", "home", {"t": 1}, "u")
        clock.advance(minutes=5)

        published = await versioning.publish_version(draft.id, "editor")

        assert published.status == VersionStatus.PUBLISHED
        assert published.published_at == clock.now
        assert published.updated_at == clock.now
        assert published.scheduled_at is None

    @pytest.mark.asyncio
    async def test_round_trip_published_data(self, versioning, sample_data):
        draft = await versioning.create_draft("page", "home", sample_data, "u")
        await versioning.publish_version(draft.id, "u")

        live = await versioning.get_published_version("page", "home")
        assert live.id == draft.id
        assert live.data == sample_data

    @pytest.mark.asyncio
    async def test_only_one_published_version(self, versioning, clock):
        v1 = await versioning.create_draft("page", "home", {"v": 1}, "u")
        v2 = await versioning.create_draft("page", "home", {"v": 2}, "u")
        await versioning.publish_version(v1.id, "u")
        clock.advance(minutes=1)
        await versioning.publish_version(v2.id, "u")

        history = await versioning.get_content_versions("page", "home")
        statuses = {m.id: m.status for m in history}
        assert statuses == {v1.id: VersionStatus.ARCHIVED, v2.id: VersionStatus.PUBLISHED}

        old = await versioning.get_version(v1.id)
        assert old.archived_at == clock.now

    @pytest.mark.asyncio
    async def test_publish_does_not_touch_other_items(self, versioning):
        home = await versioning.create_draft("page", "home", {}, "u")
        about = await versioning.create_draft("page", "about", {}, "u")
        await versioning.publish_version(home.id, "u")
        await versioning.publish_version(about.id, "u")

        assert (await versioning.get_version(home.id)).status == VersionStatus.PUBLISHED

    @pytest.mark.asyncio
    async def test_double_publish_conflicts(self, versioning, clock):
        draft = await versioning.create_draft("page", "home", {}, "u")
        first = await versioning.publish_version(draft.id, "u")
        clock.advance(minutes=1)

        with pytest.raises(AlreadyPublishedError) as exc_info:
            await versioning.publish_version(draft.id, "u")

        assert isinstance(exc_info.value, ConflictError)
        assert exc_info.value.message == "Version is already published"
        unchanged = await versioning.get_version(draft.id)
        assert unchanged.published_at == first.published_at
        assert unchanged.updated_at == first.updated_at

    @pytest.mark.asyncio
    async def test_archived_version_cannot_be_published(self, versioning):
        draft = await versioning.create_draft("page", "home", {}, "u")
        await versioning.archive_version(draft.id, "u")

        with pytest.raises(ArchivedVersionError):
            await versioning.publish_version(draft.id, "u")

    @pytest.mark.asyncio
    async def test_unknown_version(self, versioning):
        with pytest.raises(VersionNotFoundError) as exc_info:
            await versioning.publish_version("missing", "u")
        assert exc_info.value.details["version_id"] == "missing"

    @pytest.mark.asyncio
    async def test_expected_status_mismatch(self, versioning):
        draft = await versioning.create_draft("page", "home", {}, "u")

        with pytest.raises(UnexpectedStatusError):
            await versioning.publish_version(draft.id, "system", expected_status=VersionStatus.SCHEDULED)

        assert (await versioning.get_version(draft.id)).status == VersionStatus.DRAFT

    @pytest.mark.asyncio
    async def test_emits_published_and_archived(self, versioning, dispatcher, in_app):
        v1 = await versioning.create_draft("page", "home", {}, "u")
        v2 = await versioning.create_draft("page", "home", {}, "u")
        await versioning.publish_version(v1.id, "u")
        await versioning.publish_version(v2.id, "u")
        await dispatcher.drain()

        types = [n.type for n in reversed(in_app.get_notifications())]
        assert types == [
            NotificationType.DRAFT_CREATED,
            NotificationType.DRAFT_CREATED,
            NotificationType.PUBLISHED,
            NotificationType.ARCHIVED,
            NotificationType.PUBLISHED,
        ]
        assert in_app.get_notifications()[0].recipients == ["editors", "admins", "subscribers"]

    @pytest.mark.asyncio
    async def test_full_notification_queue_does_not_fail_publish(self, versioning, dispatcher):
        dispatcher.emit = lambda notification: False
        draft = await versioning.create_draft("page", "home", {}, "u")

        published = await versioning.publish_version(draft.id, "u")
        assert published.status == VersionStatus.PUBLISHED


# ============================================
# archive_version Tests
# ============================================


class TestArchiveVersion:
    @pytest.mark.asyncio
    async def test_archive_draft(self, versioning, clock):
        draft = await versioning.create_draft("note", "n1", {}, "u")
        archived = await versioning.archive_version(draft.id, "u")

        assert archived.status == VersionStatus.ARCHIVED
        assert archived.archived_at == clock.now

    @pytest.mark.asyncio
    async def test_archive_is_idempotent(self, versioning, dispatcher, in_app, clock):
        draft = await versioning.create_draft("note", "n1", {}, "u")
        first = await versioning.archive_version(draft.id, "u")
        await dispatcher.drain()
        in_app.clear()
        clock.advance(hours=1)

        second = await versioning.archive_version(draft.id, "u")
        await dispatcher.drain()

        assert second.archived_at == first.archived_at
        assert second.updated_at == first.updated_at
        assert in_app.get_notifications() == []

    @pytest.mark.asyncio
    async def test_archive_clears_schedule(self, versioning, scheduling, clock):
        draft = await versioning.create_draft("note", "n1", {}, "u")
        await scheduling.schedule_content(draft.id, clock.now.replace(year=2027), "u")

        archived = await versioning.archive_version(draft.id, "u")
        assert archived.scheduled_at is None
        assert await scheduling.get_scheduled_content() == []

    @pytest.mark.asyncio
    async def test_archive_unknown_version(self, versioning):
        with pytest.raises(VersionNotFoundError):
            await versioning.archive_version("missing", "u")


# ============================================
# Rollback / Comparison / Queries
# ============================================


class TestRollback:
    @pytest.mark.asyncio
    async def test_rollback_creates_new_draft(self, versioning):
        await versioning.create_draft("post", "p", {"v": 1}, "u")
        v2 = await versioning.create_draft("post", "p", {"v": 2}, "u")
        await versioning.create_draft("post", "p", {"v": 3}, "u")

        rolled = await versioning.rollback_to_version(v2.id, "bob")

        assert rolled.version_number == 4
        assert rolled.status == VersionStatus.DRAFT
        assert rolled.data == {"v": 2}
        assert rolled.author_id == "bob"
        assert rolled.change_description == "Rollback to version 2"

        original = await versioning.get_version(v2.id)
        assert original.version_number == 2
        assert original.data == {"v": 2}
        assert original.status == VersionStatus.DRAFT

    @pytest.mark.asyncio
    async def test_rollback_custom_description(self, versioning):
        v1 = await versioning.create_draft("post", "p", {"v": 1}, "u")
        rolled = await versioning.rollback_to_version(v1.id, "u", "Restore launch copy")
        assert rolled.change_description == "Restore launch copy"

    @pytest.mark.asyncio
    async def test_rollback_from_archived(self, versioning):
        v1 = await versioning.create_draft("post", "p", {"v": 1}, "u")
        await versioning.archive_version(v1.id, "u")

        rolled = await versioning.rollback_to_version(v1.id, "u")
        assert rolled.version_number == 2


class TestCompareVersions:
    @pytest.mark.asyncio
    async def test_lower_number_is_previous(self, versioning):
        v1 = await versioning.create_draft("post", "p", {"a": 1, "b": 2}, "u")
        v2 = await versioning.create_draft("post", "p", {"b": 2, "c": 3}, "u")

        comparison = await versioning.compare_versions(v2.id, v1.id)

        assert comparison.previous_version.id == v1.id
        assert comparison.current_version.id == v2.id
        assert comparison.changes.to_dict() == {"added": ["c"], "removed": ["a"], "modified": []}
        assert comparison.field_details is None

    @pytest.mark.asyncio
    async def test_detail_view(self, versioning):
        v1 = await versioning.create_draft("post", "p", {"a": 1}, "u")
        v2 = await versioning.create_draft("post", "p", {"a": 2}, "u")

        comparison = await versioning.compare_versions(v1.id, v2.id, detail=True)
        assert comparison.field_details == [
            {"field": "a", "changeType": "modified", "oldValue": 1, "newValue": 2}
        ]

    @pytest.mark.asyncio
    async def test_different_items_rejected(self, versioning):
        a = await versioning.create_draft("post", "a", {}, "u")
        b = await versioning.create_draft("post", "b", {}, "u")

        with pytest.raises(ComparisonMismatchError):
            await versioning.compare_versions(a.id, b.id)


class TestQueries:
    @pytest.mark.asyncio
    async def test_history_is_ascending_metadata(self, versioning):
        for n in range(3):
            await versioning.create_draft("post", "p", {"n": n}, "u")

        history = await versioning.get_content_versions("post", "p")
        assert [m.version_number for m in history] == [1, 2, 3]
        assert "data" not in history[0].to_api_dict()

    @pytest.mark.asyncio
    async def test_history_of_unknown_item_is_empty(self, versioning):
        assert await versioning.get_content_versions("post", "nope") == []

    @pytest.mark.asyncio
    async def test_latest_version_filters(self, versioning, scheduling, clock):
        v1 = await versioning.create_draft("post", "p", {}, "u")
        await versioning.publish_version(v1.id, "u")
        v2 = await versioning.create_draft("post", "p", {}, "u")
        v3 = await versioning.create_draft("post", "p", {}, "u")
        await scheduling.schedule_content(v3.id, clock.now.replace(year=2027), "u")

        assert (await versioning.get_latest_version("post", "p")).id == v3.id
        assert (await versioning.get_latest_version("post", "p", include_scheduled=False)).id == v2.id
        latest = await versioning.get_latest_version(
            "post", "p", include_drafts=False, include_scheduled=False
        )
        assert latest.id == v1.id

    @pytest.mark.asyncio
    async def test_latest_version_skips_archived(self, versioning):
        v1 = await versioning.create_draft("post", "p", {}, "u")
        await versioning.archive_version(v1.id, "u")
        assert await versioning.get_latest_version("post", "p") is None

    @pytest.mark.asyncio
    async def test_no_published_version(self, versioning):
        await versioning.create_draft("post", "p", {}, "u")
        assert await versioning.get_published_version("post", "p") is None


# ============================================
# Cache and failure handling
# ============================================


class TestSideEffects:
    @pytest.mark.asyncio
    async def test_published_version_is_cached_and_invalidated(self, versioning, cache):
        v1 = await versioning.create_draft("page", "home", {"v": 1}, "u")
        await versioning.publish_version(v1.id, "u")

        await versioning.get_published_version("page", "home")
        assert await cache.get("home", namespace=content_namespace("page")) is not None

        v2 = await versioning.create_draft("page", "home", {"v": 2}, "u")
        await versioning.publish_version(v2.id, "u")

        live = await versioning.get_published_version("page", "home")
        assert live.id == v2.id

    @pytest.mark.asyncio
    async def test_zero_ttl_reads_through_to_store(self, store, registry, cache, clock):
        reader = VersioningService(store, registry, cache=cache, clock=clock, content_cache_ttl=0)
        # Another replica: same store, no shared cache
        writer = VersioningService(store, registry, clock=clock)

        v1 = await writer.create_draft("page", "home", {"v": 1}, "u")
        await writer.publish_version(v1.id, "u")
        assert (await reader.get_published_version("page", "home")).id == v1.id
        assert await cache.get("home", namespace=content_namespace("page")) is None

        v2 = await writer.create_draft("page", "home", {"v": 2}, "u")
        await writer.publish_version(v2.id, "u")
        assert (await reader.get_published_version("page", "home")).id == v2.id

    @pytest.mark.asyncio
    async def test_cache_failure_does_not_fail_transition(self, versioning, cache):
        cache.invalidate_namespace = AsyncMock(side_effect=RuntimeError("cache down"))
        draft = await versioning.create_draft("page", "home", {}, "u")

        published = await versioning.publish_version(draft.id, "u")
        assert published.status == VersionStatus.PUBLISHED

    @pytest.mark.asyncio
    async def test_store_failure_wrapped_as_unexpected(self, versioning, store):
        store.get = AsyncMock(side_effect=RuntimeError("disk on fire"))

        with pytest.raises(UnexpectedError) as exc_info:
            await versioning.get_version("anything")

        assert exc_info.value.http_status == 500
        assert isinstance(exc_info.value.cause, RuntimeError)

    @pytest.mark.asyncio
    async def test_engine_errors_from_store_propagate(self, versioning, store):
        store.query = AsyncMock(side_effect=ConflictError("taken", error_code="C005"))

        with pytest.raises(ConflictError):
            await versioning.create_draft("page", "home", {}, "u")
