"""
Tests for the notification subsystem.

Tests cover:
- Dispatcher queueing, delivery and failure isolation
- Worker lifecycle
- In-app notification store
- Webhook delivery over a mocked transport
"""

import asyncio
import json
from unittest.mock import AsyncMock

import httpx
import pytest

from content_engine.services.notifications import (
    InAppNotificationHandler,
    LoggingNotificationHandler,
    Notification,
    NotificationDispatcher,
    NotificationType,
    WebhookNotificationHandler,
    content_notification,
)


def make_notification(recipients=None, **kwargs):
    return Notification(
        type=kwargs.pop("type", NotificationType.SYSTEM_INFO),
        title=kwargs.pop("title", "Test"),
        message=kwargs.pop("message", "Test message"),
        recipients=recipients if recipients is not None else ["editors"],
        **kwargs,
    )


# ============================================
# Event Tests
# ============================================


class TestNotification:
    def test_is_for(self):
        notification = make_notification(["editors", "admins"])

        assert notification.is_for("editors")
        assert not notification.is_for("subscribers")
        assert make_notification(["all"]).is_for("anyone")

    def test_to_dict(self):
        notification = make_notification(data={"k": "v"})
        payload = notification.to_dict()

        assert payload["type"] == "system.info"
        assert payload["data"] == {"k": "v"}
        assert payload["readBy"] == []
        assert payload["createdAt"].endswith("+00:00")

    @pytest.mark.asyncio
    async def test_content_notification_carries_version(self, versioning):
        version = await versioning.create_draft("page", "home", {}, "u")

        notification = content_notification(
            NotificationType.PUBLISHED, "t", "m", ["all"], version=version, authorId="u"
        )

        assert notification.data == {
            "contentType": "page",
            "contentId": "home",
            "versionId": version.id,
            "versionNumber": 1,
            "authorId": "u",
        }


# ============================================
# Dispatcher Tests
# ============================================


class TestNotificationDispatcher:
    @pytest.mark.asyncio
    async def test_emit_then_drain(self, dispatcher, in_app):
        assert dispatcher.emit(make_notification()) is True
        assert dispatcher.pending == 1

        assert await dispatcher.drain() == 1
        assert dispatcher.pending == 0
        assert len(in_app.get_notifications()) == 1
        assert dispatcher.delivered_count == 1

    @pytest.mark.asyncio
    async def test_full_queue_drops(self):
        bus = NotificationDispatcher(max_queue_size=1)

        assert bus.emit(make_notification()) is True
        assert bus.emit(make_notification()) is False
        assert bus.dropped_count == 1
        assert bus.emitted_count == 1

    @pytest.mark.asyncio
    async def test_failing_handler_is_isolated(self, dispatcher, in_app):
        broken = AsyncMock()
        broken.handle.side_effect = RuntimeError("down")
        dispatcher.register_handler("broken", broken)

        dispatcher.emit(make_notification())
        await dispatcher.drain()

        assert len(in_app.get_notifications()) == 1
        assert dispatcher.failed_count == 1
        assert dispatcher.delivered_count == 1

    @pytest.mark.asyncio
    async def test_handler_registry(self, dispatcher):
        handler = LoggingNotificationHandler()
        dispatcher.register_handler("log", handler)

        assert dispatcher.get_handler("log") is handler
        assert dispatcher.handler_names == ["in_app", "log"]
        assert dispatcher.unregister_handler("log") is True
        assert dispatcher.unregister_handler("log") is False

    @pytest.mark.asyncio
    async def test_logging_handler(self):
        await LoggingNotificationHandler().handle(make_notification())

    @pytest.mark.asyncio
    async def test_worker_delivers(self, dispatcher, in_app):
        await dispatcher.start()
        assert dispatcher.is_running

        dispatcher.emit(make_notification())
        dispatcher.emit(make_notification())
        await dispatcher.drain()

        assert len(in_app.get_notifications()) == 2
        await dispatcher.stop()
        assert not dispatcher.is_running

    @pytest.mark.asyncio
    async def test_stop_flushes_pending(self, dispatcher, in_app):
        await dispatcher.start()
        for _ in range(5):
            dispatcher.emit(make_notification())

        await dispatcher.stop()

        assert len(in_app.get_notifications()) == 5

    @pytest.mark.asyncio
    async def test_stop_times_out_on_slow_handler(self, dispatcher):
        release = asyncio.Event()

        class SlowHandler(LoggingNotificationHandler):
            async def handle(self, notification):
                await release.wait()

        dispatcher.register_handler("slow", SlowHandler())
        await dispatcher.start()
        dispatcher.emit(make_notification())

        await dispatcher.stop(timeout=0.05)
        assert not dispatcher.is_running

    @pytest.mark.asyncio
    async def test_stop_without_start(self, dispatcher):
        await dispatcher.stop()
        assert not dispatcher.is_running


# ============================================
# In-app store Tests
# ============================================


class TestInAppNotificationHandler:
    @pytest.mark.asyncio
    async def test_newest_first_and_bounded(self):
        handler = InAppNotificationHandler(max_notifications=3)
        for i in range(5):
            await handler.handle(make_notification(title=f"n{i}"))

        assert [n.title for n in handler.get_notifications()] == ["n4", "n3", "n2"]

    @pytest.mark.asyncio
    async def test_default_keeps_last_hundred(self, in_app):
        for i in range(120):
            await in_app.handle(make_notification(title=f"n{i}"))

        notifications = in_app.get_notifications()
        assert len(notifications) == 100
        assert notifications[0].title == "n119"

    @pytest.mark.asyncio
    async def test_get_for_recipient(self, in_app):
        await in_app.handle(make_notification(["editors"], title="editors"))
        await in_app.handle(make_notification(["all"], title="everyone"))
        await in_app.handle(make_notification(["admins"], title="admins"))

        titles = [n.title for n in in_app.get_for_recipient("editors")]
        assert titles == ["everyone", "editors"]

    @pytest.mark.asyncio
    async def test_mark_as_read(self, in_app):
        notification = make_notification()
        await in_app.handle(notification)

        assert in_app.mark_as_read(notification.id, "alice") is True
        assert in_app.mark_as_read(notification.id, "alice") is True
        assert notification.read is True
        assert notification.read_by == ["alice"]
        assert in_app.mark_as_read("unknown", "alice") is False

    @pytest.mark.asyncio
    async def test_mark_all_as_read(self, in_app):
        await in_app.handle(make_notification(["editors"]))
        await in_app.handle(make_notification(["all"]))
        await in_app.handle(make_notification(["admins"]))

        assert in_app.mark_all_as_read("editors") == 2
        assert in_app.mark_all_as_read("editors") == 0

        unread = [n for n in in_app.get_notifications() if not n.read]
        assert [n.recipients for n in unread] == [["admins"]]

    @pytest.mark.asyncio
    async def test_clear(self, in_app):
        await in_app.handle(make_notification())
        in_app.clear()
        assert in_app.get_notifications() == []


# ============================================
# Webhook Tests
# ============================================


class TestWebhookNotificationHandler:
    @staticmethod
    def handler_with(responder, urls):
        transport = httpx.MockTransport(responder)
        return WebhookNotificationHandler(
            urls,
            client_factory=lambda: httpx.AsyncClient(transport=transport),
        )

    @pytest.mark.asyncio
    async def test_posts_notification(self):
        received = []

        def responder(request):
            received.append((str(request.url), json.loads(request.content)))
            return httpx.Response(200)

        handler = self.handler_with(responder, ["https://hooks.example.com/a"])
        notification = make_notification()

        assert await handler.send(notification) == 1
        url, body = received[0]
        assert url == "https://hooks.example.com/a"
        assert body["notification"]["id"] == notification.id

    @pytest.mark.asyncio
    async def test_counts_only_successes(self):
        def responder(request):
            if request.url.host == "bad.example.com":
                return httpx.Response(500)
            return httpx.Response(204)

        handler = self.handler_with(
            responder, ["https://ok.example.com/", "https://bad.example.com/"]
        )
        assert await handler.send(make_notification()) == 1

    @pytest.mark.asyncio
    async def test_transport_error_is_logged(self):
        def responder(request):
            raise httpx.ConnectError("refused", request=request)

        handler = self.handler_with(responder, ["https://down.example.com/"])
        assert await handler.send(make_notification()) == 0

    @pytest.mark.asyncio
    async def test_disabled_without_urls(self):
        handler = WebhookNotificationHandler(["", ""])

        assert handler.enabled is False
        assert await handler.send(make_notification()) == 0
