"""
Common pytest fixtures for the content engine test suite.

Provides shared fixtures for:
- A controllable clock
- In-memory store, registry, cache and notification bus
- Wired versioning and scheduling services
- A FastAPI TestClient with the scheduler disabled
"""

import os
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from content_engine.core import EngineSettings
from content_engine.core.config import DEFAULT_CONTENT_TYPES
from content_engine.services import (
    CacheService,
    ContentTypeRegistry,
    InMemoryVersionStore,
    NotificationDispatcher,
    SchedulingService,
    VersioningService,
)
from content_engine.services.notifications import InAppNotificationHandler


START = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
CRON_SECRET = "test-cron-secret"


# ============================================
# Environment Setup
# ============================================

@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Set up test environment variables."""
    os.environ.setdefault("ENV", "development")
    os.environ.setdefault("LOG_FORMAT", "console")
    os.environ.setdefault("SCHEDULER_ENABLED", "false")
    yield


class FakeClock:
    """Callable clock that only moves when told to"""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


# ============================================
# Service Fixtures
# ============================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryVersionStore()


@pytest.fixture
def registry():
    return ContentTypeRegistry(DEFAULT_CONTENT_TYPES)


@pytest.fixture
def cache():
    return CacheService()


@pytest.fixture
def in_app():
    return InAppNotificationHandler()


@pytest.fixture
def dispatcher(in_app):
    bus = NotificationDispatcher(max_queue_size=100)
    bus.register_handler("in_app", in_app)
    return bus


@pytest.fixture
def versioning(store, registry, dispatcher, cache, clock):
    return VersioningService(
        store,
        registry,
        notifications=dispatcher,
        cache=cache,
        clock=clock,
    )


@pytest.fixture
def scheduling(store, versioning, cache, dispatcher, clock):
    return SchedulingService(
        store,
        versioning,
        cache=cache,
        notifications=dispatcher,
        clock=clock,
        check_interval=0.05,
    )


# ============================================
# API Fixtures
# ============================================

@pytest.fixture
def settings():
    return EngineSettings(
        env="development",
        scheduler_enabled=False,
        cron_secret=CRON_SECRET,
    )


@pytest.fixture
def client(settings, store, clock):
    """TestClient over a fresh app sharing the test's store and clock."""
    from content_engine.main import create_app

    app = create_app(settings=settings, store=store, clock=clock)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def sample_data():
    return {
        "title": "Hello World",
        "body": "First paragraph.",
        "tags": ["intro", "news"],
        "meta": {"featured": False, "priority": 1},
    }
