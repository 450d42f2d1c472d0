"""Engine services: storage, cache, notifications, versioning and scheduling."""

from .version_store import CONTENT_VERSION, InMemoryVersionStore, MongoVersionStore, VersionStore
from .content_types import ContentTypeDefinition, ContentTypeRegistry
from .cache_service import CacheService
from .notifications import NotificationDispatcher
from .content_versioning import SchedulingService, VersioningService

__all__ = [
    "CONTENT_VERSION",
    "VersionStore",
    "InMemoryVersionStore",
    "MongoVersionStore",
    "ContentTypeDefinition",
    "ContentTypeRegistry",
    "CacheService",
    "NotificationDispatcher",
    "VersioningService",
    "SchedulingService",
]
