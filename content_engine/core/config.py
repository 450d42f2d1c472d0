"""
Environment-based engine configuration.

All settings are read from environment variables once at process start
and passed explicitly to the services that need them.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional


DEFAULT_CONTENT_TYPES = ["page", "post", "note", "form", "media"]


def _split_csv(raw: str) -> List[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class EngineSettings:
    """Engine settings"""
    env: str = "development"

    # Version store
    store_backend: str = "memory"          # memory | mongo
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "content_engine"
    mongodb_timeout_ms: int = 5000

    # Content types accepted by create_draft
    content_types: List[str] = field(default_factory=lambda: list(DEFAULT_CONTENT_TYPES))

    # Scheduler
    scheduler_enabled: bool = True
    scheduler_interval: float = 60.0       # seconds
    scheduled_cache_ttl: int = 300         # seconds
    content_cache_ttl: int = 60            # seconds

    # Notifications
    notification_queue_size: int = 1000
    notification_webhook_urls: List[str] = field(default_factory=list)

    # Sweep trigger
    cron_secret: Optional[str] = None

    # HTTP
    allowed_origins: List[str] = field(default_factory=list)

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @classmethod
    def from_env(cls) -> "EngineSettings":
        content_types = _split_csv(os.getenv("CONTENT_TYPES", ""))
        return cls(
            env=os.getenv("ENV", "development"),
            store_backend=os.getenv("STORE_BACKEND", "memory").lower(),
            mongodb_uri=os.getenv("MONGODB_URI", "mongodb://localhost:27017"),
            mongodb_database=os.getenv("MONGODB_DATABASE", "content_engine"),
            mongodb_timeout_ms=int(os.getenv("MONGODB_TIMEOUT", "5000")),
            content_types=content_types or list(DEFAULT_CONTENT_TYPES),
            scheduler_enabled=_env_bool("SCHEDULER_ENABLED", True),
            scheduler_interval=float(os.getenv("SCHEDULER_INTERVAL", "60")),
            scheduled_cache_ttl=int(os.getenv("SCHEDULED_CACHE_TTL", "300")),
            content_cache_ttl=int(os.getenv("CONTENT_CACHE_TTL", "60")),
            notification_queue_size=int(os.getenv("NOTIFICATION_QUEUE_SIZE", "1000")),
            notification_webhook_urls=_split_csv(os.getenv("NOTIFICATION_WEBHOOK_URLS", "")),
            cron_secret=os.getenv("CRON_SECRET") or None,
            allowed_origins=_split_csv(os.getenv("ALLOWED_ORIGINS", "")),
        )
