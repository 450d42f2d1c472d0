"""
Response cache - TTL key/value store grouped by namespace.

Used for the scheduled-content list (namespace "scheduling") and for
published-version reads (namespace "content:{content_type}").
"""

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..core import get_logger

logger = get_logger(__name__)

NAMESPACE_SEPARATOR = "::"


@dataclass
class CacheEntry:
    value: Any
    expires_at: Optional[float]  # None means no expiration

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and self.expires_at <= now


class CacheService:
    """In-memory cache with per-entry TTL and namespace invalidation"""

    def __init__(
        self,
        max_entries: int = 1000,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._max_entries = max_entries
        self._enabled = enabled
        self._clock = clock
        self.hits = 0
        self.misses = 0

    @staticmethod
    def _key(key: str, namespace: Optional[str]) -> str:
        return f"{namespace}{NAMESPACE_SEPARATOR}{key}" if namespace else key

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled
        if not enabled:
            self._entries.clear()
        logger.info("Cache toggled", enabled=enabled)

    @property
    def size(self) -> int:
        return len(self._entries)

    async def get(self, key: str, namespace: Optional[str] = None) -> Optional[Any]:
        if not self._enabled:
            return None

        cache_key = self._key(key, namespace)
        entry = self._entries.get(cache_key)
        if entry is None:
            self.misses += 1
            return None
        if entry.is_expired(self._clock()):
            del self._entries[cache_key]
            self.misses += 1
            return None

        self.hits += 1
        return entry.value

    async def set(
        self,
        key: str,
        value: Any,
        namespace: Optional[str] = None,
        ttl: Optional[float] = None,
    ) -> None:
        if not self._enabled:
            return

        cache_key = self._key(key, namespace)
        expires_at = self._clock() + ttl if ttl else None
        self._entries[cache_key] = CacheEntry(value=value, expires_at=expires_at)
        self._entries.move_to_end(cache_key)

        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Cache entry evicted", key=evicted)

    async def remove(self, key: str, namespace: Optional[str] = None) -> bool:
        return self._entries.pop(self._key(key, namespace), None) is not None

    async def invalidate_namespace(self, namespace: str) -> int:
        """Drop every entry in a namespace; returns the number removed."""
        prefix = f"{namespace}{NAMESPACE_SEPARATOR}"
        keys = [k for k in self._entries if k.startswith(prefix)]
        for k in keys:
            del self._entries[k]
        if keys:
            logger.debug("Cache namespace invalidated", namespace=namespace, removed=len(keys))
        return len(keys)

    async def clear(self) -> None:
        self._entries.clear()
