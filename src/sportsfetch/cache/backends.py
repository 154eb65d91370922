"""
Cache backend implementations.

Provides memory and null cache backends. Entries carry their category and
an absolute expiry on the monotonic clock.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import re


@dataclass
class CacheEntry:
    """A cache entry with metadata.

    Attributes:
        key: Cache key
        value: Cached value
        category: Category tag the TTL was chosen from
        created_at: Creation time (monotonic seconds)
        expires_at: Absolute expiry (monotonic seconds), None = never
        hits: Number of cache hits
    """

    key: str
    value: Any
    category: str
    created_at: float
    expires_at: float | None = None
    hits: int = 0

    @property
    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        return time.monotonic() >= self.expires_at

    @property
    def ttl_remaining(self) -> float | None:
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - time.monotonic())


class CacheBackend(ABC):
    """Abstract base class for cache backends."""

    @abstractmethod
    async def get(self, key: str) -> CacheEntry | None:
        """Get an unexpired entry.

        Args:
            key: Cache key

        Returns:
            CacheEntry or None if missing or expired
        """
        raise NotImplementedError

    @abstractmethod
    async def set(
        self,
        key: str,
        value: Any,
        ttl: float | None = None,
        category: str = "default",
    ) -> None:
        """Store a value.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time-to-live in seconds (None = no expiry)
            category: Category tag recorded on the entry
        """
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key. Returns True if it was present."""
        raise NotImplementedError

    @abstractmethod
    async def delete_matching(self, pattern: re.Pattern[str]) -> list[str]:
        """Delete every key matching ``pattern`` in one step.

        Returns:
            Keys that were removed
        """
        raise NotImplementedError

    @abstractmethod
    async def exists(self, key: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def keys(self) -> list[str]:
        """Return all unexpired keys."""
        raise NotImplementedError

    @abstractmethod
    async def clear(self) -> None:
        """Clear all cache entries."""
        raise NotImplementedError

    @property
    def size(self) -> int:
        return 0

    @property
    def evictions(self) -> int:
        return 0

    async def close(self) -> None:
        """Close the backend (cleanup)."""
        return None


class MemoryCache(CacheBackend):
    """In-memory cache backend with TTL support.

    No method awaits internally, so each call completes atomically on the
    event loop and readers never observe a partial update.

    Example:
        >>> cache = MemoryCache(max_size=1000)
        >>> await cache.set("sportsfetch:GetTeam:12", b"{}", ttl=3600, category="team")
        >>> entry = await cache.get("sportsfetch:GetTeam:12")
    """

    def __init__(self, max_size: int = 1000) -> None:
        """Initialize memory cache.

        Args:
            max_size: Maximum number of entries (0 = unbounded)
        """
        self._cache: dict[str, CacheEntry] = {}
        self._max_size = max_size
        self._evictions = 0

    async def get(self, key: str) -> CacheEntry | None:
        entry = self._cache.get(key)
        if entry is None:
            return None
        if entry.is_expired:
            del self._cache[key]
            return None
        entry.hits += 1
        return entry

    async def set(
        self,
        key: str,
        value: Any,
        ttl: float | None = None,
        category: str = "default",
    ) -> None:
        if (
            self._max_size
            and len(self._cache) >= self._max_size
            and key not in self._cache
        ):
            self._evict_one()

        now = time.monotonic()
        self._cache.pop(key, None)
        self._cache[key] = CacheEntry(
            key=key,
            value=value,
            category=category,
            created_at=now,
            expires_at=now + ttl if ttl is not None else None,
        )

    async def delete(self, key: str) -> bool:
        return self._cache.pop(key, None) is not None

    async def delete_matching(self, pattern: re.Pattern[str]) -> list[str]:
        matched = [k for k in self._cache if pattern.search(k)]
        for key in matched:
            del self._cache[key]
        return matched

    async def exists(self, key: str) -> bool:
        entry = self._cache.get(key)
        if entry is None:
            return False
        if entry.is_expired:
            del self._cache[key]
            return False
        return True

    async def keys(self) -> list[str]:
        return [k for k, v in self._cache.items() if not v.is_expired]

    async def clear(self) -> None:
        self._cache.clear()

    def _evict_one(self) -> None:
        """Evict an expired entry if any, otherwise the oldest one."""
        if not self._cache:
            return

        expired = next((k for k, v in self._cache.items() if v.is_expired), None)
        victim = expired if expired is not None else next(iter(self._cache))
        del self._cache[victim]
        self._evictions += 1

    @property
    def size(self) -> int:
        return len(self._cache)

    @property
    def evictions(self) -> int:
        return self._evictions


class NullCache(CacheBackend):
    """Cache backend that stores nothing; used when caching is disabled."""

    async def get(self, key: str) -> CacheEntry | None:
        return None

    async def set(
        self,
        key: str,
        value: Any,
        ttl: float | None = None,
        category: str = "default",
    ) -> None:
        return None

    async def delete(self, key: str) -> bool:
        return False

    async def delete_matching(self, pattern: re.Pattern[str]) -> list[str]:
        return []

    async def exists(self, key: str) -> bool:
        return False

    async def keys(self) -> list[str]:
        return []

    async def clear(self) -> None:
        return None
