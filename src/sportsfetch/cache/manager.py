"""
Cache manager for upstream responses.

Adds category TTL policy, single-flight de-duplication of concurrent misses,
pattern invalidation and warming on top of a cache backend.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from sportsfetch.cache.backends import CacheBackend, MemoryCache, NullCache
from sportsfetch.cache.key import CacheKeyGenerator
from sportsfetch.cancel import wait_cancellable
from sportsfetch.errors import OperationCancelledError
from sportsfetch.telemetry.logger import get_logger
from sportsfetch.types.request import FetchCategory, category_name

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from sportsfetch.cancel import CancelToken
    from sportsfetch.telemetry.metrics import MetricsCollector

logger = get_logger(__name__)

T = TypeVar("T")

MINUTE = 60.0
HOUR = 60 * MINUTE

DEFAULT_CATEGORY_TTLS: dict[str, float] = {
    FetchCategory.SEASON.value: 24 * HOUR,
    FetchCategory.TEAM.value: 12 * HOUR,
    FetchCategory.GAME.value: 60 * MINUTE,
    FetchCategory.BOX_SCORE.value: 60 * MINUTE,
    FetchCategory.SCHEDULE.value: 60 * MINUTE,
    FetchCategory.PLAYER_STATS.value: 15 * MINUTE,
    FetchCategory.LIVE.value: 30.0,
}


@dataclass
class CacheStats:
    """Cache statistics.

    Attributes:
        hits: Lookups served from the cache
        misses: Lookups that invoked a factory
        coalesced: Lookups that joined another caller's in-flight factory
        sets: Values stored
        removals: Keys removed explicitly or by pattern
        evictions: Entries evicted for capacity
    """

    hits: int = 0
    misses: int = 0
    coalesced: int = 0
    sets: int = 0
    removals: int = 0
    evictions: int = 0

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses + self.coalesced

    @property
    def hit_rate(self) -> float:
        """Get cache hit rate (0.0 to 1.0)."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "coalesced": self.coalesced,
            "sets": self.sets,
            "removals": self.removals,
            "evictions": self.evictions,
            "total_requests": self.total_requests,
            "hit_rate": self.hit_rate,
        }

    def reset(self) -> None:
        self.hits = 0
        self.misses = 0
        self.coalesced = 0
        self.sets = 0
        self.removals = 0
        self.evictions = 0


@dataclass
class CacheConfig:
    """Cache configuration.

    Attributes:
        enabled: Whether caching is enabled
        default_ttl: TTL in seconds for categories without their own row
        category_ttls: TTL in seconds per category tag
        warming_enabled: Whether warm() populates keys
        max_size: Maximum number of entries
        key_prefix: Prefix for generated keys
    """

    enabled: bool = True
    default_ttl: float = 30 * MINUTE
    category_ttls: dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_CATEGORY_TTLS)
    )
    warming_enabled: bool = True
    max_size: int = 1000
    key_prefix: str = "sportsfetch"

    def ttl_for(self, category: FetchCategory | str | None) -> float:
        """TTL in seconds for a category tag."""
        return self.category_ttls.get(category_name(category), self.default_ttl)

    @classmethod
    def disabled(cls) -> CacheConfig:
        """Create disabled cache config."""
        return cls(enabled=False, warming_enabled=False)


@dataclass
class WarmResult:
    """Outcome of a warming pass.

    Attributes:
        enabled: False when warming was skipped by configuration
        warmed: Keys populated by this pass
        already_cached: Keys that were already present
        failed: Keys whose loader raised, with the error
    """

    enabled: bool = True
    warmed: list[str] = field(default_factory=list)
    already_cached: list[str] = field(default_factory=list)
    failed: dict[str, BaseException] = field(default_factory=dict)


class _LeaderCancelled(Exception):
    """Signals joined callers that the factory owner was cancelled."""


class CacheManager:
    """Single-flight TTL cache.

    Concurrent callers for the same key share one factory invocation; a
    factory failure reaches every joined caller and nothing is cached. If the
    caller running the factory is cancelled, by task cancellation or by its
    own token, joined callers elect a new one instead of failing.

    Example:
        >>> cache = CacheManager(CacheConfig())
        >>> key = cache.generate_key("GetSeason", 2024)
        >>> body = await cache.get_or_set(key, fetch_season, category="season")
    """

    def __init__(
        self,
        config: CacheConfig | None = None,
        backend: CacheBackend | None = None,
        key_generator: CacheKeyGenerator | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._config = config or CacheConfig()
        if backend is not None:
            self._backend = backend
        elif self._config.enabled:
            self._backend = MemoryCache(max_size=self._config.max_size)
        else:
            self._backend = NullCache()

        self._key_generator = key_generator or CacheKeyGenerator(
            prefix=self._config.key_prefix
        )
        self._metrics = metrics
        self._stats = CacheStats()

        self._in_flight: dict[str, asyncio.Future[Any]] = {}
        self._invalidated: set[str] = set()

    @property
    def config(self) -> CacheConfig:
        return self._config

    @property
    def backend(self) -> CacheBackend:
        return self._backend

    @property
    def stats(self) -> CacheStats:
        self._stats.evictions = self._backend.evictions
        return self._stats

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    def generate_key(self, operation: str, *params: Any) -> str:
        """Generate a deterministic key namespaced by operation."""
        return self._key_generator.generate(operation, *params)

    def ttl_for(self, category: FetchCategory | str | None) -> float:
        return self._config.ttl_for(category)

    def _record(self, key: str, hit: bool) -> None:
        if self._metrics is not None:
            operation = self._key_generator.operation_of(key) or "unknown"
            self._metrics.record_cache_operation(operation, hit)

    async def get(self, key: str) -> Any | None:
        """Return the cached value for ``key`` or None."""
        entry = await self._backend.get(key)
        if entry is None:
            self._stats.misses += 1
            self._record(key, hit=False)
            return None
        self._stats.hits += 1
        self._record(key, hit=True)
        return entry.value

    async def set(
        self,
        key: str,
        value: Any,
        *,
        category: FetchCategory | str | None = None,
        ttl: float | None = None,
    ) -> None:
        """Store a value with the category TTL or an explicit override."""
        effective_ttl = ttl if ttl is not None else self.ttl_for(category)
        await self._backend.set(
            key, value, ttl=effective_ttl, category=category_name(category)
        )
        self._stats.sets += 1

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Awaitable[T]],
        *,
        category: FetchCategory | str | None = None,
        ttl: float | None = None,
        cancel_token: CancelToken | None = None,
    ) -> T:
        """Return the cached value, or compute it once for all concurrent callers.

        Args:
            key: Cache key
            factory: Async callable producing the value on a miss
            category: Category tag selecting the TTL
            ttl: TTL override in seconds
            cancel_token: Optional token aborting a wait on another caller

        Returns:
            Cached or freshly computed value

        Raises:
            Exception: Whatever the factory raised, for every joined caller
        """
        while True:
            entry = await self._backend.get(key)
            if entry is not None:
                self._stats.hits += 1
                self._record(key, hit=True)
                logger.debug("Cache hit", key=key)
                return entry.value

            pending = self._in_flight.get(key)
            if pending is None:
                return await self._populate(key, factory, category, ttl)

            self._stats.coalesced += 1
            logger.debug("Joining in-flight fetch", key=key)
            try:
                return await wait_cancellable(asyncio.shield(pending), cancel_token)
            except _LeaderCancelled:
                continue

    async def _populate(
        self,
        key: str,
        factory: Callable[[], Awaitable[T]],
        category: FetchCategory | str | None,
        ttl: float | None,
    ) -> T:
        self._stats.misses += 1
        self._record(key, hit=False)
        logger.debug("Cache miss", key=key)

        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._in_flight[key] = future
        try:
            value = await factory()
        except (asyncio.CancelledError, OperationCancelledError):
            future.set_exception(_LeaderCancelled(key))
            future.exception()
            raise
        except BaseException as exc:
            future.set_exception(exc)
            future.exception()
            raise
        else:
            if key in self._invalidated:
                logger.debug("Key invalidated during fetch, not storing", key=key)
            elif value is not None:
                await self.set(key, value, category=category, ttl=ttl)
            future.set_result(value)
            return value
        finally:
            if self._in_flight.get(key) is future:
                del self._in_flight[key]
            self._invalidated.discard(key)

    async def remove(self, key: str) -> bool:
        """Remove one key. An in-flight fetch for it will not be stored."""
        if key in self._in_flight:
            self._invalidated.add(key)
        removed = await self._backend.delete(key)
        if removed:
            self._stats.removals += 1
        return removed

    async def remove_by_pattern(self, pattern: str | re.Pattern[str]) -> int:
        """Remove every key matching a regex (case-insensitive for strings).

        Matching in-flight keys are marked so their pending results are not
        stored.

        Returns:
            Number of keys removed
        """
        regex = re.compile(pattern, re.IGNORECASE) if isinstance(pattern, str) else pattern
        for key in self._in_flight:
            if regex.search(key):
                self._invalidated.add(key)
        removed = await self._backend.delete_matching(regex)
        self._stats.removals += len(removed)
        logger.info("Removed cache keys by pattern", pattern=regex.pattern, count=len(removed))
        return len(removed)

    async def exists(self, key: str) -> bool:
        return await self._backend.exists(key)

    async def warm(
        self,
        seed_keys: Iterable[str],
        loader: Callable[[str], Awaitable[Any]],
        *,
        category: FetchCategory | str | None = None,
        ttl: float | None = None,
    ) -> WarmResult:
        """Proactively populate keys.

        Skipped entirely when warming is disabled; the loader is never
        called in that case. Per-key failures are logged and returned.

        Args:
            seed_keys: Keys to populate
            loader: Async callable producing the value for a key
            category: Category tag selecting the TTL
            ttl: TTL override in seconds
        """
        keys = list(dict.fromkeys(seed_keys))
        if not self._config.warming_enabled:
            logger.info("Cache warming is disabled, skipping", keys=len(keys))
            return WarmResult(enabled=False)

        result = WarmResult()
        pending: list[str] = []
        for key in keys:
            if await self._backend.exists(key):
                result.already_cached.append(key)
            else:
                pending.append(key)

        outcomes = await asyncio.gather(
            *(
                self.get_or_set(key, _bind(loader, key), category=category, ttl=ttl)
                for key in pending
            ),
            return_exceptions=True,
        )
        for key, outcome in zip(pending, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                result.failed[key] = outcome
                logger.warning("Cache warming failed for key", key=key, error=str(outcome))
            else:
                result.warmed.append(key)

        logger.info(
            "Cache warming completed",
            warmed=len(result.warmed),
            already_cached=len(result.already_cached),
            failed=len(result.failed),
        )
        return result

    async def clear(self) -> None:
        await self._backend.clear()

    async def close(self) -> None:
        await self._backend.close()


def _bind(
    loader: Callable[[str], Awaitable[Any]], key: str
) -> Callable[[], Awaitable[Any]]:
    async def factory() -> Any:
        return await loader(key)

    return factory
