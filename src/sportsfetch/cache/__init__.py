"""
Caching module for sportsfetch.

Provides a single-flight TTL cache with per-category expiry, pattern
invalidation and warming.
"""

from sportsfetch.cache.backends import CacheBackend, CacheEntry, MemoryCache, NullCache
from sportsfetch.cache.key import CacheKeyGenerator
from sportsfetch.cache.manager import (
    DEFAULT_CATEGORY_TTLS,
    CacheConfig,
    CacheManager,
    CacheStats,
    WarmResult,
)

__all__ = [
    "DEFAULT_CATEGORY_TTLS",
    "CacheBackend",
    "CacheConfig",
    "CacheEntry",
    "CacheKeyGenerator",
    "CacheManager",
    "CacheStats",
    "MemoryCache",
    "NullCache",
    "WarmResult",
]
