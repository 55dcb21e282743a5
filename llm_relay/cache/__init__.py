"""Response cache shared by all provider adapters."""

from .redis_cache import RedisCache
from .store import (
    CacheStore,
    MemoryCache,
    get_cache,
    is_cache_enabled,
    reset_cache,
    set_cache,
)

__all__ = [
    "CacheStore",
    "MemoryCache",
    "RedisCache",
    "get_cache",
    "is_cache_enabled",
    "reset_cache",
    "set_cache",
]
