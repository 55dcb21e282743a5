"""Namespaced key/value store for provider responses.

Values are serialized text. The store is process-wide, created lazily on
first use from :func:`llm_relay.settings.get_settings`, and shared by every
adapter. Whether caching is active is decided per call through
:func:`is_cache_enabled`.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Protocol, runtime_checkable

from llm_relay.settings import get_settings

logger = logging.getLogger(__name__)


@runtime_checkable
class CacheStore(Protocol):
    """Async key -> text store."""

    async def get(self, key: str) -> str | None:
        """Return the stored text or None."""
        ...

    async def set(self, key: str, value: str) -> bool:
        """Store text under key. Returns False if the value was not stored."""
        ...


class MemoryCache:
    """In-process TTL cache with oldest-first eviction."""

    def __init__(
        self,
        namespace: str = "llm_relay:",
        ttl_seconds: int = 3600,
        max_entries: int = 10000,
    ) -> None:
        self.namespace = namespace
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._store: dict[str, tuple[float, str]] = {}
        self._lock = asyncio.Lock()

    def _key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    async def get(self, key: str) -> str | None:
        async with self._lock:
            entry = self._store.get(self._key(key))
            if entry is None:
                return None
            ts, value = entry
            if time.monotonic() - ts > self._ttl:
                # expired
                del self._store[self._key(key)]
                return None
            return value

    async def set(self, key: str, value: str) -> bool:
        async with self._lock:
            if self._key(key) not in self._store and len(self._store) >= self._max_entries:
                oldest_key = min(self._store.items(), key=lambda kv: kv[1][0])[0]
                self._store.pop(oldest_key, None)
            self._store[self._key(key)] = (time.monotonic(), value)
        return True

    def __len__(self) -> int:
        return len(self._store)


_cache: CacheStore | None = None


def is_cache_enabled() -> bool:
    """Read the global cache toggle. Evaluated on every call."""
    return get_settings().cache_enabled


def get_cache() -> CacheStore:
    """Return the process-wide cache store, creating it on first use."""
    global _cache

    if _cache is None:
        settings = get_settings()
        if settings.cache_backend == "redis":
            from .redis_cache import RedisCache

            _cache = RedisCache.from_settings(settings)
        else:
            _cache = MemoryCache(
                namespace=settings.cache_namespace,
                ttl_seconds=settings.cache_ttl_seconds,
                max_entries=settings.cache_max_entries,
            )
        logger.debug(f"Created {type(_cache).__name__} response cache")
    return _cache


def set_cache(cache: CacheStore | None) -> None:
    """Install a specific store, or None to rebuild lazily from settings."""
    global _cache

    _cache = cache


def reset_cache() -> None:
    set_cache(None)
