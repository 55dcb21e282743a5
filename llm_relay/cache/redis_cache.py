"""Redis-backed response cache."""

from __future__ import annotations

import hashlib
import logging

import redis.asyncio as redis  # type: ignore[import-untyped]

from llm_relay.errors import CacheWriteError
from llm_relay.redis.connection_pool import (
    PoolNotInitializedError,
    RedisPoolConfig,
    get_redis_pool,
    init_redis_pool,
)
from llm_relay.settings import RelaySettings

logger = logging.getLogger(__name__)


class RedisCache:
    """Response cache stored in Redis with a fixed TTL.

    Cache keys can be long (they embed the full prompt), so they are hashed
    before being written; the namespace prefix stays readable for SCAN.
    """

    def __init__(
        self,
        pool_config: RedisPoolConfig | None = None,
        namespace: str = "llm_relay:",
        ttl_seconds: int = 3600,
        client: redis.Redis | None = None,
    ):
        self.pool_config = pool_config or RedisPoolConfig()
        self.namespace = namespace
        self.ttl_seconds = ttl_seconds
        self.client = client
        self.stats = {"hits": 0, "misses": 0, "errors": 0}

    @classmethod
    def from_settings(cls, settings: RelaySettings) -> RedisCache:
        return cls(
            pool_config=RedisPoolConfig.from_settings(settings),
            namespace=settings.cache_namespace,
            ttl_seconds=settings.cache_ttl_seconds,
        )

    async def connect(self) -> redis.Redis:
        """Attach to the shared pool, initializing it if nobody has yet."""
        if self.client is None:
            try:
                self.client = await get_redis_pool()
            except PoolNotInitializedError:
                self.client = await init_redis_pool(self.pool_config)
            logger.info("Connected to shared Redis connection pool")
        return self.client

    def _storage_key(self, key: str) -> str:
        key_hash = hashlib.sha256(key.encode()).hexdigest()
        return f"{self.namespace}{key_hash}"

    async def get(self, key: str) -> str | None:
        """Return cached text, or None on miss or any Redis failure."""
        storage_key = self._storage_key(key)
        try:
            client = await self.connect()
            data = await client.get(storage_key)
        except Exception as e:
            self.stats["errors"] += 1
            logger.error(f"Cache get error: {e}")
            return None

        if data is None:
            self.stats["misses"] += 1
            logger.debug(f"Cache miss for key: {storage_key[:24]}...")
            return None

        self.stats["hits"] += 1
        logger.debug(f"Cache hit for key: {storage_key[:24]}...")
        if isinstance(data, bytes):
            return data.decode("utf-8")
        return data

    async def set(self, key: str, value: str) -> bool:
        """Store text with the configured TTL.

        Raises:
            CacheWriteError: If Redis is unreachable or rejects the write
        """
        storage_key = self._storage_key(key)
        try:
            client = await self.connect()
            await client.setex(storage_key, self.ttl_seconds, value)
        except Exception as e:
            self.stats["errors"] += 1
            raise CacheWriteError(f"Cache set error: {e}") from e

        logger.debug(f"Cached response for key: {storage_key[:24]}... (TTL: {self.ttl_seconds}s)")
        return True
