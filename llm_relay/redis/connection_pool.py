"""Shared Redis connection pool for the response cache.

A single ``redis.asyncio`` client is created per process and reused by every
cache instance, so adapters never open their own connections.

Example:
    >>> from llm_relay.redis.connection_pool import init_redis_pool, RedisPoolConfig
    >>>
    >>> await init_redis_pool(RedisPoolConfig(host="cache.internal"))
    >>> client = await get_redis_pool()
    >>> await client.ping()
    >>>
    >>> await close_redis_pool()
"""

from __future__ import annotations

import logging

import redis.asyncio as redis
from pydantic import BaseModel, Field

from llm_relay.settings import RelaySettings

logger = logging.getLogger(__name__)

_redis_pool: redis.Redis | None = None


class RedisPoolConfig(BaseModel):
    """Configuration for the Redis connection pool."""

    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(default=6379, description="Redis port")
    db: int = Field(default=0, description="Redis database number")
    password: str | None = Field(default=None, description="Redis password")

    max_connections: int = Field(default=50, description="Maximum connections in pool")
    socket_timeout: float = Field(default=5.0, description="Socket timeout in seconds")
    socket_connect_timeout: float = Field(
        default=5.0, description="Socket connect timeout in seconds"
    )
    health_check_interval: int = Field(
        default=30, description="Seconds between health checks"
    )
    retry_on_timeout: bool = Field(default=True, description="Retry commands on timeout")

    @classmethod
    def from_settings(cls, settings: RelaySettings) -> RedisPoolConfig:
        return cls(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            password=settings.redis_password,
            max_connections=settings.redis_max_connections,
        )


class RedisPoolError(Exception):
    """Base exception for Redis pool errors."""

    pass


class PoolNotInitializedError(RedisPoolError):
    """Pool has not been initialized."""

    pass


class PoolConnectionError(RedisPoolError):
    """Failed to connect to Redis."""

    pass


async def init_redis_pool(config: RedisPoolConfig) -> redis.Redis:
    """Initialize the global Redis connection pool.

    Raises:
        PoolConnectionError: If connection fails
    """
    global _redis_pool

    if _redis_pool is not None:
        logger.warning("Redis pool already initialized, returning existing pool")
        return _redis_pool

    try:
        redis_url = f"redis://{config.host}:{config.port}/{config.db}"

        client = redis.from_url(
            redis_url,
            password=config.password,
            max_connections=config.max_connections,
            socket_timeout=config.socket_timeout,
            socket_connect_timeout=config.socket_connect_timeout,
            retry_on_timeout=config.retry_on_timeout,
            health_check_interval=config.health_check_interval,
            decode_responses=True,
        )
        await client.ping()
        _redis_pool = client

        logger.info(
            f"Redis connection pool initialized: {config.host}:{config.port} "
            f"(max_connections={config.max_connections})"
        )
        return _redis_pool

    except Exception as e:
        logger.error(f"Failed to initialize Redis pool: {e}", exc_info=True)
        _redis_pool = None
        raise PoolConnectionError(f"Failed to connect to Redis: {e}") from e


async def get_redis_pool() -> redis.Redis:
    """Get the global Redis connection pool.

    Raises:
        PoolNotInitializedError: If pool has not been initialized
    """
    if _redis_pool is None:
        raise PoolNotInitializedError(
            "Redis pool not initialized. Call init_redis_pool() first."
        )

    return _redis_pool


async def close_redis_pool() -> None:
    """Close the global Redis connection pool on shutdown."""
    global _redis_pool

    if _redis_pool is None:
        logger.warning("Attempted to close uninitialized Redis pool")
        return

    try:
        await _redis_pool.aclose()
        logger.info("Redis connection pool closed successfully")

    except Exception as e:
        logger.error(f"Error closing Redis pool: {e}", exc_info=True)

    finally:
        _redis_pool = None


async def health_check() -> bool:
    """Check Redis connection pool health."""
    if _redis_pool is None:
        return False

    try:
        await _redis_pool.ping()
        return True

    except Exception as e:
        logger.error(f"Redis pool health check failed: {e}")
        return False
