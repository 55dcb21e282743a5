"""Redis integration for the response cache."""

from .connection_pool import (
    PoolConnectionError,
    PoolNotInitializedError,
    RedisPoolConfig,
    close_redis_pool,
    get_redis_pool,
    health_check,
    init_redis_pool,
)

__all__ = [
    "RedisPoolConfig",
    "PoolConnectionError",
    "PoolNotInitializedError",
    "init_redis_pool",
    "get_redis_pool",
    "close_redis_pool",
    "health_check",
]
