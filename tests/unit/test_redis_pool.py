"""Unit tests for the shared Redis connection pool."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from llm_relay.redis import (
    PoolConnectionError,
    PoolNotInitializedError,
    RedisPoolConfig,
    close_redis_pool,
    get_redis_pool,
    health_check,
    init_redis_pool,
)
from llm_relay.settings import RelaySettings


class TestRedisPool:
    @pytest.mark.asyncio
    async def test_lifecycle(self):
        client = AsyncMock()
        with patch(
            "llm_relay.redis.connection_pool.redis.from_url", MagicMock(return_value=client)
        ) as from_url:
            pool = await init_redis_pool(RedisPoolConfig(host="cache", port=6380, db=2))

        assert pool is client
        assert from_url.call_args[0][0] == "redis://cache:6380/2"
        assert await get_redis_pool() is client
        assert await health_check() is True

        await close_redis_pool()

        client.aclose.assert_awaited_once()
        assert await health_check() is False
        with pytest.raises(PoolNotInitializedError):
            await get_redis_pool()

    @pytest.mark.asyncio
    async def test_unreachable_server(self):
        client = AsyncMock()
        client.ping = AsyncMock(side_effect=ConnectionError("refused"))
        with patch(
            "llm_relay.redis.connection_pool.redis.from_url", MagicMock(return_value=client)
        ):
            with pytest.raises(PoolConnectionError):
                await init_redis_pool(RedisPoolConfig())

        with pytest.raises(PoolNotInitializedError):
            await get_redis_pool()

    def test_config_from_settings(self):
        settings = RelaySettings(
            _env_file=None, redis_host="redis.internal", redis_port=6390, redis_password="pw"
        )

        config = RedisPoolConfig.from_settings(settings)

        assert config.host == "redis.internal"
        assert config.port == 6390
        assert config.password == "pw"
