"""Shared fixtures: isolated settings and cache per test."""

import pytest

from llm_relay.cache import MemoryCache, reset_cache, set_cache
from llm_relay.settings import RelaySettings, init_settings, reset_settings


@pytest.fixture(autouse=True)
def relay_settings(monkeypatch):
    """Fresh settings with an in-memory cache and no ambient credentials."""
    for name in ("REPLICATE_API_TOKEN", "REPLICATE_API_KEY", "REPLICATE_SYSTEM_PROMPT"):
        monkeypatch.delenv(name, raising=False)

    settings = init_settings(
        RelaySettings(
            _env_file=None,
            cache_enabled=True,
            cache_backend="memory",
            replicate_poll_interval=0.0,
        )
    )
    reset_cache()
    yield settings
    reset_cache()
    reset_settings()


@pytest.fixture
def memory_cache():
    cache = MemoryCache(namespace="test:", ttl_seconds=60, max_entries=100)
    set_cache(cache)
    return cache


@pytest.fixture
def replicate_token(monkeypatch):
    monkeypatch.setenv("REPLICATE_API_TOKEN", "r8_test_token")
    return "r8_test_token"
