"""Tests for the Replicate text/chat adapter."""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from llm_relay.cache import MemoryCache, set_cache
from llm_relay.errors import ConfigurationError, UpstreamError
from llm_relay.providers import MockBackend, ReplicateProvider
from llm_relay.settings import RelaySettings, init_settings


def key_of(provider: ReplicateProvider, prompt: str) -> str:
    from llm_relay.providers.core import CallRequest

    return provider._strategy.cache_key(CallRequest(prompt=prompt))


class TestCacheKey:
    def test_independent_of_config_insertion_order(self):
        first = ReplicateProvider("owner/model", config={"temperature": 0.5, "top_k": 3})
        second = ReplicateProvider("owner/model", config={"top_k": 3, "temperature": 0.5})

        assert key_of(first, "hi") == key_of(second, "hi")
        assert key_of(first, "hi") == key_of(first, "hi")

    def test_extra_options_are_part_of_key(self):
        plain = ReplicateProvider("owner/model")
        extra = ReplicateProvider("owner/model", config={"custom_flag": True})

        assert key_of(plain, "hi") != key_of(extra, "hi")

    def test_none_valued_extra_option_is_part_of_key(self):
        plain = ReplicateProvider("owner/model")
        extra = ReplicateProvider("owner/model", config={"custom": None})

        assert key_of(plain, "hi") != key_of(extra, "hi")
        assert key_of(extra, "hi") == 'replicate:owner/model:{"custom":null}:hi'

    def test_key_layout(self):
        provider = ReplicateProvider("owner/model", config={"seed": 7})

        assert key_of(provider, "hello") == 'replicate:owner/model:{"seed":7}:hello'

    def test_credential_not_in_key(self):
        provider = ReplicateProvider("owner/model", config={"api_key": "r8_secret"})

        assert "r8_secret" not in key_of(provider, "hi")


class TestCallApi:
    @pytest.mark.asyncio
    async def test_missing_credential_raises_before_network(self):
        backend = MockBackend(["never"])
        provider = ReplicateProvider("owner/model", backend=backend)

        with pytest.raises(ConfigurationError, match="REPLICATE_API_TOKEN"):
            await provider.call_api("hi")

        assert backend.call_count == 0

    def test_construction_does_not_need_credential(self):
        provider = ReplicateProvider("owner/model")

        assert provider.id() == "replicate:owner/model"
        assert str(provider) == "[Replicate Provider owner/model]"

    @pytest.mark.asyncio
    async def test_env_override_credential(self):
        backend = MockBackend(["ok"])
        provider = ReplicateProvider(
            "owner/model", env={"REPLICATE_API_KEY": "override"}, backend=backend
        )

        response = await provider.call_api("hi")

        assert response.output == "ok"

    @pytest.mark.asyncio
    async def test_fragments_are_joined(self, replicate_token):
        provider = ReplicateProvider("owner/model", backend=MockBackend(["Hel", "lo"]))

        response = await provider.call_api("hi")

        assert response.output == "Hello"
        assert response.cached is False
        assert response.token_usage.total == 0

    @pytest.mark.asyncio
    async def test_structured_output_is_json(self, replicate_token):
        provider = ReplicateProvider("owner/model", backend=MockBackend({"a": 1}))

        response = await provider.call_api("hi")

        assert json.loads(response.output) == {"a": 1}

    @pytest.mark.asyncio
    async def test_upstream_error_becomes_failure_envelope(self, replicate_token):
        backend = MockBackend(UpstreamError("Replicate API error (500): boom"))
        provider = ReplicateProvider("owner/model", backend=backend)

        response = await provider.call_api("hi")

        assert response.output is None
        assert response.error == "API call error: Replicate API error (500): boom"

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self, replicate_token, memory_cache):
        backend = MockBackend(RuntimeError("flaky"))
        provider = ReplicateProvider("owner/model", backend=backend)

        await provider.call_api("hi")
        backend.response = ["recovered"]
        response = await provider.call_api("hi")

        assert response.output == "recovered"
        assert backend.call_count == 2

    @pytest.mark.asyncio
    async def test_prompt_affixes_and_options_forwarded(self, replicate_token):
        backend = MockBackend(["ok"])
        provider = ReplicateProvider(
            "owner/model",
            config={
                "temperature": 0.1,
                "prompt": {"prefix": "[INST] ", "suffix": " [/INST]"},
                "custom_flag": "yes",
                "api_key": "r8_config",
            },
            backend=backend,
        )

        await provider.call_api("hello")

        model, data = backend.calls[0]
        assert model == "owner/model"
        assert data == {
            "temperature": 0.1,
            "custom_flag": "yes",
            "prompt": "[INST] hello [/INST]",
        }

    @pytest.mark.asyncio
    async def test_none_valued_extra_option_forwarded(self, replicate_token):
        backend = MockBackend(["ok"])
        provider = ReplicateProvider(
            "owner/model", config={"custom": None, "temperature": None}, backend=backend
        )

        await provider.call_api("hi")

        _, data = backend.calls[0]
        assert data == {"custom": None, "prompt": "hi"}

    @pytest.mark.asyncio
    async def test_null_payload_is_json_text(self, replicate_token):
        backend = MockBackend(None)
        provider = ReplicateProvider("owner/model", backend=backend)

        response = await provider.call_api("hi")

        assert response.output == "null"
        assert backend.call_count == 1

    @pytest.mark.asyncio
    async def test_default_mock_echoes_prompt(self, replicate_token):
        provider = ReplicateProvider("owner/model", backend=MockBackend())

        response = await provider.call_api("hi")

        assert response.output == "Mock response for: hi"

    @pytest.mark.asyncio
    async def test_chat_prompt_split_into_system_and_user(self, replicate_token):
        backend = MockBackend(["ok"])
        provider = ReplicateProvider("owner/model", backend=backend)
        prompt = json.dumps(
            [
                {"role": "system", "content": "You are terse."},
                {"role": "user", "content": "Name a color."},
            ]
        )

        await provider.call_api(prompt)

        _, data = backend.calls[0]
        assert data["prompt"] == "Name a color."
        assert data["system_prompt"] == "You are terse."

    @pytest.mark.asyncio
    async def test_system_prompt_falls_back_to_config_then_env(
        self, replicate_token, monkeypatch
    ):
        backend = MockBackend(["ok"])
        monkeypatch.setenv("REPLICATE_SYSTEM_PROMPT", "from env")

        await ReplicateProvider("owner/model", backend=backend).call_api("hi")
        await ReplicateProvider(
            "owner/model", config={"system_prompt": "from config"}, backend=backend
        ).call_api("hi")

        assert backend.calls[0][1]["system_prompt"] == "from env"
        assert backend.calls[1][1]["system_prompt"] == "from config"


class TestCaching:
    @pytest.mark.asyncio
    async def test_round_trip_without_second_upstream_call(self, replicate_token, memory_cache):
        backend = MockBackend(["Hel", "lo"])
        provider = ReplicateProvider("owner/model", backend=backend)

        first = await provider.call_api("hi")
        second = await provider.call_api("hi")

        assert backend.call_count == 1
        assert first.cached is False
        assert second.cached is True
        assert second.model_dump(exclude={"cached"}) == first.model_dump(exclude={"cached"})

    @pytest.mark.asyncio
    async def test_shared_across_adapter_instances(self, replicate_token, memory_cache):
        backend = MockBackend(["ok"])

        await ReplicateProvider("owner/model", backend=backend).call_api("hi")
        response = await ReplicateProvider("owner/model", backend=backend).call_api("hi")

        assert response.cached is True
        assert backend.call_count == 1

    @pytest.mark.asyncio
    async def test_disabled_cache_always_calls_upstream(self, replicate_token, memory_cache):
        init_settings(RelaySettings(_env_file=None, cache_enabled=False))
        backend = MockBackend(["ok"])
        provider = ReplicateProvider("owner/model", backend=backend)

        await provider.call_api("hi")
        response = await provider.call_api("hi")

        assert response.cached is False
        assert backend.call_count == 2
        assert len(memory_cache) == 0

    @pytest.mark.asyncio
    async def test_toggle_takes_effect_on_next_call(self, replicate_token, memory_cache):
        backend = MockBackend(["ok"])
        provider = ReplicateProvider("owner/model", backend=backend)

        await provider.call_api("hi")
        init_settings(RelaySettings(_env_file=None, cache_enabled=False))
        response = await provider.call_api("hi")

        assert response.cached is False
        assert backend.call_count == 2

    @pytest.mark.asyncio
    async def test_corrupt_entry_is_a_miss(self, replicate_token, memory_cache):
        provider = ReplicateProvider("owner/model", backend=MockBackend(["fresh"]))
        await memory_cache.set(key_of(provider, "hi"), "{not json")

        response = await provider.call_api("hi")

        assert response.output == "fresh"
        assert response.cached is False

    @pytest.mark.asyncio
    async def test_cache_write_failure_still_returns_response(self, replicate_token):
        broken = AsyncMock()
        broken.get = AsyncMock(return_value=None)
        broken.set = AsyncMock(side_effect=ConnectionError("cache down"))
        set_cache(broken)
        provider = ReplicateProvider("owner/model", backend=MockBackend(["ok"]))

        response = await provider.call_api("hi")

        assert response.output == "ok"
        broken.set.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cache_read_failure_falls_through(self, replicate_token):
        broken = AsyncMock()
        broken.get = AsyncMock(side_effect=ConnectionError("cache down"))
        broken.set = AsyncMock(return_value=False)
        set_cache(broken)
        provider = ReplicateProvider("owner/model", backend=MockBackend(["ok"]))

        response = await provider.call_api("hi")

        assert response.output == "ok"

    @pytest.mark.asyncio
    async def test_concurrent_identical_calls_are_tolerated(self, replicate_token):
        set_cache(MemoryCache())
        backend = MockBackend(["ok"], delay=0.01)
        provider = ReplicateProvider("owner/model", backend=backend)

        responses = await asyncio.gather(*(provider.call_api("same") for _ in range(3)))

        # No coalescing: each concurrent miss may reach upstream
        assert all(r.output == "ok" for r in responses)
        assert 1 <= backend.call_count <= 3
