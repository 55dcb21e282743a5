"""Shared call skeleton for provider adapters.

Every adapter variant runs the same sequence: resolve the credential,
look up the cache, call upstream on a miss, encode the raw payload and
write the cache. What differs (cache key shape, upstream input, output
encoding, what gets cached) is supplied by a :class:`CallStrategy`.

There is no lock around lookup, upstream call and write: concurrent calls
with the same cache key can each miss and each reach the upstream backend.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

from llm_relay.cache import CacheStore, get_cache, is_cache_enabled
from llm_relay.errors import ConfigurationError, ResponseShapeError

from .base import ProviderIdentity, UpstreamBackend

logger = logging.getLogger(__name__)

R = TypeVar("R")


@dataclass
class CallRequest:
    """Per-call state. Never stored on the adapter."""

    prompt: str
    context: dict[str, Any] | None = None
    options: dict[str, Any] | None = None
    # Text under evaluation for moderation calls
    assistant: str | None = None


class CallStrategy(Protocol[R]):
    """Variant-specific parts of a provider call."""

    def cache_key(self, request: CallRequest) -> str | None:
        """Deterministic key, or None if the request cannot be cached."""
        ...

    async def invoke(self, backend: UpstreamBackend, request: CallRequest) -> Any:
        """Perform the upstream call and return the raw payload."""
        ...

    def encode(self, request: CallRequest, raw: Any, cached: bool) -> R:
        """Build the result envelope from a raw payload. Must not raise."""
        ...

    def failure(self, message: str) -> R:
        ...

    def to_cache(self, raw: Any, response: R) -> str | None:
        """Text to store for this result, or None to skip caching.

        Raises:
            TypeError: If the payload cannot be serialized (not cached)
        """
        ...

    def from_cache(self, request: CallRequest, text: str) -> R:
        """Rebuild a result from stored text.

        Raises:
            ValueError: If the stored text is unusable (treated as a miss)
        """
        ...


class AdapterCore:
    """Credential, cache and error handling shared by all adapters."""

    def __init__(
        self,
        identity: ProviderIdentity,
        resolve_credential: Callable[[], str | None],
        backend_factory: Callable[[str], UpstreamBackend],
        missing_credential_message: str,
    ):
        self.identity = identity
        self._resolve_credential = resolve_credential
        self._backend_factory = backend_factory
        self._missing_credential_message = missing_credential_message

    def require_credential(self) -> str:
        """Resolve the credential for this call.

        Raises:
            ConfigurationError: If no credential is configured
        """
        credential = self._resolve_credential()
        if not credential:
            raise ConfigurationError(self._missing_credential_message)
        return credential

    async def _read(
        self, cache: CacheStore, key: str, request: CallRequest, strategy: CallStrategy[R]
    ) -> R | None:
        try:
            text = await cache.get(key)
        except Exception as e:
            logger.error(f"Cache read failed for {self.identity.id}: {e}")
            return None

        if not text:
            return None

        try:
            response = strategy.from_cache(request, text)
        except (ValueError, ResponseShapeError) as e:
            logger.warning(f"Ignoring unreadable cache entry for {self.identity.id}: {e}")
            return None

        logger.debug(f"Returning cached response for {request.prompt}: {text}")
        return response

    async def _write(self, cache: CacheStore, key: str, value: str) -> None:
        try:
            stored = await cache.set(key, value)
        except Exception as e:
            logger.error(f"Failed to cache response: {e}")
            return
        if stored is False:
            logger.warning(f"Cache declined response for {self.identity.id}")

    async def execute(self, request: CallRequest, strategy: CallStrategy[R]) -> R:
        """Run one call.

        Raises:
            ConfigurationError: If no credential resolves. Every other
                failure is returned as a failure envelope.
        """
        credential = self.require_credential()

        cache: CacheStore | None = None
        key: str | None = None
        if is_cache_enabled():
            key = strategy.cache_key(request)
            if key is not None:
                cache = get_cache()
                hit = await self._read(cache, key, request, strategy)
                if hit is not None:
                    return hit

        backend = self._backend_factory(credential)
        logger.debug(f"Calling {self.identity.id}: {request.prompt}")
        try:
            raw = await strategy.invoke(backend, request)
        except Exception as e:
            logger.debug(f"Upstream call failed for {self.identity.id}: {e}")
            return strategy.failure(f"API call error: {e}")

        response = strategy.encode(request, raw, cached=False)

        if cache is not None and key is not None:
            try:
                value = strategy.to_cache(raw, response)
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping cache for {self.identity.id}: {e}")
                value = None
            if value is not None:
                await self._write(cache, key, value)

        return response
