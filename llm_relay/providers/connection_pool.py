"""HTTP connection pooling for upstream model APIs.

One ``httpx.AsyncClient`` is shared across adapters so repeated predictions
reuse TCP/TLS connections.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx


class HTTPConnectionPool:
    """Lazily created, shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        max_connections: int = 100,
        max_keepalive_connections: int = 20,
        keepalive_expiry: float = 5.0,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the connection pool.

        Args:
            max_connections: Maximum number of connections to maintain
            max_keepalive_connections: Max idle connections to keep alive
            keepalive_expiry: How long to keep idle connections (seconds)
            timeout: Default read timeout for requests (seconds)
            transport: Custom transport, e.g. ``httpx.MockTransport`` in tests
        """
        self.limits = httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_keepalive_connections,
            keepalive_expiry=keepalive_expiry,
        )
        self.timeout_config = httpx.Timeout(
            timeout=timeout,
            connect=5.0,
            read=timeout,
            write=10.0,
        )
        self.transport = transport

        self._client: httpx.AsyncClient | None = None
        self._lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            async with self._lock:
                # Double-check after acquiring lock
                if self._client is None:
                    if self.transport is not None:
                        self._client = httpx.AsyncClient(
                            transport=self.transport, timeout=self.timeout_config
                        )
                    else:
                        self._client = httpx.AsyncClient(
                            limits=self.limits,
                            timeout=self.timeout_config,
                            http2=True,
                        )
        return self._client

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        client = await self._ensure_client()
        return await client.request(method, url, **kwargs)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None


_global_pool: HTTPConnectionPool | None = None


def get_connection_pool() -> HTTPConnectionPool:
    """Get or create the process-wide connection pool."""
    global _global_pool

    if _global_pool is None:
        _global_pool = HTTPConnectionPool()
    return _global_pool
