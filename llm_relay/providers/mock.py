"""In-process upstream backend for tests and offline runs."""

from __future__ import annotations

import asyncio
from typing import Any

# Default response: echo the prompt back
_ECHO = object()


class MockBackend:
    """Returns scripted payloads and records every call.

    ``response`` may be a payload (``None`` included), an exception
    instance (raised), or a callable taking ``(model, input)``. Without a
    response the prompt is echoed back.
    """

    def __init__(self, response: Any = _ECHO, delay: float = 0.0):
        self.response = response
        self.delay = delay
        self.calls: list[tuple[str, dict[str, Any]]] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def run(self, model: str, input: dict[str, Any]) -> Any:
        self.calls.append((model, dict(input)))
        if self.delay:
            await asyncio.sleep(self.delay)

        if self.response is _ECHO:
            return self._echo(input)
        if isinstance(self.response, BaseException):
            raise self.response
        if callable(self.response):
            return self.response(model, input)
        return self.response

    @staticmethod
    def _echo(input: dict[str, Any]) -> list[str]:
        """Default payload: the prompt back as token fragments."""
        prompt = str(input.get("prompt", ""))
        return [f"Mock response for: {prompt[:50]}"]
