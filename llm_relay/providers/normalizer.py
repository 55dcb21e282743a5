"""Map upstream payloads of unknown shape onto ProviderResponse."""

from __future__ import annotations

import json
from typing import Any

from .base import ProviderResponse, TokenUsage


def to_json_text(payload: Any) -> str:
    """Compact JSON text, falling back to ``str`` for non-JSON values."""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)


def normalize_output(payload: Any) -> ProviderResponse:
    """Build a success envelope from a raw upstream payload.

    Token usage is always empty: these backends do not report it.
    """
    # Streaming-style models return token fragments
    if (
        isinstance(payload, (list, tuple))
        and payload
        and all(isinstance(fragment, str) for fragment in payload)
    ):
        return ProviderResponse.success("".join(payload), TokenUsage())

    if isinstance(payload, str):
        return ProviderResponse.success(payload, TokenUsage())

    return ProviderResponse.success(to_json_text(payload), TokenUsage())


def failure_from_exception(err: BaseException) -> ProviderResponse:
    return ProviderResponse.failure(f"API call error: {err}")
