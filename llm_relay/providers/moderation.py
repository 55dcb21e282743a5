"""Llama Guard style moderation output classification.

The moderation model answers with ``safe``, or with ``unsafe`` followed by a
line of comma-separated category codes::

    unsafe
    S1,S9
"""

from __future__ import annotations

import json
import logging
from types import MappingProxyType
from typing import Any

from llm_relay.errors import ResponseShapeError

from .base import ModerationFlag, ProviderModerationResponse

logger = logging.getLogger(__name__)

MODERATION_TAXONOMY = MappingProxyType(
    {
        "S1": "Violent Crimes",
        "S2": "Non-Violent Crimes",
        "S3": "Sex-Related Crimes",
        "S4": "Child Sexual Exploitation",
        "S5": "Specialized Advice",
        "S6": "Privacy",
        "S7": "Intellectual Property",
        "S8": "Indiscriminate Weapons",
        "S9": "Hate",
        "S10": "Suicide & Self-Harm",
        "S11": "Sexual Content",
    }
)

MAX_RAW_IN_ERROR = 500


def _raw_for_error(output: Any) -> str:
    raw = json.dumps(output, default=str)
    if len(raw) > MAX_RAW_IN_ERROR:
        return raw[:MAX_RAW_IN_ERROR] + "..."
    return raw


def _as_text(output: Any) -> str:
    if isinstance(output, str):
        return output
    if isinstance(output, list) and all(isinstance(part, str) for part in output):
        return "".join(output)
    raise ResponseShapeError(f"expected text, got {type(output).__name__}")


def parse_flags(text: str) -> list[ModerationFlag]:
    """Classify moderation text. Empty list means safe.

    Raises:
        ResponseShapeError: If an unsafe verdict has no category line
    """
    lines = text.strip().split("\n")
    if lines[0].strip() == "safe":
        return []

    if len(lines) < 2:
        raise ResponseShapeError("missing category line after unsafe verdict")

    flags: list[ModerationFlag] = []
    for code in lines[1].split(","):
        code = code.strip()
        category = MODERATION_TAXONOMY.get(code)
        # Unknown codes come from newer taxonomies; ignore them
        if category is None:
            continue
        flags.append(
            ModerationFlag(code=code, description=f"{category} ({code})", confidence=1.0)
        )
    return flags


def classify_moderation_output(output: Any) -> ProviderModerationResponse:
    """Turn a raw moderation payload into flags or a failure envelope."""
    if not output:
        return ProviderModerationResponse.failure("API response error: no output")

    try:
        flags = parse_flags(_as_text(output))
    except ResponseShapeError as e:
        logger.warning(f"Unparseable moderation output: {e}")
        return ProviderModerationResponse.failure(
            f"API response error: {e}: {_raw_for_error(output)}"
        )

    return ProviderModerationResponse(flags=flags)
