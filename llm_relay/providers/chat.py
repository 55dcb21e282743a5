"""Turn a raw prompt string into ordered, role-tagged messages.

A prompt is either plain text or a serialized chat list: a JSON array of
``{"role": ..., "content": ...}`` objects, or the same structure written as
YAML (``- role: system`` ...). Anything that does not parse as such a list
is treated as a single user message.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any

import yaml
from pydantic import BaseModel, ValidationError

from .base import Message, Role

logger = logging.getLogger(__name__)


class ParsedChat(BaseModel):
    """Messages parsed from a prompt, plus the first system and user texts."""

    messages: list[Message]
    structured: bool = False

    def first(self, role: Role) -> str | None:
        for message in self.messages:
            if message.role == role:
                return message.content
        return None

    @property
    def system(self) -> str | None:
        return self.first("system")

    @property
    def user(self) -> str | None:
        return self.first("user")


def _load_structured(prompt: str) -> Any:
    trimmed = prompt.strip()
    if trimmed.startswith("- role:"):
        return yaml.safe_load(trimmed)
    if trimmed.startswith("["):
        return json.loads(trimmed)
    return None


def _as_messages(data: Any) -> list[Message] | None:
    if not isinstance(data, list) or not data:
        return None
    try:
        return [Message.model_validate(item) for item in data]
    except ValidationError:
        return None


def _merge_defaults(messages: list[Message], defaults: Sequence[Message]) -> list[Message]:
    present = {message.role for message in messages}
    missing = [d for d in defaults if d.role not in present]
    leading = [d for d in missing if d.role == "system"]
    trailing = [d for d in missing if d.role != "system"]
    return [*leading, *messages, *trailing]


def parse_chat_prompt(
    prompt: str, default_messages: Sequence[Message | dict[str, Any]] | None = None
) -> ParsedChat:
    """Parse ``prompt`` into messages.

    Args:
        prompt: Plain text or a JSON/YAML chat list
        default_messages: Messages for roles the prompt does not define

    Returns:
        ParsedChat whose ``structured`` flag tells whether the prompt was a
        chat list. Input order is preserved.
    """
    defaults = [
        d if isinstance(d, Message) else Message.model_validate(d)
        for d in (default_messages or [])
    ]

    try:
        parsed = _as_messages(_load_structured(prompt))
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        logger.debug(f"Prompt is not a chat list, using it as user text: {e}")
        parsed = None

    if parsed is None:
        messages = [Message(role="user", content=prompt)]
        return ParsedChat(messages=_merge_defaults(messages, defaults), structured=False)

    return ParsedChat(messages=_merge_defaults(parsed, defaults), structured=True)
