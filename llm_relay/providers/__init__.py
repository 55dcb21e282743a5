"""Provider adapters behind one calling contract."""

from .base import (
    Message,
    ModerationFlag,
    ProviderIdentity,
    ProviderModerationResponse,
    ProviderResponse,
    ReplicateImageOptions,
    ReplicateOptions,
    TokenUsage,
    UpstreamBackend,
)
from .chat import ParsedChat, parse_chat_prompt
from .core import AdapterCore, CallRequest, CallStrategy
from .mock import MockBackend
from .moderation import MODERATION_TAXONOMY, classify_moderation_output
from .normalizer import normalize_output
from .registry import ProviderRegistry, load_provider, load_registry_from_config
from .replicate import (
    DEFAULT_MODERATION_PROVIDER,
    ReplicateImageProvider,
    ReplicateModerationProvider,
    ReplicateProvider,
    image_alt_text,
)
from .replicate_client import ReplicateClient

__all__ = [
    "AdapterCore",
    "CallRequest",
    "CallStrategy",
    "DEFAULT_MODERATION_PROVIDER",
    "MODERATION_TAXONOMY",
    "Message",
    "MockBackend",
    "ModerationFlag",
    "ParsedChat",
    "ProviderIdentity",
    "ProviderModerationResponse",
    "ProviderRegistry",
    "ProviderResponse",
    "ReplicateClient",
    "ReplicateImageOptions",
    "ReplicateImageProvider",
    "ReplicateModerationProvider",
    "ReplicateOptions",
    "ReplicateProvider",
    "TokenUsage",
    "UpstreamBackend",
    "classify_moderation_output",
    "image_alt_text",
    "load_provider",
    "load_registry_from_config",
    "normalize_output",
    "parse_chat_prompt",
]
