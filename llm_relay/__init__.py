"""llm_relay package."""

from .errors import ConfigurationError
from .settings import RelaySettings, get_settings, init_settings

__all__ = ["ConfigurationError", "RelaySettings", "get_settings", "init_settings"]
