from __future__ import annotations

from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RelaySettings(BaseSettings):
    """Process-wide configuration."""

    # Response cache
    cache_enabled: bool = True
    cache_backend: Literal["memory", "redis"] = "memory"
    cache_namespace: str = "llm_relay:"
    cache_ttl_seconds: int = 14 * 24 * 60 * 60  # 14 days
    cache_max_entries: int = 10000

    # Redis backend
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: str | None = None
    redis_max_connections: int = 50

    # Replicate upstream
    replicate_base_url: str = "https://api.replicate.com/v1"
    replicate_wait_seconds: int = 60
    replicate_poll_interval: float = 0.5
    replicate_max_polls: int = 600
    request_timeout: float = 120.0

    model_config = SettingsConfigDict(
        env_prefix="LLM_RELAY_",
        env_parse_none_str="none",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("replicate_base_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v):
        if isinstance(v, str):
            return v.rstrip("/")
        return v

    @field_validator("replicate_wait_seconds")
    @classmethod
    def clamp_wait(cls, v: int) -> int:
        # Replicate accepts 1..60 for the Prefer: wait header
        return max(1, min(v, 60))


_settings: RelaySettings | None = None


def get_settings() -> RelaySettings:
    """Return the process-wide settings, building them from the environment once."""
    global _settings

    if _settings is None:
        _settings = RelaySettings()
    return _settings


def init_settings(settings: RelaySettings) -> RelaySettings:
    """Install settings explicitly at process startup."""
    global _settings

    _settings = settings
    return _settings


def reset_settings() -> None:
    global _settings

    _settings = None
