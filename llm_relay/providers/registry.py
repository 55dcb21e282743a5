"""Build adapters from provider paths and YAML configuration.

Provider paths:
    replicate:<owner>/<model>[:<version>]             text/chat completion
    replicate:moderation:<owner>/<model>[:<version>]  Llama Guard moderation
    replicate:image:<owner>/<model>[:<version>]       image generation

Example config:
```yaml
providers:
  - id: replicate:meta/meta-llama-3-8b-instruct
    label: llama3
    config:
      temperature: 0.2
      prompt:
        prefix: "[INST] "
        suffix: " [/INST]"

  - id: replicate:image:stability-ai/sdxl
    config:
      width: 1024
      height: 1024
```
"""

from __future__ import annotations

import logging
import os
from typing import Any

import yaml

from .base import UpstreamBackend
from .credentials import EnvOverrides
from .replicate import (
    ReplicateImageProvider,
    ReplicateModerationProvider,
    ReplicateProvider,
)

logger = logging.getLogger(__name__)

Provider = ReplicateProvider | ReplicateModerationProvider | ReplicateImageProvider


def load_provider(
    provider_path: str,
    *,
    config: dict[str, Any] | None = None,
    id: str | None = None,
    label: str | None = None,
    env: EnvOverrides | None = None,
    backend: UpstreamBackend | None = None,
) -> Provider:
    """Construct the adapter named by ``provider_path``.

    Construction never needs a credential; it is checked on the first call.
    """
    kind, _, rest = provider_path.partition(":")
    if kind != "replicate" or not rest:
        raise ValueError(f"Unknown provider: {provider_path}")

    kwargs: dict[str, Any] = {
        "config": config,
        "id": id,
        "label": label,
        "env": env,
        "backend": backend,
    }
    if rest.startswith("moderation:"):
        return ReplicateModerationProvider(rest[len("moderation:") :], **kwargs)
    if rest.startswith("image:"):
        return ReplicateImageProvider(rest[len("image:") :], **kwargs)
    return ReplicateProvider(rest, **kwargs)


class ProviderRegistry:
    """Adapters keyed by label (or id), each built once and reused."""

    def __init__(self, env: EnvOverrides | None = None):
        self.env = env
        self.providers: dict[str, Provider] = {}
        self.default_provider: str | None = None

    def add_provider(
        self,
        provider_path: str,
        config: dict[str, Any] | None = None,
        label: str | None = None,
        backend: UpstreamBackend | None = None,
    ) -> Provider:
        provider = load_provider(
            provider_path,
            config=config,
            id=provider_path,
            label=label,
            env=self.env,
            backend=backend,
        )
        self.register(label or provider_path, provider)
        return provider

    def register(self, name: str, provider: Provider) -> None:
        if name in self.providers:
            logger.warning(f"Replacing provider '{name}'")
        self.providers[name] = provider
        if not self.default_provider:
            self.default_provider = name

    def get(self, name: str | None = None) -> Provider:
        key = name or self.default_provider
        if not key or key not in self.providers:
            available = ", ".join(self.providers.keys())
            raise ValueError(f"Provider '{key}' not found. Available: {available}")
        return self.providers[key]

    def list_providers(self) -> list[str]:
        return list(self.providers.keys())


def load_registry_from_config(
    config_path: str = "providers.yaml", env: EnvOverrides | None = None
) -> ProviderRegistry:
    """Read provider definitions from a YAML file.

    A missing file yields an empty registry.
    """
    registry = ProviderRegistry(env=env)

    if not os.path.exists(config_path):
        logger.info(f"No provider config at {config_path}")
        return registry

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    for entry in data.get("providers", []):
        registry.add_provider(
            entry["id"],
            config=entry.get("config"),
            label=entry.get("label"),
        )

    if default := data.get("default"):
        if default not in registry.providers:
            raise ValueError(f"Default provider '{default}' is not defined")
        registry.default_provider = default

    return registry
