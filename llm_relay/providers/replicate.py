"""Replicate adapters: text/chat completion, Llama Guard moderation and images."""

from __future__ import annotations

import json
import logging
import os
import re
from typing import Any

from llm_relay.errors import ResponseShapeError

from .base import (
    ProviderIdentity,
    ProviderModerationResponse,
    ProviderResponse,
    ReplicateImageOptions,
    ReplicateOptions,
    UpstreamBackend,
)
from .chat import parse_chat_prompt
from .core import AdapterCore, CallRequest
from .credentials import EnvOverrides, resolve_credential
from .moderation import classify_moderation_output
from .normalizer import failure_from_exception, normalize_output, to_json_text
from .replicate_client import ReplicateClient

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = (
    "Replicate API key is not set. Set the REPLICATE_API_TOKEN environment "
    "variable or add `api_key` to the provider config."
)

DEFAULT_IMAGE_SIZE = 768
ALT_TEXT_LIMIT = 50

LLAMA_GUARD_MODEL = (
    "meta/meta-llama-guard-2-8b:"
    "b063023ee937f28e922982abdbf97b041ffe34ad3b35a53d33e1d74bb19b36c4"
)


def canonical_json(value: Any) -> str:
    """Sorted-key JSON so equal mappings always serialize identically."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def safe_canonical_json(value: Any) -> str | None:
    try:
        return canonical_json(value)
    except (TypeError, ValueError):
        return None


def image_alt_text(prompt: str) -> str:
    """Markdown-safe, single-line alt text of at most 50 characters."""
    sanitized = re.sub(r"\r?\n|\r", " ", prompt).replace("[", "(").replace("]", ")")
    if len(sanitized) > ALT_TEXT_LIMIT:
        return f"{sanitized[: ALT_TEXT_LIMIT - 3]}..."
    return sanitized


def extract_image_url(payload: Any) -> str:
    """Find the image URL in a Replicate output.

    Raises:
        ResponseShapeError: If the payload holds no URL
    """
    if isinstance(payload, list) and payload:
        payload = payload[0]
    if isinstance(payload, dict):
        payload = payload.get("url") or payload.get("output")
    if isinstance(payload, str) and payload:
        return payload
    raise ResponseShapeError("no image URL in response")


class _ReplicateCredentials:
    """Resolves the Replicate token at call time."""

    def __init__(self, options: ReplicateOptions, env: EnvOverrides | None):
        self.options = options
        self.env = env

    def __call__(self) -> str | None:
        return resolve_credential(
            self.options.api_key,
            self.env,
            override_names=("REPLICATE_API_KEY", "REPLICATE_API_TOKEN"),
            environ_names=("REPLICATE_API_TOKEN", "REPLICATE_API_KEY"),
        )


def _build_core(
    identity: ProviderIdentity,
    options: ReplicateOptions,
    env: EnvOverrides | None,
    backend: UpstreamBackend | None,
) -> AdapterCore:
    def backend_factory(token: str) -> UpstreamBackend:
        return backend if backend is not None else ReplicateClient(token)

    return AdapterCore(
        identity=identity,
        resolve_credential=_ReplicateCredentials(options, env),
        backend_factory=backend_factory,
        missing_credential_message=MISSING_KEY_MESSAGE,
    )


class TextCompletionStrategy:
    """Chat/text completion: normalized output, full config in the key."""

    def __init__(self, model: str, options: ReplicateOptions):
        self.model = model
        self.options = options

    def cache_key(self, request: CallRequest) -> str | None:
        return (
            f"replicate:{self.model}:"
            f"{canonical_json(self.options.cache_identity())}:{request.prompt}"
        )

    def build_input(self, prompt: str) -> dict[str, Any]:
        chat = parse_chat_prompt(prompt, [{"role": "user", "content": prompt}])
        system_prompt = (
            chat.system or self.options.system_prompt or os.getenv("REPLICATE_SYSTEM_PROMPT")
        )
        user_prompt = chat.user if chat.structured and chat.user else prompt

        data = self.options.upstream_input()
        data["prompt"] = user_prompt
        if system_prompt:
            data["system_prompt"] = system_prompt
        return data

    async def invoke(self, backend: UpstreamBackend, request: CallRequest) -> Any:
        return await backend.run(self.model, self.build_input(request.prompt))

    def encode(self, request: CallRequest, raw: Any, cached: bool) -> ProviderResponse:
        try:
            response = normalize_output(raw)
        except (TypeError, ValueError) as e:
            return failure_from_exception(e)
        response.cached = cached
        return response

    def failure(self, message: str) -> ProviderResponse:
        return ProviderResponse.failure(message)

    def to_cache(self, raw: Any, response: ProviderResponse) -> str | None:
        if not response.ok:
            return None
        return response.model_dump_json(exclude={"cached"})

    def from_cache(self, request: CallRequest, text: str) -> ProviderResponse:
        response = ProviderResponse.model_validate_json(text)
        if not response.ok:
            raise ValueError("cached entry is a failure envelope")
        response.cached = True
        return response


class ModerationStrategy:
    """Llama Guard moderation: the moderated text is part of the key."""

    def __init__(self, model: str, options: ReplicateOptions):
        self.model = model
        self.options = options

    def cache_key(self, request: CallRequest) -> str | None:
        return (
            f"replicate:{self.model}:{canonical_json(self.options.cache_identity())}:"
            f"{request.prompt}:{request.assistant}"
        )

    async def invoke(self, backend: UpstreamBackend, request: CallRequest) -> Any:
        data = self.options.upstream_input()
        data.update({"prompt": request.prompt, "assistant": request.assistant})
        logger.debug(
            f"Calling Replicate moderation API: prompt [{request.prompt}] "
            f"assistant [{request.assistant}]"
        )
        return await backend.run(self.model, data)

    def encode(
        self, request: CallRequest, raw: Any, cached: bool
    ) -> ProviderModerationResponse:
        logger.debug(f"Replicate moderation API response: {raw!r}")
        response = classify_moderation_output(raw)
        response.cached = cached
        return response

    def failure(self, message: str) -> ProviderModerationResponse:
        return ProviderModerationResponse.failure(message)

    def to_cache(self, raw: Any, response: ProviderModerationResponse) -> str | None:
        # Malformed verdicts are never cached so the next call retries upstream
        if not response.ok:
            return None
        return json.dumps(raw)

    def from_cache(self, request: CallRequest, text: str) -> ProviderModerationResponse:
        response = self.encode(request, json.loads(text), cached=True)
        if not response.ok:
            raise ValueError(response.error)
        return response


class ImageStrategy:
    """Image generation: keyed on (prompt, context), output is markdown."""

    def __init__(self, model: str, options: ReplicateImageOptions):
        self.model = model
        self.options = options

    def cache_key(self, request: CallRequest) -> str | None:
        payload = safe_canonical_json({"context": request.context, "prompt": request.prompt})
        if payload is None:
            return None
        return f"replicate:image:{payload}"

    async def invoke(self, backend: UpstreamBackend, request: CallRequest) -> Any:
        data = self.options.upstream_input()
        data.update(
            {
                "width": self.options.width or DEFAULT_IMAGE_SIZE,
                "height": self.options.height or DEFAULT_IMAGE_SIZE,
                "prompt": request.prompt,
            }
        )
        return await backend.run(self.model, data)

    def encode(self, request: CallRequest, raw: Any, cached: bool) -> ProviderResponse:
        try:
            url = extract_image_url(raw)
        except ResponseShapeError:
            return ProviderResponse.failure(
                f"No image URL found in response: {to_json_text(raw)}"
            )
        return ProviderResponse.success(
            f"![{image_alt_text(request.prompt)}]({url})", cached=cached
        )

    def failure(self, message: str) -> ProviderResponse:
        return ProviderResponse.failure(message)

    def to_cache(self, raw: Any, response: ProviderResponse) -> str | None:
        if not response.ok:
            return None
        return json.dumps(raw)

    def from_cache(self, request: CallRequest, text: str) -> ProviderResponse:
        response = self.encode(request, json.loads(text), cached=True)
        if not response.ok:
            raise ValueError(response.error)
        return response


class ReplicateProvider:
    """Text and chat completion through Replicate.

    Examples:
        provider = ReplicateProvider(
            "meta/meta-llama-3-8b-instruct",
            config={"temperature": 0.2, "prompt": {"prefix": "[INST] ", "suffix": " [/INST]"}},
        )
        response = await provider.call_api("Tell me a joke")
    """

    def __init__(
        self,
        model_name: str,
        config: ReplicateOptions | dict[str, Any] | None = None,
        id: str | None = None,
        label: str | None = None,
        env: EnvOverrides | None = None,
        backend: UpstreamBackend | None = None,
    ):
        self.model_name = model_name
        self.config = ReplicateOptions.model_validate(config or {})
        self.identity = ProviderIdentity(
            id=id or f"replicate:{model_name}", model=model_name, label=label
        )
        self._core = _build_core(self.identity, self.config, env, backend)
        self._strategy = TextCompletionStrategy(model_name, self.config)

    def id(self) -> str:
        return self.identity.id

    def __str__(self) -> str:
        return f"[Replicate Provider {self.model_name}]"

    def apply_prompt_affixes(self, prompt: str) -> str:
        affixes = self.config.prompt
        if affixes is None:
            return prompt
        return f"{affixes.prefix or ''}{prompt}{affixes.suffix or ''}"

    async def call_api(
        self,
        prompt: str,
        context: dict[str, Any] | None = None,
        options: dict[str, Any] | None = None,
    ) -> ProviderResponse:
        """Complete ``prompt``.

        Raises:
            ConfigurationError: If no Replicate credential is configured
        """
        request = CallRequest(
            prompt=self.apply_prompt_affixes(prompt), context=context, options=options
        )
        return await self._core.execute(request, self._strategy)


class ReplicateModerationProvider:
    """Llama Guard moderation of a prompt/response pair."""

    def __init__(
        self,
        model_name: str,
        config: ReplicateOptions | dict[str, Any] | None = None,
        id: str | None = None,
        label: str | None = None,
        env: EnvOverrides | None = None,
        backend: UpstreamBackend | None = None,
    ):
        self.model_name = model_name
        self.config = ReplicateOptions.model_validate(config or {})
        self.identity = ProviderIdentity(
            id=id or f"replicate:moderation:{model_name}", model=model_name, label=label
        )
        self._core = _build_core(self.identity, self.config, env, backend)
        self._strategy = ModerationStrategy(model_name, self.config)

    def id(self) -> str:
        return self.identity.id

    def __str__(self) -> str:
        return f"[Replicate Moderation Provider {self.model_name}]"

    async def call_moderation_api(
        self, prompt: str, assistant: str
    ) -> ProviderModerationResponse:
        """Classify ``assistant`` (the reply to ``prompt``).

        Raises:
            ConfigurationError: If no Replicate credential is configured
        """
        request = CallRequest(prompt=prompt, assistant=assistant)
        return await self._core.execute(request, self._strategy)


class ReplicateImageProvider:
    """Image generation returning a markdown image reference."""

    def __init__(
        self,
        model_name: str,
        config: ReplicateImageOptions | dict[str, Any] | None = None,
        id: str | None = None,
        label: str | None = None,
        env: EnvOverrides | None = None,
        backend: UpstreamBackend | None = None,
    ):
        self.model_name = model_name
        self.config = ReplicateImageOptions.model_validate(config or {})
        self.identity = ProviderIdentity(
            id=id or f"replicate:image:{model_name}", model=model_name, label=label
        )
        self._core = _build_core(self.identity, self.config, env, backend)
        self._strategy = ImageStrategy(model_name, self.config)

    def id(self) -> str:
        return self.identity.id

    def __str__(self) -> str:
        return f"[Replicate Image Provider {self.model_name}]"

    async def call_api(
        self,
        prompt: str,
        context: dict[str, Any] | None = None,
        options: dict[str, Any] | None = None,
    ) -> ProviderResponse:
        """Generate an image for ``prompt``.

        Raises:
            ConfigurationError: If no Replicate credential is configured
        """
        request = CallRequest(prompt=prompt, context=context, options=options)
        return await self._core.execute(request, self._strategy)


DEFAULT_MODERATION_PROVIDER = ReplicateModerationProvider(LLAMA_GUARD_MODEL)
