"""Request/response contracts shared by every provider adapter."""

from __future__ import annotations

from typing import Any, ClassVar, Literal, Protocol

from pydantic import BaseModel, ConfigDict, Field, model_validator

Role = Literal["system", "user", "assistant"]


class Message(BaseModel):
    """A single chat message."""

    role: Role
    content: str


class TokenUsage(BaseModel):
    """Token accounting. All zero when the backend does not report usage."""

    total: int = 0
    prompt: int = 0
    completion: int = 0


class ProviderIdentity(BaseModel):
    """Stable id, display label and upstream model of an adapter."""

    model_config = ConfigDict(frozen=True)

    id: str
    model: str
    label: str | None = None


class ProviderResponse(BaseModel):
    """Success or failure envelope returned by ``call_api``.

    Exactly one of ``output`` and ``error`` is populated.
    """

    output: Any | None = None
    error: str | None = None
    token_usage: TokenUsage | None = None
    cached: bool = False

    @model_validator(mode="after")
    def check_exclusive(self) -> ProviderResponse:
        if (self.output is None) == (self.error is None):
            raise ValueError("exactly one of output or error must be set")
        return self

    @classmethod
    def success(
        cls, output: Any, token_usage: TokenUsage | None = None, cached: bool = False
    ) -> ProviderResponse:
        return cls(output=output, token_usage=token_usage or TokenUsage(), cached=cached)

    @classmethod
    def failure(cls, error: str) -> ProviderResponse:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None


class ModerationFlag(BaseModel):
    """A single moderation category hit."""

    code: str
    description: str
    confidence: float = Field(ge=0.0, le=1.0)


class ProviderModerationResponse(BaseModel):
    """Result of ``call_moderation_api``: a flag list or an error."""

    flags: list[ModerationFlag] | None = None
    error: str | None = None
    cached: bool = False

    @model_validator(mode="after")
    def check_exclusive(self) -> ProviderModerationResponse:
        if (self.flags is None) == (self.error is None):
            raise ValueError("exactly one of flags or error must be set")
        return self

    @classmethod
    def failure(cls, error: str) -> ProviderModerationResponse:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None


class PromptAffixes(BaseModel):
    """Text wrapped around every prompt before it is sent."""

    prefix: str | None = None
    suffix: str | None = None


class ReplicateOptions(BaseModel):
    """Known Replicate options.

    Any other key is kept in ``model_extra`` and forwarded to the model
    input unchanged.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    api_key: str | None = Field(default=None, alias="apiKey")
    temperature: float | None = None
    max_length: int | None = None
    max_new_tokens: int | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    top_k: int | None = None
    repetition_penalty: float | None = None
    system_prompt: str | None = None
    stop_sequences: str | None = None
    seed: int | None = None
    prompt: PromptAffixes | None = None

    # Never sent upstream
    LOCAL_FIELDS: ClassVar[frozenset[str]] = frozenset({"api_key", "prompt"})

    def _dump(self, exclude: set[str]) -> dict[str, Any]:
        # Unset known fields are dropped; pass-through keys are kept as given,
        # None values included.
        known = set(type(self).model_fields) - exclude
        data = self.model_dump(include=known, exclude_none=True)
        data.update(self.model_extra or {})
        return data

    def cache_identity(self) -> dict[str, Any]:
        """Effective configuration for cache keys, without the credential."""
        return self._dump({"api_key"})

    def upstream_input(self) -> dict[str, Any]:
        """Options merged into the upstream ``input`` object."""
        return self._dump(set(self.LOCAL_FIELDS))


class ReplicateImageOptions(ReplicateOptions):
    """Options for image generation models."""

    width: int | None = None
    height: int | None = None
    refine: str | None = None
    apply_watermark: bool | None = None
    num_inference_steps: int | None = None


class UpstreamBackend(Protocol):
    """Opaque remote call: model identifier + input object -> raw payload."""

    async def run(self, model: str, input: dict[str, Any]) -> Any:
        ...
