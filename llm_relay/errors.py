"""Error taxonomy shared by the cache layer and provider adapters."""


class LLMRelayError(Exception):
    """Base exception for llm_relay."""

    pass


class ConfigurationError(LLMRelayError):
    """An adapter cannot be used, e.g. no credential resolved.

    Raised before any network activity and never converted into a
    failure envelope.
    """

    pass


class UpstreamError(LLMRelayError):
    """The upstream backend rejected or failed a request."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ResponseShapeError(LLMRelayError):
    """The upstream payload could not be interpreted."""

    pass


class CacheWriteError(LLMRelayError):
    """A cache backend failed to store a value."""

    pass
