"""Exceptions raised by the LLM subsystem."""


class ProviderError(Exception):
    """A provider request failed (transport, HTTP status, vendor API)."""

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class StreamError(ProviderError):
    """The provider reported an error in the middle of a stream."""


class ModelNotRecognizedError(ProviderError, LookupError):
    """No registered adapter claims the requested model."""

    def __init__(self, model: str, known: list[str] | None = None) -> None:
        known_list = ", ".join(known or []) or "(none)"
        super().__init__(f"Model not recognized: {model!r}. Available models: {known_list}")
        self.model = model
