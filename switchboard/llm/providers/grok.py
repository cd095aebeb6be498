"""xAI Grok adapter -- an OpenAI-compatible endpoint with its own model list."""

from __future__ import annotations

from switchboard.llm.providers.openai_compat import OpenAICompatAdapter
from switchboard.llm.types import ProviderCapabilities


class GrokAdapter(OpenAICompatAdapter):
    DEFAULT_URL = "https://api.x.ai/v1"
    DEFAULT_MODELS = [
        "grok-4-latest",
        "grok-3-latest",
        "grok-3-fast",
        "grok-3-mini-fast",
    ]
    MODEL_PREFIX = "grok-"
    DEFAULT_MAX_TOKENS = 131_072

    def __init__(self, *args, **kwargs) -> None:
        kwargs.setdefault("discover_models", False)
        kwargs.setdefault("timeout", 360.0)
        super().__init__(*args, **kwargs)

    @property
    def name(self) -> str:
        return self._name or "grok"

    def describe_capabilities(self) -> ProviderCapabilities:
        vision = "vision" in self._model
        return ProviderCapabilities(
            streaming=True,
            function_calling=True,
            vision=vision,
            max_tokens=self.DEFAULT_MAX_TOKENS,
            supported_formats=["text", "image"] if vision else ["text"],
        )
