"""Abstract base class for provider adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator

from switchboard.llm.token_counter import TokenCounter
from switchboard.llm.types import Message, ProviderCapabilities, StreamDelta


class ProviderAdapter(ABC):
    """
    An adapter encapsulates access to a single vendor endpoint.

    Implementations must support:
      - Streaming a turn as vendor-neutral ``StreamDelta`` objects
        (``stream_turn``).
      - Translating the *whole* universal history, including tool messages
        produced while another adapter was active.
      - Model listing and selection, and capability reporting.

    Adapters never mutate the history they are given.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare clients, discover models, etc."""
        ...

    @abstractmethod
    async def stream_turn(
        self,
        history: list[Message],
        tools: list[dict] | None = None,
        options: dict[str, Any] | None = None,
    ) -> AsyncIterator[StreamDelta]:
        """
        Stream one assistant turn.

        Yields ``StreamDelta`` objects and ends with a ``DoneDelta`` or an
        ``ErrorDelta``.
        """
        ...
        # Make the method an async generator so sub-classes can ``yield``.
        # This line is unreachable but satisfies the type checker.
        if False:  # pragma: no cover
            yield  # type: ignore[misc]

    @abstractmethod
    def list_models(self) -> list[str]:
        """Model identifiers this adapter can serve."""
        ...

    @abstractmethod
    def select_model(self, model: str) -> None:
        """
        Make *model* the current model.

        Raises ``ValueError`` if the adapter does not serve it.
        """
        ...

    @property
    @abstractmethod
    def current_model(self) -> str: ...

    @abstractmethod
    def describe_capabilities(self) -> ProviderCapabilities: ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable adapter name (e.g. ``"openai"``)."""
        ...

    def count_tokens(
        self,
        messages: list[Message],
        tools: list[dict] | None = None,
    ) -> int:
        """Estimate the total token count for the given conversation."""
        return TokenCounter(self.current_model).count_messages(messages, tools)

    def supports(self, capability: str) -> bool:
        return bool(getattr(self.describe_capabilities(), capability, False))
