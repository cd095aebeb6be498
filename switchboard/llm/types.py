"""Core types for the LLM subsystem."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Union

ROLES = ("system", "user", "assistant", "tool")


@dataclass
class ToolCallRequest:
    """A tool call whose JSON arguments have been fully reassembled."""

    id: str
    name: str
    raw_arguments: str

    def arguments(self) -> dict:
        """Parse ``raw_arguments``.  Raises ``ValueError`` on bad JSON."""
        return json.loads(self.raw_arguments or "{}")


@dataclass
class Message:
    """A single message in a conversation."""

    role: str  # "user", "assistant", "system", "tool"
    content: str | None
    tool_calls: list[ToolCallRequest] | None = None
    tool_call_id: str | None = None
    name: str | None = None

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Invalid message role: {self.role!r}")
        if self.content is None and not (self.role == "assistant" and self.tool_calls):
            raise ValueError(
                "content may only be None on assistant messages carrying tool calls"
            )
        if self.role == "tool" and not self.tool_call_id:
            raise ValueError("tool messages require a tool_call_id")


# ---------------------------------------------------------------------------
# Stream deltas
# ---------------------------------------------------------------------------


@dataclass
class ContentDelta:
    text: str


@dataclass
class ToolCallFragment:
    """
    An incremental fragment of a streaming tool call.

    Providers emit these as tool-call pieces arrive.  ``id_part`` and
    ``name_part`` are sent whole by every vendor we speak to; only
    ``arguments_part`` is split across fragments.
    """

    index: int
    id_part: str | None = None
    name_part: str | None = None
    arguments_part: str = ""


@dataclass
class DoneDelta:
    reason: str = "stop"


@dataclass
class ErrorDelta:
    message: str


StreamDelta = Union[ContentDelta, ToolCallFragment, DoneDelta, ErrorDelta]


# ---------------------------------------------------------------------------
# Assembled results
# ---------------------------------------------------------------------------


@dataclass
class Turn:
    """
    The complete assistant turn after consuming one provider stream.

    *dropped* lists diagnostics for tool calls that never became valid JSON.
    """

    content: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    finish_reason: str | None = None
    dropped: list[str] = field(default_factory=list)

    def to_message(self) -> Message:
        if self.tool_calls:
            return Message(
                role="assistant",
                content=self.content or None,
                tool_calls=list(self.tool_calls),
            )
        return Message(role="assistant", content=self.content)


@dataclass
class ProviderCapabilities:
    streaming: bool = True
    function_calling: bool = True
    vision: bool = False
    max_tokens: int = 4096
    supported_formats: list[str] = field(default_factory=lambda: ["text"])
