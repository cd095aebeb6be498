"""LLM subsystem -- adapters, provider registry, and stream reassembly."""

from switchboard.llm.errors import ModelNotRecognizedError, ProviderError, StreamError
from switchboard.llm.types import (
    ContentDelta,
    DoneDelta,
    ErrorDelta,
    Message,
    ProviderCapabilities,
    StreamDelta,
    ToolCallFragment,
    ToolCallRequest,
    Turn,
)
from switchboard.llm.reassembler import StreamReassembler, is_complete_json, reassemble
from switchboard.llm.registry import ProviderRegistry
from switchboard.llm.token_counter import TokenCounter

__all__ = [
    "ContentDelta",
    "DoneDelta",
    "ErrorDelta",
    "Message",
    "ModelNotRecognizedError",
    "ProviderCapabilities",
    "ProviderError",
    "ProviderRegistry",
    "StreamDelta",
    "StreamError",
    "StreamReassembler",
    "TokenCounter",
    "ToolCallFragment",
    "ToolCallRequest",
    "Turn",
    "is_complete_json",
    "reassemble",
]
