"""
Token counting with optional tiktoken backend.

If ``tiktoken`` is installed the counter delegates to its BPE encoder for the
requested model.  Otherwise a simple character-based heuristic is used
(~4 characters per token).  Counts are estimates either way; they feed the
``token_usage`` events shown to the operator.
"""

from __future__ import annotations

import json
from typing import Any

from switchboard.llm.types import Message

# Role markers and separators the vendors wrap around each message.
_MESSAGE_OVERHEAD = 4


class TokenCounter:
    """
    Estimate token counts for text and message lists.

    Parameters
    ----------
    model:
        Model name passed to ``tiktoken.encoding_for_model``.  Ignored when
        tiktoken is not available or does not know the model.
    """

    def __init__(self, model: str | None = None) -> None:
        self.model = model
        self._tiktoken_enc: Any = None
        if model:
            try:
                import tiktoken  # type: ignore[import-untyped]

                self._tiktoken_enc = tiktoken.encoding_for_model(model)
            except Exception:
                # tiktoken missing or model not recognised -- use the heuristic.
                pass

    def count_text(self, text: str) -> int:
        """Return the estimated token count for a plain string."""
        if not text:
            return 0
        if self._tiktoken_enc is not None:
            return len(self._tiktoken_enc.encode(text))
        return max(1, len(text) // 4)

    def count_messages(
        self,
        messages: list[Message],
        tools: list[dict] | None = None,
    ) -> int:
        """Estimate the prompt size of *messages* plus the tool schemas sent with them."""
        total = sum(_MESSAGE_OVERHEAD + self._count_message(m) for m in messages)
        if tools:
            total += self.count_text(json.dumps(tools))
        return total

    def _count_message(self, message: Message) -> int:
        parts = [message.content or "", message.tool_call_id or ""]
        for call in message.tool_calls or []:
            parts.extend((call.name, call.raw_arguments))
        return sum(self.count_text(p) for p in parts)
