"""
Orchestrator event model.

The orchestrator reports progress to the presentation layer as a stream of
``OrchestratorEvent`` objects.  Every submission ends with exactly one
terminal event: ``done``, ``error`` or ``cancelled``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from switchboard.llm.types import ToolCallRequest
from switchboard.types import ToolResult

# ---------------------------------------------------------------------------
# Event kinds
# ---------------------------------------------------------------------------

EVENT_CONTENT = "content"
EVENT_TOKEN_USAGE = "token_usage"
EVENT_TOOL_CALLS_DETECTED = "tool_calls_detected"
EVENT_TOOL_RESULT = "tool_result"
EVENT_ROUND_LIMIT = "round_limit"
EVENT_DONE = "done"
EVENT_ERROR = "error"
EVENT_CANCELLED = "cancelled"

TERMINAL_EVENTS = frozenset({EVENT_DONE, EVENT_ERROR, EVENT_CANCELLED})


@dataclass
class OrchestratorEvent:
    """
    A single event yielded by ``ConversationOrchestrator.submit_user_message``.

    Attributes
    ----------
    kind:
        One of the ``EVENT_*`` constants.
    text:
        Content text (``content``) or a diagnostic / error message.
    tool_calls:
        Calls detected in a turn (``tool_calls_detected``).
    tool_call, result:
        The call and its outcome (``tool_result``).
    token_count:
        Estimated tokens streamed so far in this submission (``token_usage``).
    details:
        Free-form extra data.
    """

    kind: str
    text: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    tool_call: ToolCallRequest | None = None
    result: ToolResult | None = None
    token_count: int = 0
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def terminal(self) -> bool:
        return self.kind in TERMINAL_EVENTS


# ---------------------------------------------------------------------------
# Factory helpers
# ---------------------------------------------------------------------------


def content_event(text: str) -> OrchestratorEvent:
    return OrchestratorEvent(EVENT_CONTENT, text=text)


def token_usage_event(count: int) -> OrchestratorEvent:
    return OrchestratorEvent(EVENT_TOKEN_USAGE, token_count=count)


def tool_calls_detected_event(calls: list[ToolCallRequest]) -> OrchestratorEvent:
    return OrchestratorEvent(EVENT_TOOL_CALLS_DETECTED, tool_calls=list(calls))


def tool_result_event(call: ToolCallRequest, result: ToolResult) -> OrchestratorEvent:
    return OrchestratorEvent(EVENT_TOOL_RESULT, tool_call=call, result=result)


def round_limit_event(max_rounds: int) -> OrchestratorEvent:
    return OrchestratorEvent(
        EVENT_ROUND_LIMIT,
        text=f"Reached maximum of {max_rounds} tool call rounds. Stopping here.",
        details={"max_rounds": max_rounds},
    )


def done_event(reason: str = "stop") -> OrchestratorEvent:
    return OrchestratorEvent(EVENT_DONE, details={"reason": reason})


def error_event(message: str, **details: Any) -> OrchestratorEvent:
    return OrchestratorEvent(EVENT_ERROR, text=message, details=details)


def cancelled_event(where: str) -> OrchestratorEvent:
    return OrchestratorEvent(EVENT_CANCELLED, text="Operation cancelled", details={"where": where})
