"""
Orchestrator core -- the main loop that ties everything together.

The orchestrator:
1. Takes user input and appends it to the conversation history
2. Streams a turn from the active provider adapter
3. Reassembles text and tool calls as the deltas arrive
4. Executes tool calls one by one, in the order received, feeding each
   result back into the history
5. Loops until a turn has no tool calls, the round cap is hit, or the
   operator cancels
6. Yields ``OrchestratorEvent`` objects for the UI throughout
"""

from __future__ import annotations

import logging
from contextlib import aclosing
from enum import Enum
from typing import Any, AsyncIterator

from switchboard.llm.errors import ProviderError
from switchboard.llm.providers.base import ProviderAdapter
from switchboard.llm.reassembler import StreamReassembler
from switchboard.llm.registry import ProviderRegistry
from switchboard.llm.token_counter import TokenCounter
from switchboard.llm.types import ContentDelta, Message, ToolCallRequest
from switchboard.orchestrator.cancellation import CancellationToken
from switchboard.orchestrator.events import (
    OrchestratorEvent,
    cancelled_event,
    content_event,
    done_event,
    error_event,
    round_limit_event,
    token_usage_event,
    tool_calls_detected_event,
    tool_result_event,
)
from switchboard.tools.dispatch import ToolDispatchTable
from switchboard.types import ErrorCode, ToolResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROUNDS = 30


class OrchestratorState(str, Enum):
    IDLE = "idle"
    AWAITING_PROVIDER_RESPONSE = "awaiting_provider_response"
    EXECUTING_TOOLS = "executing_tools"
    CANCELLED = "cancelled"


class ConversationOrchestrator:
    """
    Main orchestrator loop.

    Parameters
    ----------
    providers : ProviderRegistry
        Registered adapters; the active one serves each request.
    tools : ToolDispatchTable
        Registered tools.
    system_prompt : str
        Placed at the head of the history.
    max_rounds : int
        Max tool-execution rounds per user submission.
    options : dict
        Passed through to ``ProviderAdapter.stream_turn`` (temperature,
        max_tokens, ...).
    token_counter : TokenCounter
        Estimates the streamed reply in ``token_usage`` events; the prompt
        part comes from the adapter's ``count_tokens``.
    cancellation : CancellationToken
        Shared cancellation flag; one is created if omitted.

    Submissions must be serialized by the caller: one
    ``submit_user_message`` stream is consumed to completion before the
    next one starts.
    """

    def __init__(
        self,
        providers: ProviderRegistry,
        tools: ToolDispatchTable,
        system_prompt: str = "",
        max_rounds: int = DEFAULT_MAX_ROUNDS,
        options: dict[str, Any] | None = None,
        token_counter: TokenCounter | None = None,
        cancellation: CancellationToken | None = None,
    ) -> None:
        if max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")
        self.providers = providers
        self.tools = tools
        self.system_prompt = system_prompt
        self.max_rounds = max_rounds
        self.options = dict(options or {})
        self.token_counter = token_counter or TokenCounter(None)
        self.cancellation = cancellation or CancellationToken()
        self.state = OrchestratorState.IDLE
        self.round_counter = 0
        self._history: list[Message] = []
        self._unanswered: list[ToolCallRequest] = []
        if system_prompt:
            self._history.append(Message(role="system", content=system_prompt))

    # ------------------------------------------------------------------
    # Session state
    # ------------------------------------------------------------------

    @property
    def history(self) -> list[Message]:
        """A copy of the conversation history."""
        return list(self._history)

    @property
    def active_provider_id(self) -> str | None:
        return self.providers.active_name

    def clear_history(self) -> None:
        """Drop the conversation, keeping the system prompt."""
        self._history = [m for m in self._history[:1] if m.role == "system"]

    def switch_model(self, model: str) -> ProviderAdapter:
        """
        Point the session at the adapter serving *model*.

        History is untouched; the new adapter receives all of it on the next
        request.  Raises ``ModelNotRecognizedError`` for unknown models.
        """
        adapter = self.providers.switch_model(model)
        self.token_counter = TokenCounter(model)
        logger.info("Model switched to %s (%s)", model, adapter.name)
        return adapter

    def tool_schemas(self) -> list[dict]:
        return self.tools.schemas()

    def cancel(self) -> None:
        """Request cancellation of the running submission."""
        self.cancellation.cancel()

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    async def submit_user_message(self, text: str) -> AsyncIterator[OrchestratorEvent]:
        """
        Process a user message through the full loop.

        Yields events for UI rendering; the last event is always ``done``,
        ``error`` or ``cancelled``.
        """
        self.cancellation.reset()
        self.round_counter = 0
        self._append(Message(role="user", content=text))

        tools_schema = self.tools.schemas() or None
        streamed_tokens = 0

        try:
            while True:
                if self.cancellation.cancelled:
                    yield self._cancelled("before_request")
                    return

                self.state = OrchestratorState.AWAITING_PROVIDER_RESPONSE
                provider = self.providers.active
                reassembler = StreamReassembler()
                prompt_tokens = provider.count_tokens(self._history, tools_schema)
                interrupted = False

                try:
                    async with aclosing(
                        provider.stream_turn(self.history, tools_schema, dict(self.options))
                    ) as stream:
                        async for delta in stream:
                            reassembler.feed(delta)
                            if isinstance(delta, ContentDelta) and delta.text:
                                streamed_tokens += self.token_counter.count_text(delta.text)
                                yield content_event(delta.text)
                                yield token_usage_event(prompt_tokens + streamed_tokens)
                            if self.cancellation.cancelled:
                                interrupted = True
                                break
                except ProviderError as exc:
                    logger.warning("Provider %s failed: %s", provider.name, exc)
                    yield error_event(str(exc), provider=provider.name)
                    return

                if interrupted:
                    yield self._cancelled("stream")
                    return

                turn = reassembler.finish()

                # No tool calls -> final response
                if not turn.tool_calls:
                    if turn.content:
                        self._append(turn.to_message())
                    yield done_event(turn.finish_reason or "stop")
                    return

                # Record the assistant message before any tool runs
                self._append(turn.to_message())
                self._unanswered = list(turn.tool_calls)
                yield tool_calls_detected_event(turn.tool_calls)

                self.state = OrchestratorState.EXECUTING_TOOLS
                for call in turn.tool_calls:
                    if self.cancellation.cancelled:
                        self._close_unanswered("Cancelled before execution")
                        yield self._cancelled("tools")
                        return
                    result = await self.tools.dispatch(call.name, call.raw_arguments)
                    self._record_result(call, result)
                    yield tool_result_event(call, result)

                self.round_counter += 1
                # A cancel raised by the last tool outranks the round cap.
                if self.cancellation.cancelled:
                    yield self._cancelled("tools")
                    return
                if self.round_counter >= self.max_rounds:
                    logger.warning(
                        "Round limit reached (%d); stopping tool loop", self.max_rounds
                    )
                    yield round_limit_event(self.max_rounds)
                    yield done_event("round_limit")
                    return
        finally:
            # The consumer may stop iterating mid-round; keep history replayable.
            self._close_unanswered("Not executed: operation interrupted")
            self.state = OrchestratorState.IDLE

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _append(self, message: Message) -> None:
        self._history.append(message)

    def _record_result(self, call: ToolCallRequest, result: ToolResult) -> None:
        self._append(
            Message(
                role="tool",
                content=result.content,
                tool_call_id=call.id,
                name=call.name,
            )
        )
        if call in self._unanswered:
            self._unanswered.remove(call)

    def _close_unanswered(self, reason: str) -> None:
        for call in list(self._unanswered):
            self._record_result(call, ToolResult.fail(reason, ErrorCode.CANCELLED))

    def _cancelled(self, where: str) -> OrchestratorEvent:
        self.state = OrchestratorState.CANCELLED
        logger.info("Submission cancelled (%s)", where)
        return cancelled_event(where)
