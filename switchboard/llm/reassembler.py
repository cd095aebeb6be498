"""
Reassembles a stream of ``StreamDelta`` objects into a single ``Turn``.

Design goals:
  - Concatenate text deltas verbatim into the turn content.
  - Accumulate ``ToolCallFragment`` arguments keyed by ``index``.
  - Emit a tool call the moment its arguments are complete JSON and a name
    has been seen, then drop it from the pending buffer so later fragments
    cannot emit it twice.
  - On ``DoneDelta`` anything still pending is *dropped* and an error is
    recorded -- the caller can inspect ``self.errors`` or ``Turn.dropped``.
  - On ``ErrorDelta`` raise ``StreamError``; partial content is discarded.
"""

from __future__ import annotations

import json
import logging
from typing import AsyncIterable

from switchboard.llm.errors import StreamError
from switchboard.llm.types import (
    ContentDelta,
    DoneDelta,
    ErrorDelta,
    StreamDelta,
    ToolCallFragment,
    ToolCallRequest,
    Turn,
)

logger = logging.getLogger(__name__)


def is_complete_json(text: str) -> bool:
    """
    Return True when *text* is a complete JSON object.

    Brace depth must return to zero outside string literals (backslash
    escapes honoured), no string may be left open, and the result must
    parse as a JSON object.
    """
    s = text.strip()
    if not s.startswith("{") or not s.endswith("}"):
        return False

    depth = 0
    in_string = False
    escaped = False
    for ch in s:
        if escaped:
            escaped = False
            continue
        if ch == "\\":
            escaped = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if not in_string:
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1

    if depth != 0 or in_string:
        return False

    try:
        return isinstance(json.loads(s), dict)
    except ValueError:
        return False


class StreamReassembler:
    """Buffers stream deltas for one provider request and builds a ``Turn``."""

    def __init__(self) -> None:
        self._content: list[str] = []
        self._pending: dict[int, dict] = {}
        self._completed: list[ToolCallRequest] = []
        self._emitted: set[int] = set()
        self._finish_reason: str | None = None
        self._finished = False
        self.errors: list[str] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def done(self) -> bool:
        return self._finish_reason is not None

    @property
    def content(self) -> str:
        return "".join(self._content)

    def feed(self, delta: StreamDelta) -> list[ToolCallRequest]:
        """
        Feed a single delta.

        Returns the (possibly empty) list of tool calls that became eligible
        because of this delta.
        """
        if self._finished:
            raise RuntimeError("StreamReassembler already finished; create a new one per turn")

        if self.done:
            # Vendors occasionally trail usage chunks after the finish marker.
            return []

        if isinstance(delta, ContentDelta):
            if delta.text:
                self._content.append(delta.text)
            return []

        if isinstance(delta, ToolCallFragment):
            return self._feed_fragment(delta)

        if isinstance(delta, DoneDelta):
            self._finish_reason = delta.reason or "stop"
            self._drop_pending()
            return []

        if isinstance(delta, ErrorDelta):
            self._content.clear()
            self._pending.clear()
            self._completed.clear()
            raise StreamError(delta.message)

        raise TypeError(f"Unsupported stream delta: {delta!r}")

    def finish(self) -> Turn:
        """Finalize and return the ``Turn``.  Also valid without a ``done``."""
        if not self.done:
            self._drop_pending()
        self._finished = True
        return Turn(
            content=self.content,
            tool_calls=list(self._completed),
            finish_reason=self._finish_reason,
            dropped=list(self.errors),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _feed_fragment(self, frag: ToolCallFragment) -> list[ToolCallRequest]:
        if frag.index in self._emitted:
            return []

        buf = self._pending.setdefault(
            frag.index, {"id": None, "name": None, "args": ""}
        )

        if frag.id_part and not buf["id"]:
            buf["id"] = frag.id_part

        if frag.name_part and not buf["name"]:
            buf["name"] = frag.name_part.strip()

        if frag.arguments_part:
            buf["args"] += frag.arguments_part

        if buf["name"] and is_complete_json(buf["args"]):
            del self._pending[frag.index]
            self._emitted.add(frag.index)
            call = ToolCallRequest(
                id=buf["id"] or f"call_{frag.index}",
                name=buf["name"],
                raw_arguments=buf["args"].strip(),
            )
            self._completed.append(call)
            return [call]

        return []

    def _drop_pending(self) -> None:
        for idx in sorted(self._pending):
            buf = self._pending[idx]
            msg = (
                f"tool_call_incomplete idx={idx} name={buf['name'] or '?'} "
                f"args={buf['args'][:100]!r}"
            )
            self.errors.append(msg)
            logger.warning("Dropping malformed tool call: %s", msg)
        self._pending.clear()


async def reassemble(deltas: AsyncIterable[StreamDelta]) -> Turn:
    """
    Drain *deltas* into a fresh ``StreamReassembler`` and return the ``Turn``.

    Raises ``StreamError`` if the stream carries an ``ErrorDelta``.
    """
    reassembler = StreamReassembler()
    async for delta in deltas:
        reassembler.feed(delta)
    return reassembler.finish()
