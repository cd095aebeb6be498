"""Cooperative cancellation flag shared by the orchestrator and its caller."""

from __future__ import annotations

import asyncio


class CancellationToken:
    """
    Set from outside (a key handler, a signal) and polled by the orchestrator
    at its suspension points.  Nothing is interrupted preemptively.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    def reset(self) -> None:
        self._event.clear()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
