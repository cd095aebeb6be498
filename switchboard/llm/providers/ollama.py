"""
Ollama adapter.

Streams responses from a local Ollama instance via its ``/api/chat`` endpoint.
Supports tool calling when the Ollama model advertises it.

Dependencies: ``httpx``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator

import httpx

from switchboard.llm.providers.base import ProviderAdapter
from switchboard.llm.types import (
    ContentDelta,
    DoneDelta,
    ErrorDelta,
    Message,
    ProviderCapabilities,
    StreamDelta,
    ToolCallFragment,
)

logger = logging.getLogger(__name__)

# Ollama context sizes vary by model.  Default to a reasonable value; users
# can override via the constructor.
_DEFAULT_MAX_CONTEXT = 8192


class OllamaAdapter(ProviderAdapter):
    """
    Adapter for a local `Ollama <https://ollama.com>`_ instance.

    Parameters
    ----------
    url:
        Base URL of the Ollama HTTP API (e.g. ``"http://localhost:11434"``).
    model:
        Model tag, e.g. ``"llama3.1"`` or ``"qwen2.5-coder"``.
    models:
        Known model tags; refreshed from ``/api/tags`` on ``initialize()``.
    timeout:
        HTTP request timeout in seconds.
    max_context:
        Maximum context window in tokens (model-dependent).
    transport:
        Optional ``httpx`` transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        url: str = "http://localhost:11434",
        model: str = "llama3.1",
        models: list[str] | None = None,
        timeout: float = 120.0,
        max_context: int = _DEFAULT_MAX_CONTEXT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url.rstrip("/")
        self._model = model
        self._models = list(models or [model])
        if model not in self._models:
            self._models.append(model)
        self._timeout = timeout
        self._max_context = max_context
        self._transport = transport

    # ------------------------------------------------------------------
    # ProviderAdapter interface
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return "ollama"

    @property
    def current_model(self) -> str:
        return self._model

    def list_models(self) -> list[str]:
        return list(self._models)

    def select_model(self, model: str) -> None:
        if model not in self._models:
            raise ValueError(
                f"Model {model} not available in Ollama. "
                f"Available models: {', '.join(self._models)}"
            )
        self._model = model

    def describe_capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            streaming=True,
            function_calling=True,
            vision="llava" in self._model,
            max_tokens=self._max_context,
        )

    async def initialize(self) -> None:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.get(f"{self._url}/api/tags")
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Ollama: could not list models: %s", exc)
            return

        tags = [m["name"] for m in data.get("models", []) if "name" in m]
        if tags:
            self._models = sorted(set(tags) | {self._model})

    async def stream_turn(
        self,
        history: list[Message],
        tools: list[dict] | None = None,
        options: dict[str, Any] | None = None,
    ) -> AsyncIterator[StreamDelta]:
        body = self._build_body(history, tools, options)
        try:
            async for delta in self._stream_request(body):
                yield delta
        except httpx.HTTPError as exc:
            logger.warning("Ollama stream failed: %s", exc)
            yield ErrorDelta(f"ollama request failed: {exc}")
        except Exception as exc:
            logger.exception("Ollama stream produced an unexpected error")
            yield ErrorDelta(f"ollama stream failed: {exc}")

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def _build_body(
        self,
        history: list[Message],
        tools: list[dict] | None,
        options: dict[str, Any] | None,
    ) -> dict:
        wire_messages: list[dict] = []
        for msg in history:
            m: dict = {"role": msg.role, "content": msg.content or ""}

            if msg.tool_calls:
                m["tool_calls"] = [
                    {
                        "function": {
                            "name": tc.name,
                            # Ollama expects a dict, not a string.
                            "arguments": tc.arguments(),
                        },
                    }
                    for tc in msg.tool_calls
                ]

            if msg.role == "tool" and msg.name:
                m["tool_name"] = msg.name

            wire_messages.append(m)

        body: dict = {
            "model": self._model,
            "messages": wire_messages,
            "stream": True,
        }

        if tools:
            body["tools"] = tools

        ollama_options = {
            k: v for k, v in (options or {}).items() if v is not None
        }
        if "max_tokens" in ollama_options:
            ollama_options["num_predict"] = ollama_options.pop("max_tokens")
        if ollama_options:
            body["options"] = ollama_options

        return body

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def _stream_request(self, body: dict) -> AsyncIterator[StreamDelta]:
        """
        Ollama streams newline-delimited JSON objects from ``/api/chat``.
        Each line is a complete JSON object.
        """
        url = f"{self._url}/api/chat"
        call_counter = 0

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            async with client.stream("POST", url, json=body) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise httpx.HTTPStatusError(
                        f"HTTP {response.status_code}: {response.text[:300]}",
                        request=response.request,
                        response=response,
                    )

                async for line in response.aiter_lines():
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        data = json.loads(line)
                    except json.JSONDecodeError:
                        logger.warning("Ollama: failed to parse line: %s", line[:200])
                        continue
                    if not isinstance(data, dict):
                        logger.warning("Ollama: ignoring non-object line: %s", line[:200])
                        continue

                    deltas, call_counter = self._data_to_deltas(data, call_counter)
                    for delta in deltas:
                        yield delta
                        if isinstance(delta, (DoneDelta, ErrorDelta)):
                            return

                # Safety: always end the turn.
                yield DoneDelta("stop")

    def _data_to_deltas(
        self, data: dict, call_counter: int
    ) -> tuple[list[StreamDelta], int]:
        """Convert a single Ollama JSON object into stream deltas."""
        if data.get("error"):
            return [ErrorDelta(str(data["error"]))], call_counter

        deltas: list[StreamDelta] = []
        message = data.get("message")
        if not isinstance(message, dict):
            message = {}

        content = message.get("content") or ""
        if content:
            deltas.append(ContentDelta(str(content)))

        # Ollama sends each tool call whole, never fragmented.
        for tc in message.get("tool_calls") or []:
            if not isinstance(tc, dict):
                continue
            func = tc.get("function") or {}
            deltas.append(
                ToolCallFragment(
                    index=call_counter,
                    id_part=f"ollama_call_{call_counter}",
                    name_part=func.get("name", ""),
                    arguments_part=json.dumps(func.get("arguments") or {}),
                )
            )
            call_counter += 1

        if data.get("done"):
            deltas.append(DoneDelta(data.get("done_reason") or "stop"))

        return deltas, call_counter
