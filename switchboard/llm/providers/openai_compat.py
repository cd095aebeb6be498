"""
OpenAI-compatible chat-completion adapter.

Works with any endpoint that speaks the OpenAI ``/v1/chat/completions`` wire
protocol -- OpenAI itself, xAI Grok, OpenRouter, vLLM, LM Studio, etc.

Dependencies: ``httpx`` (async HTTP client).  No ``openai`` SDK needed.
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

# Context sizes by model-name fragment, checked in order.
_MODEL_MAX_TOKENS: list[tuple[str, int]] = [
    ("gpt-4o", 128_000),
    ("gpt-4-turbo", 128_000),
    ("gpt-4", 8_192),
    ("gpt-3.5-turbo", 16_385),
]


class OpenAICompatAdapter(ProviderAdapter):
    """
    Stream-capable adapter for any OpenAI-API-compatible endpoint.

    Parameters
    ----------
    url:
        Base URL of the API, e.g. ``"https://api.openai.com/v1"`` or
        ``"http://localhost:8080/v1"``.
    model:
        Initial model identifier.  Defaults to the first known model.
    api_key:
        Bearer token.  Pass ``""`` for unauthenticated local endpoints.
    timeout:
        HTTP request timeout in seconds.
    max_retries:
        Number of automatic retries on transient HTTP errors (5xx, 429)
        before any delta of the stream has been delivered.
    models:
        Known model ids.  Replaced by the ``/models`` listing on
        ``initialize()`` when *discover_models* is set.
    discover_models:
        Query ``/models`` during ``initialize()``.
    transport:
        Optional ``httpx`` transport (tests pass ``httpx.MockTransport``).
    """

    DEFAULT_URL = "https://api.openai.com/v1"
    DEFAULT_MODELS: list[str] = [
        "gpt-4o",
        "gpt-4o-mini",
        "gpt-4-turbo",
        "gpt-4",
        "gpt-3.5-turbo",
    ]
    MODEL_PREFIX = "gpt-"
    DEFAULT_MAX_TOKENS = 4_000

    def __init__(
        self,
        url: str | None = None,
        model: str | None = None,
        api_key: str = "",
        timeout: float = 120.0,
        max_retries: int = 2,
        models: list[str] | None = None,
        discover_models: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
        name: str | None = None,
    ) -> None:
        self._url = (url or self.DEFAULT_URL).rstrip("/")
        self._models = list(models or self.DEFAULT_MODELS)
        self._model = model or self._models[0]
        if self._model not in self._models:
            self._models.append(self._model)
        self._api_key = api_key
        self._timeout = timeout
        self._max_retries = max_retries
        self._discover = discover_models
        self._transport = transport
        self._name = name

    # ------------------------------------------------------------------
    # ProviderAdapter interface
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name or "openai"

    @property
    def current_model(self) -> str:
        return self._model

    def list_models(self) -> list[str]:
        return list(self._models)

    def select_model(self, model: str) -> None:
        if model not in self._models:
            raise ValueError(
                f"Model {model} not supported by {self.name} adapter. "
                f"Available models: {', '.join(self._models)}"
            )
        self._model = model

    def describe_capabilities(self) -> ProviderCapabilities:
        model = self._model
        vision = "vision" in model or "4o" in model or "gpt-4-turbo" in model
        return ProviderCapabilities(
            streaming=True,
            function_calling=True,
            vision=vision,
            max_tokens=self._max_tokens_for(model),
            supported_formats=["text", "image"] if vision else ["text"],
        )

    async def initialize(self) -> None:
        if not self._discover:
            return
        try:
            async with self._client(self._timeout) as client:
                resp = await client.get(f"{self._url}/models", headers=self._build_headers())
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "Could not fetch %s models, using defaults: %s", self.name, exc
            )
            return

        discovered = sorted(
            m["id"]
            for m in data.get("data", [])
            if isinstance(m, dict) and str(m.get("id", "")).startswith(self.MODEL_PREFIX)
        )
        if discovered:
            self._models = discovered
            if self._model not in self._models:
                self._models.append(self._model)

    async def stream_turn(
        self,
        history: list[Message],
        tools: list[dict] | None = None,
        options: dict[str, Any] | None = None,
    ) -> AsyncIterator[StreamDelta]:
        body = self._build_body(history, tools, options)
        headers = self._build_headers()
        try:
            async for delta in self._stream_request(body, headers):
                yield delta
        except httpx.HTTPError as exc:
            logger.warning("%s stream failed: %s", self.name, exc)
            yield ErrorDelta(f"{self.name} request failed: {exc}")
        except Exception as exc:
            logger.exception("%s stream produced an unexpected error", self.name)
            yield ErrorDelta(f"{self.name} stream failed: {exc}")

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def _max_tokens_for(self, model: str) -> int:
        for fragment, size in _MODEL_MAX_TOKENS:
            if fragment in model:
                return size
        return self.DEFAULT_MAX_TOKENS

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    def _build_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _wire_messages(self, history: list[Message]) -> list[dict]:
        wire_messages = []
        for msg in history:
            m: dict = {"role": msg.role, "content": msg.content}
            if msg.tool_calls:
                m["tool_calls"] = [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {
                            "name": tc.name,
                            "arguments": tc.raw_arguments,
                        },
                    }
                    for tc in msg.tool_calls
                ]
            if msg.tool_call_id:
                m["tool_call_id"] = msg.tool_call_id
            if msg.name and msg.role == "tool":
                m["name"] = msg.name
            wire_messages.append(m)
        return wire_messages

    def _build_body(
        self,
        history: list[Message],
        tools: list[dict] | None,
        options: dict[str, Any] | None,
    ) -> dict:
        wire_messages = self._wire_messages(history)
        body: dict = {
            "model": self._model,
            "messages": wire_messages,
            "stream": True,
        }
        if tools:
            body["tools"] = tools
            body["tool_choice"] = "auto"
        for key, value in (options or {}).items():
            if value is not None:
                body[key] = value
        logger.info(
            "REQUEST: provider=%s model=%s tools=%d messages=%d",
            self.name,
            self._model,
            len(tools) if tools else 0,
            len(wire_messages),
        )
        return body

    # ------------------------------------------------------------------
    # Streaming request
    # ------------------------------------------------------------------

    async def _stream_request(
        self,
        body: dict,
        headers: dict[str, str],
    ) -> AsyncIterator[StreamDelta]:
        url = f"{self._url}/chat/completions"

        last_error: Exception | None = None
        started = False
        for attempt in range(1 + self._max_retries):
            try:
                async with self._client(self._timeout) as client:
                    async with client.stream(
                        "POST", url, json=body, headers=headers
                    ) as response:
                        if response.status_code == 429 or response.status_code >= 500:
                            # Retryable -- read body so the connection is released.
                            await response.aread()
                            last_error = httpx.HTTPStatusError(
                                f"HTTP {response.status_code}",
                                request=response.request,
                                response=response,
                            )
                            logger.info(
                                "%s: HTTP %d on attempt %d",
                                self.name,
                                response.status_code,
                                attempt + 1,
                            )
                            continue

                        if response.status_code >= 400:
                            await response.aread()
                            raise httpx.HTTPStatusError(
                                f"HTTP {response.status_code}: {response.text[:300]}",
                                request=response.request,
                                response=response,
                            )

                        async for delta in self._parse_sse_stream(response):
                            started = True
                            yield delta
                        return  # success
            except httpx.TransportError as exc:
                last_error = exc
                # Deltas already delivered cannot be taken back.
                if started or attempt >= self._max_retries:
                    raise
                logger.info("%s: %s on attempt %d", self.name, exc, attempt + 1)

        if last_error is not None:
            raise last_error

    async def _parse_sse_stream(
        self, response: httpx.Response
    ) -> AsyncIterator[StreamDelta]:
        """
        Parse Server-Sent Events from the response stream.

        Each SSE event has the form::

            data: {json}\\n\\n

        The sentinel ``data: [DONE]`` terminates the stream.
        """
        async for line in response.aiter_lines():
            line = line.rstrip("\r")
            if not line.startswith("data:"):
                continue

            data_str = line[len("data:"):].strip()

            if data_str == "[DONE]":
                yield DoneDelta("stop")
                return

            try:
                data = json.loads(data_str)
            except json.JSONDecodeError:
                logger.warning("Failed to parse SSE data: %s", data_str[:200])
                continue

            if not isinstance(data, dict):
                logger.warning("Ignoring non-object SSE data: %s", data_str[:200])
                continue

            for delta in self._sse_data_to_deltas(data):
                yield delta

        # If the stream ends without [DONE], still close the turn.
        yield DoneDelta("stop")

    def _sse_data_to_deltas(self, data: dict) -> list[StreamDelta]:
        """Convert a parsed SSE ``data`` payload into stream deltas."""
        if data.get("error"):
            err = data["error"]
            message = err.get("message", str(err)) if isinstance(err, dict) else str(err)
            return [ErrorDelta(message)]

        choices = data.get("choices")
        if not choices or not isinstance(choices, list) or not isinstance(choices[0], dict):
            return []

        choice = choices[0]
        delta = choice.get("delta")
        if not isinstance(delta, dict):
            delta = {}
        deltas: list[StreamDelta] = []

        text = delta.get("content")
        if text:
            deltas.append(ContentDelta(str(text)))

        for raw_tc in delta.get("tool_calls") or []:
            if not isinstance(raw_tc, dict):
                continue
            func = raw_tc.get("function") or {}
            deltas.append(
                ToolCallFragment(
                    index=raw_tc.get("index", 0),
                    id_part=raw_tc.get("id"),
                    name_part=func.get("name"),
                    arguments_part=func.get("arguments") or "",
                )
            )

        finish_reason = choice.get("finish_reason")
        if finish_reason:
            deltas.append(DoneDelta(finish_reason))

        return deltas
