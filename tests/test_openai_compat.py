"""Wire tests for the OpenAI-compatible and Grok adapters."""

from __future__ import annotations

import json

import httpx
import pytest

from switchboard.llm.providers.grok import GrokAdapter
from switchboard.llm.providers.openai_compat import OpenAICompatAdapter
from switchboard.llm.reassembler import reassemble
from switchboard.llm.types import (
    ContentDelta,
    DoneDelta,
    ErrorDelta,
    Message,
    ToolCallFragment,
    ToolCallRequest,
)
from tests.mock_providers import ChunkedStream


def _sse(*payloads, done=True) -> bytes:
    lines = [f"data: {json.dumps(p)}\n\n" for p in payloads]
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode()


def _chunk(delta: dict, finish_reason=None) -> dict:
    return {"choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}]}


class Recorder:
    """Mock transport handler that replays canned responses and keeps requests."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]

    @property
    def bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]


def _adapter(recorder, cls=OpenAICompatAdapter, **kwargs) -> OpenAICompatAdapter:
    kwargs.setdefault("api_key", "sk-test")
    return cls(transport=httpx.MockTransport(recorder), **kwargs)


async def _deltas(adapter, history=None, tools=None, options=None):
    history = history or [Message(role="user", content="hi")]
    return [d async for d in adapter.stream_turn(history, tools, options)]


class TestStreaming:
    async def test_text_stream(self):
        rec = Recorder(httpx.Response(200, content=_sse(
            _chunk({"role": "assistant", "content": "Hel"}),
            _chunk({"content": "lo"}),
            _chunk({}, finish_reason="stop"),
        )))
        deltas = await _deltas(_adapter(rec))
        assert deltas[:2] == [ContentDelta("Hel"), ContentDelta("lo")]
        assert deltas[2] == DoneDelta("stop")

    async def test_tool_call_fragments_reassemble(self):
        rec = Recorder(httpx.Response(200, content=_sse(
            _chunk({"tool_calls": [{"index": 0, "id": "call_1", "type": "function",
                                    "function": {"name": "bash", "arguments": ""}}]}),
            _chunk({"tool_calls": [{"index": 0, "function": {"arguments": '{"comm'}}]}),
            _chunk({"tool_calls": [{"index": 0, "function": {"arguments": 'and": "ls"}'}}]}),
            _chunk({}, finish_reason="tool_calls"),
        )))
        adapter = _adapter(rec)

        async def stream():
            async for d in adapter.stream_turn([Message(role="user", content="list")]):
                yield d

        turn = await reassemble(stream())
        assert turn.finish_reason == "tool_calls"
        assert [(c.id, c.name, c.arguments()) for c in turn.tool_calls] == [
            ("call_1", "bash", {"command": "ls"})
        ]

    async def test_fragment_fields(self):
        rec = Recorder(httpx.Response(200, content=_sse(
            _chunk({"tool_calls": [{"index": 1, "id": "c", "function": {"name": "view_file"}}]}),
        )))
        deltas = await _deltas(_adapter(rec))
        assert deltas[0] == ToolCallFragment(index=1, id_part="c", name_part="view_file", arguments_part="")

    async def test_stream_without_done_marker_still_finishes(self):
        rec = Recorder(httpx.Response(200, content=_sse(_chunk({"content": "x"}), done=False)))
        deltas = await _deltas(_adapter(rec))
        assert deltas == [ContentDelta("x"), DoneDelta("stop")]

    async def test_error_payload_becomes_error_delta(self):
        rec = Recorder(httpx.Response(200, content=_sse({"error": {"message": "quota exceeded"}})))
        deltas = await _deltas(_adapter(rec))
        assert ErrorDelta("quota exceeded") in deltas

    async def test_client_error_is_not_retried(self):
        rec = Recorder(httpx.Response(401, text="bad key"))
        deltas = await _deltas(_adapter(rec, max_retries=2))
        assert len(rec.requests) == 1
        assert len(deltas) == 1
        assert isinstance(deltas[0], ErrorDelta)
        assert "401" in deltas[0].message
        assert "bad key" in deltas[0].message

    async def test_retries_server_errors(self):
        rec = Recorder(
            httpx.Response(503, text="busy"),
            httpx.Response(429, text="slow down"),
            httpx.Response(200, content=_sse(_chunk({"content": "ok"}))),
        )
        deltas = await _deltas(_adapter(rec, max_retries=2))
        assert len(rec.requests) == 3
        assert deltas[0] == ContentDelta("ok")

    async def test_retries_exhausted(self):
        rec = Recorder(httpx.Response(500, text="down"))
        deltas = await _deltas(_adapter(rec, max_retries=1))
        assert len(rec.requests) == 2
        assert isinstance(deltas[-1], ErrorDelta)

    async def test_transport_error_becomes_error_delta(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        adapter = OpenAICompatAdapter(transport=httpx.MockTransport(handler), max_retries=0)
        deltas = await _deltas(adapter)
        assert isinstance(deltas[0], ErrorDelta)
        assert "connection refused" in deltas[0].message


class TestRequestBody:
    async def test_body_carries_full_history(self):
        rec = Recorder(httpx.Response(200, content=_sse(_chunk({"content": "ok"}))))
        adapter = _adapter(rec, model="gpt-4o")
        call = ToolCallRequest(id="c1", name="bash", raw_arguments='{"command": "ls"}')
        history = [
            Message(role="system", content="sys"),
            Message(role="user", content="list files"),
            Message(role="assistant", content=None, tool_calls=[call]),
            Message(role="tool", content="a.py", tool_call_id="c1", name="bash"),
        ]
        snapshot = list(history)
        tools = [{"type": "function", "function": {"name": "bash", "parameters": {}}}]
        await _deltas(adapter, history, tools, {"temperature": 0.5, "max_tokens": None})

        body = rec.bodies[0]
        assert body["model"] == "gpt-4o"
        assert body["stream"] is True
        assert body["tools"] == tools
        assert body["tool_choice"] == "auto"
        assert body["temperature"] == 0.5
        assert "max_tokens" not in body
        msgs = body["messages"]
        assert [m["role"] for m in msgs] == ["system", "user", "assistant", "tool"]
        assert msgs[2]["content"] is None
        assert msgs[2]["tool_calls"][0]["function"] == {
            "name": "bash",
            "arguments": '{"command": "ls"}',
        }
        assert msgs[3]["tool_call_id"] == "c1"
        assert history == snapshot

    async def test_headers(self):
        rec = Recorder(httpx.Response(200, content=_sse()))
        await _deltas(_adapter(rec, url="http://localhost:9999/v1/"))
        req = rec.requests[0]
        assert str(req.url) == "http://localhost:9999/v1/chat/completions"
        assert req.headers["Authorization"] == "Bearer sk-test"

    async def test_no_auth_header_without_key(self):
        rec = Recorder(httpx.Response(200, content=_sse()))
        await _deltas(_adapter(rec, api_key=""))
        assert "Authorization" not in rec.requests[0].headers


class TestModels:
    async def test_discovery_filters_by_prefix(self):
        rec = Recorder(httpx.Response(200, json={
            "data": [{"id": "gpt-4o"}, {"id": "dall-e-3"}, {"id": "gpt-4.1"}],
        }))
        adapter = _adapter(rec, model="gpt-4o")
        await adapter.initialize()
        assert adapter.list_models() == ["gpt-4.1", "gpt-4o"]
        assert str(rec.requests[0].url).endswith("/models")

    async def test_discovery_failure_keeps_defaults(self):
        rec = Recorder(httpx.Response(500, text="nope"))
        adapter = _adapter(rec)
        await adapter.initialize()
        assert adapter.list_models() == OpenAICompatAdapter.DEFAULT_MODELS

    def test_select_model(self):
        adapter = OpenAICompatAdapter()
        adapter.select_model("gpt-4o-mini")
        assert adapter.current_model == "gpt-4o-mini"
        with pytest.raises(ValueError, match="not supported"):
            adapter.select_model("grok-3-latest")

    def test_capabilities(self):
        adapter = OpenAICompatAdapter(model="gpt-4")
        caps = adapter.describe_capabilities()
        assert caps.max_tokens == 8_192
        assert caps.function_calling
        assert not adapter.supports("vision")
        adapter.select_model("gpt-4o")
        assert adapter.describe_capabilities().max_tokens == 128_000
        assert adapter.supports("vision")


class TestGrok:
    async def test_defaults(self):
        rec = Recorder(httpx.Response(200, content=_sse(_chunk({"content": "hi"}))))
        adapter = _adapter(rec, cls=GrokAdapter)
        assert adapter.name == "grok"
        assert adapter.current_model == "grok-4-latest"
        assert "grok-3-mini-fast" in adapter.list_models()
        await adapter.initialize()
        assert rec.requests == []

        await _deltas(adapter)
        assert str(rec.requests[0].url) == "https://api.x.ai/v1/chat/completions"

    def test_capabilities(self):
        caps = GrokAdapter().describe_capabilities()
        assert caps.max_tokens == 131_072
        assert caps.streaming


class TestStreamRobustness:
    async def test_no_retry_after_deltas_delivered(self):
        first_event = _sse(_chunk({"content": "Hello "}), done=False)
        rec = Recorder(
            httpx.Response(200, stream=ChunkedStream([first_event], fail_after=1)),
            httpx.Response(200, content=_sse(_chunk({"content": "Hello "}), _chunk({"content": "world"}))),
        )
        deltas = await _deltas(_adapter(rec, max_retries=2))
        assert len(rec.requests) == 1
        assert deltas[0] == ContentDelta("Hello ")
        assert isinstance(deltas[-1], ErrorDelta)
        assert "connection reset" in deltas[-1].message
        text = "".join(d.text for d in deltas if isinstance(d, ContentDelta))
        assert text == "Hello "

    async def test_transport_error_before_any_delta_is_retried(self):
        rec = Recorder(
            httpx.Response(200, stream=ChunkedStream([b""], fail_after=0)),
            httpx.Response(200, content=_sse(_chunk({"content": "ok"}))),
        )
        deltas = await _deltas(_adapter(rec, max_retries=1))
        assert len(rec.requests) == 2
        assert deltas == [ContentDelta("ok"), DoneDelta("stop")]

    async def test_multibyte_char_split_across_chunks(self):
        body = _sse(_chunk({"content": "héllo"}))
        cut = body.index("é".encode()) + 1
        rec = Recorder(httpx.Response(200, stream=ChunkedStream([body[:cut], body[cut:]])))
        deltas = await _deltas(_adapter(rec))
        assert deltas[0] == ContentDelta("héllo")

    async def test_non_object_payload_is_skipped(self):
        rec = Recorder(httpx.Response(200, content=(
            b'data: {"choices":[{"delta":{"content":"hi"}}]}\n\n'
            b'data: ["oops"]\n\n'
            b'data: {"choices":["bad"]}\n\n'
            b"data: [DONE]\n\n"
        )))
        deltas = await _deltas(_adapter(rec))
        assert deltas == [ContentDelta("hi"), DoneDelta("stop")]
