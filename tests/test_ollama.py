"""Wire tests for the Ollama adapter."""

from __future__ import annotations

import json

import httpx

from switchboard.llm.providers.ollama import OllamaAdapter
from switchboard.llm.reassembler import StreamReassembler
from switchboard.llm.types import (
    ContentDelta,
    DoneDelta,
    ErrorDelta,
    Message,
    ToolCallRequest,
)
from tests.mock_providers import ChunkedStream


def _ndjson(*objs) -> bytes:
    return "".join(json.dumps(o) + "\n" for o in objs).encode()


def _adapter(handler, **kwargs) -> OllamaAdapter:
    return OllamaAdapter(transport=httpx.MockTransport(handler), **kwargs)


async def _deltas(adapter, history=None, tools=None, options=None):
    history = history or [Message(role="user", content="hi")]
    return [d async for d in adapter.stream_turn(history, tools, options)]


class TestOllamaStreaming:
    async def test_text_stream(self):
        def handler(request):
            return httpx.Response(200, content=_ndjson(
                {"message": {"role": "assistant", "content": "Hel"}, "done": False},
                {"message": {"role": "assistant", "content": "lo"}, "done": False},
                {"message": {"role": "assistant", "content": ""}, "done": True, "done_reason": "stop"},
            ))

        deltas = await _deltas(_adapter(handler))
        assert deltas == [ContentDelta("Hel"), ContentDelta("lo"), DoneDelta("stop")]

    async def test_tool_calls_are_whole(self):
        def handler(request):
            return httpx.Response(200, content=_ndjson(
                {"message": {"role": "assistant", "content": "", "tool_calls": [
                    {"function": {"name": "bash", "arguments": {"command": "ls"}}},
                    {"function": {"name": "view_file", "arguments": {"path": "a.py"}}},
                ]}, "done": False},
                {"message": {"role": "assistant", "content": ""}, "done": True},
            ))

        r = StreamReassembler()
        for delta in await _deltas(_adapter(handler)):
            r.feed(delta)
        turn = r.finish()
        assert [(c.id, c.name, c.arguments()) for c in turn.tool_calls] == [
            ("ollama_call_0", "bash", {"command": "ls"}),
            ("ollama_call_1", "view_file", {"path": "a.py"}),
        ]

    async def test_trailing_line_without_newline(self):
        def handler(request):
            body = _ndjson({"message": {"content": "x"}, "done": False})
            body += json.dumps({"message": {"content": ""}, "done": True}).encode()
            return httpx.Response(200, content=body)

        deltas = await _deltas(_adapter(handler))
        assert deltas == [ContentDelta("x"), DoneDelta("stop")]

    async def test_error_line(self):
        def handler(request):
            return httpx.Response(200, content=_ndjson({"error": "model not found"}))

        deltas = await _deltas(_adapter(handler))
        assert deltas == [ErrorDelta("model not found")]

    async def test_http_error_becomes_error_delta(self):
        def handler(request):
            return httpx.Response(404, text="no such model")

        deltas = await _deltas(_adapter(handler))
        assert len(deltas) == 1
        assert isinstance(deltas[0], ErrorDelta)
        assert "404" in deltas[0].message


class TestOllamaRequest:
    async def test_body_translation(self):
        seen: list[dict] = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, content=_ndjson({"done": True}))

        call = ToolCallRequest(id="c1", name="bash", raw_arguments='{"command": "pwd"}')
        history = [
            Message(role="user", content="where am I"),
            Message(role="assistant", content=None, tool_calls=[call]),
            Message(role="tool", content="/home", tool_call_id="c1", name="bash"),
        ]
        await _deltas(
            _adapter(handler, model="qwen2.5-coder"),
            history,
            options={"temperature": 0.1, "max_tokens": 256},
        )
        body = seen[0]
        assert body["model"] == "qwen2.5-coder"
        msgs = body["messages"]
        assert msgs[1]["content"] == ""
        assert msgs[1]["tool_calls"][0]["function"]["arguments"] == {"command": "pwd"}
        assert msgs[2]["tool_name"] == "bash"
        assert body["options"] == {"temperature": 0.1, "num_predict": 256}
        assert "tools" not in body

    async def test_initialize_reads_tags(self):
        def handler(request):
            assert request.url.path == "/api/tags"
            return httpx.Response(200, json={"models": [{"name": "llama3.1"}, {"name": "mistral"}]})

        adapter = _adapter(handler)
        await adapter.initialize()
        assert adapter.list_models() == ["llama3.1", "mistral"]
        adapter.select_model("mistral")
        assert adapter.current_model == "mistral"

    async def test_initialize_unreachable_keeps_model(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        adapter = _adapter(handler, model="llama3.1")
        await adapter.initialize()
        assert adapter.list_models() == ["llama3.1"]


class TestOllamaStreamRobustness:
    async def test_multibyte_char_split_across_chunks(self):
        body = _ndjson(
            {"message": {"role": "assistant", "content": "héllo"}, "done": False},
            {"message": {"role": "assistant", "content": ""}, "done": True},
        )
        cut = body.index("é".encode()) + 1

        def handler(request):
            return httpx.Response(200, stream=ChunkedStream([body[:cut], body[cut:]]))

        deltas = await _deltas(_adapter(handler))
        assert deltas == [ContentDelta("héllo"), DoneDelta("stop")]

    async def test_non_object_lines_are_skipped(self):
        def handler(request):
            return httpx.Response(200, content=(
                b'{"message": {"content": "hi"}, "done": false}\n'
                b'["oops"]\n'
                b'{"message": "bad", "done": false}\n'
                b'{"done": true}\n'
            ))

        deltas = await _deltas(_adapter(handler))
        assert deltas == [ContentDelta("hi"), DoneDelta("stop")]

    async def test_dropped_connection_becomes_error_delta(self):
        first = _ndjson({"message": {"content": "par"}, "done": False})

        def handler(request):
            return httpx.Response(200, stream=ChunkedStream([first], fail_after=1))

        deltas = await _deltas(_adapter(handler))
        assert deltas[0] == ContentDelta("par")
        assert isinstance(deltas[-1], ErrorDelta)
