"""Tests for the Typer commands and the chat handler."""

from __future__ import annotations

import io

from rich.console import Console
from typer.testing import CliRunner

from switchboard.cli.app import _setup_stack, app
from switchboard.cli.chat import ChatHandler
from switchboard.config import SwitchboardConfig
from switchboard.llm.registry import ProviderRegistry
from switchboard.orchestrator.core import ConversationOrchestrator
from switchboard.tools.dispatch import ToolDispatchTable
from tests.mock_providers import (
    MockAdapter,
    make_text_provider,
    make_tool_then_text_provider,
    text_turn,
    tool_call_turn,
)
from tests.mock_tools import EchoTool, WriteTool

runner = CliRunner()


def _handler(*providers: MockAdapter):
    registry = ProviderRegistry()
    for p in providers:
        registry.register(p.name, p)
    tools = ToolDispatchTable()
    tools.register_tool(EchoTool())
    orch = ConversationOrchestrator(registry, tools, system_prompt="sys")
    buf = io.StringIO()
    console = Console(file=buf, width=120, color_system=None)
    return ChatHandler(orch, console=console), buf


class TestCommands:
    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "switchboard" in result.output

    def test_tools_list(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(app, ["tools", "list"])
        assert result.exit_code == 0
        assert "str_replace_editor" in result.output

    def test_tools_info_unknown(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(app, ["tools", "info", "nope"])
        assert result.exit_code == 1

    def test_models_invalid_default_provider(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.setenv("SWITCHBOARD_DEFAULT_PROVIDER", "nope")
        result = runner.invoke(app, ["models"])
        assert result.exit_code == 1
        assert "Invalid default provider" in result.output
        assert not isinstance(result.exception, ValueError)

    def test_config_validate_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        result = runner.invoke(app, ["config", "validate"])
        assert result.exit_code == 0
        assert "Config is valid" in result.output


class TestChatHandler:
    async def test_renders_reply(self):
        handler, buf = _handler(make_text_provider("hello world"))
        await handler.handle_input("hi")
        assert "hello world" in buf.getvalue()

    async def test_renders_tool_activity(self):
        handler, buf = _handler(make_tool_then_text_provider("echo", {"message": "yo"}))
        await handler.handle_input("echo it")
        out = buf.getvalue()
        assert "echo" in out
        assert "OK" in out
        assert "All done." in out

    async def test_model_switch_command(self):
        handler, buf = _handler(
            MockAdapter(models=["a-1"], adapter_name="alpha"),
            MockAdapter(models=["b-1"], adapter_name="beta"),
        )
        assert await handler.handle_command("/model b-1")
        assert handler.orchestrator.active_provider_id == "beta"
        assert await handler.handle_command("/model zzz")
        assert "Model not recognized" in buf.getvalue()

    async def test_clear_and_history(self):
        handler, buf = _handler(make_text_provider("remember me"))
        await handler.handle_input("hi")
        await handler.handle_command("/history")
        assert "remember me" in buf.getvalue()
        await handler.handle_command("/clear")
        assert [m.role for m in handler.orchestrator.history] == ["system"]

    async def test_quit_and_unknown(self):
        handler, _ = _handler(make_text_provider("x"))
        assert not await handler.handle_command("/unknown")
        assert await handler.handle_command("/quit")
        assert handler._running is False


class TestToolConfirmation:
    def _gated(self, answers):
        provider = MockAdapter(turns=[
            tool_call_turn([("write_file", {"path": "a.txt", "content": "x"}, "c1")]),
            tool_call_turn([("write_file", {"path": "b.txt", "content": "y"}, "c2")]),
            text_turn("finished"),
        ])
        handler, buf = _handler(provider)
        writer = WriteTool()
        handler.orchestrator.tools.register_tool(writer)
        handler.orchestrator.tools.confirm = handler.confirm_tool
        pending = list(answers)
        asked: list[str] = []

        def ask():
            asked.append(pending[0])
            return pending.pop(0)

        handler._ask = ask
        return handler, buf, writer, asked

    async def test_denial_is_reported_to_model(self):
        handler, buf, writer, asked = self._gated(["n", "n"])
        await handler.handle_input("write files")
        assert writer.writes == []
        assert asked == ["n", "n"]
        assert "requires confirmation" in buf.getvalue()
        tool_msgs = [m for m in handler.orchestrator.history if m.role == "tool"]
        assert [m.content for m in tool_msgs] == ["Tool call denied by user"] * 2

    async def test_always_approves_rest_of_session(self):
        handler, _, writer, asked = self._gated(["a"])
        await handler.handle_input("write files")
        assert writer.writes == ["a.txt", "b.txt"]
        assert asked == ["a"]

    async def test_clear_resets_approve_all(self):
        handler, _, _, asked = self._gated(["a", "y"])
        assert await handler.confirm_tool("write_file", {})
        assert await handler.confirm_tool("write_file", {})
        assert asked == ["a"]
        await handler.handle_command("/clear")
        assert await handler.confirm_tool("write_file", {})
        assert asked == ["a", "y"]

    async def test_confirm_setting_controls_wiring(self, tmp_path):
        cfg = SwitchboardConfig()
        cfg.providers.pop("openai")
        cfg.tools.working_dir = str(tmp_path)
        handler = await _setup_stack(cfg)
        assert handler.orchestrator.tools.confirm == handler.confirm_tool

        cfg.tools.confirm = False
        handler = await _setup_stack(cfg)
        assert handler.orchestrator.tools.confirm is None
