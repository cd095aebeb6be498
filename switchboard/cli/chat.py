"""Interactive chat session handler."""

from __future__ import annotations

import asyncio
import logging
import signal

from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt

from switchboard.cli.output import OutputFormatter
from switchboard.llm.errors import ModelNotRecognizedError
from switchboard.orchestrator.core import ConversationOrchestrator
from switchboard.orchestrator.events import (
    EVENT_CANCELLED,
    EVENT_CONTENT,
    EVENT_DONE,
    EVENT_ERROR,
    EVENT_ROUND_LIMIT,
    EVENT_TOOL_CALLS_DETECTED,
    EVENT_TOOL_RESULT,
    OrchestratorEvent,
)

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "  [bold]Commands:[/bold]\n"
    "  /model NAME  - Switch to another model (history is kept)\n"
    "  /models      - List available models\n"
    "  /tools       - List available tools\n"
    "  /history     - Show the conversation so far\n"
    "  /clear       - Clear the conversation and tool approvals\n"
    "  /help        - Show this help\n"
    "  /quit        - Exit the chat\n"
    "  Ctrl-C while a reply is streaming cancels it.\n"
)


class ChatHandler:
    """
    Manages the interactive chat loop.

    Renders orchestrator events as they arrive and handles inline commands.
    """

    def __init__(
        self,
        orchestrator: ConversationOrchestrator,
        console: Console | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.console = console or Console()
        self.formatter = OutputFormatter(self.console)
        self._running = True
        self._mid_line = False
        # Set by answering "always"; lasts until /clear.
        self._approve_all = False

    async def handle_command(self, command: str) -> bool:
        """
        Handle inline commands. Returns True if the command was handled.
        """
        parts = command.strip().split(None, 1)
        cmd = parts[0].lower()
        arg = parts[1].strip() if len(parts) > 1 else ""

        if cmd in ("/quit", "/exit"):
            self._running = False
            self.console.print("[dim]Goodbye.[/dim]")
            return True

        if cmd == "/history":
            self.formatter.format_history(self.orchestrator.history)
            return True

        if cmd == "/clear":
            self.orchestrator.clear_history()
            self._approve_all = False
            self.console.print("  [dim]Conversation cleared.[/dim]")
            return True

        if cmd == "/tools":
            self.formatter.format_tool_list(self.orchestrator.tools.list())
            return True

        if cmd == "/models":
            self.formatter.format_model_list(
                self.orchestrator.providers.all_models(),
                self._current_model(),
            )
            return True

        if cmd == "/model":
            if not arg:
                self.console.print(f"  Current model: [bold]{self._current_model()}[/bold]")
                return True
            try:
                adapter = self.orchestrator.switch_model(arg)
                self.console.print(f"  Switched to [bold]{arg}[/bold] ({adapter.name})")
            except ModelNotRecognizedError as e:
                self.console.print(f"  [red]Error:[/red] {escape(str(e))}")
            return True

        if cmd == "/help":
            self.console.print(HELP_TEXT)
            return True

        return False

    async def confirm_tool(self, tool_name: str, arguments: dict) -> bool:
        """
        Ask the operator before a file or shell tool runs.

        "a" approves this call and every later one in the session.
        """
        if self._approve_all:
            return True

        self._end_line()
        self.formatter.format_confirmation(tool_name, arguments)
        try:
            answer = await asyncio.get_running_loop().run_in_executor(None, self._ask)
        except (EOFError, KeyboardInterrupt):
            return False

        if answer == "a":
            self._approve_all = True
            self.console.print("  [dim]Approving all tool calls for this session.[/dim]")
        return answer in ("y", "a")

    def _ask(self) -> str:
        return Prompt.ask(
            "  Proceed? (y)es, (n)o, (a)lways",
            choices=["y", "n", "a"],
            default="n",
            console=self.console,
        )

    def render_event(self, event: OrchestratorEvent) -> None:
        """Print a single orchestrator event."""
        if event.kind == EVENT_CONTENT:
            self.console.print(event.text, end="", markup=False, highlight=False)
            self._mid_line = True
            return

        if event.kind in (EVENT_TOOL_CALLS_DETECTED, EVENT_TOOL_RESULT, EVENT_ROUND_LIMIT,
                          EVENT_ERROR, EVENT_CANCELLED, EVENT_DONE):
            self._end_line()

        if event.kind == EVENT_TOOL_CALLS_DETECTED:
            self.formatter.format_tool_calls(event.tool_calls)
        elif event.kind == EVENT_TOOL_RESULT and event.tool_call and event.result:
            self.formatter.format_tool_result(event.tool_call.name, event.result)
        elif event.kind == EVENT_ROUND_LIMIT:
            self.console.print(f"[yellow]{escape(event.text)}[/yellow]")
        elif event.kind == EVENT_ERROR:
            self.console.print(f"[red]Error:[/red] {escape(event.text)}")
        elif event.kind == EVENT_CANCELLED:
            self.console.print("[dim]\\[Operation cancelled by user][/dim]")

    async def handle_input(self, user_input: str) -> None:
        """Process user input: run through orchestrator and stream response."""
        loop = asyncio.get_running_loop()
        cancel_on_sigint = _install_sigint(loop, self.orchestrator.cancel)
        try:
            async for event in self.orchestrator.submit_user_message(user_input):
                self.render_event(event)
        except Exception as e:
            logger.exception("Chat turn failed")
            self._end_line()
            self.console.print(f"[red]Error:[/red] {escape(str(e))}")
        finally:
            if cancel_on_sigint:
                loop.remove_signal_handler(signal.SIGINT)
        self._end_line()

    async def run_loop(self) -> None:
        """Main interactive loop."""
        self.console.print(
            "[bold]Switchboard[/bold] - Coding Assistant\n"
            f"[dim]Model: {self._current_model()}. "
            "Type /help for commands, /quit to exit.[/dim]\n"
        )

        while self._running:
            try:
                user_input = await asyncio.get_running_loop().run_in_executor(
                    None, lambda: input("you> ").strip()
                )
            except (EOFError, KeyboardInterrupt):
                self.console.print("\n[dim]Goodbye.[/dim]")
                break

            if not user_input:
                continue

            if user_input.startswith("/"):
                handled = await self.handle_command(user_input)
                if handled:
                    continue

            self.console.print("[dim]assistant>[/dim] ", end="")
            await self.handle_input(user_input)

    def _current_model(self) -> str | None:
        try:
            return self.orchestrator.providers.active.current_model
        except RuntimeError:
            return None

    def _end_line(self) -> None:
        if self._mid_line:
            self.console.print()
            self._mid_line = False


def _install_sigint(loop: asyncio.AbstractEventLoop, callback) -> bool:
    """Route Ctrl-C to *callback* while a reply is running."""
    try:
        loop.add_signal_handler(signal.SIGINT, callback)
    except (NotImplementedError, RuntimeError):
        # Not available on Windows event loops or outside the main thread.
        return False
    return True
