"""Output formatting utilities for the CLI."""

from __future__ import annotations

import json

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from switchboard.llm.types import Message, ToolCallRequest
from switchboard.tools.dispatch import ToolEntry
from switchboard.types import ToolResult

ROLE_COLORS = {
    "system": "dim",
    "user": "blue",
    "assistant": "green",
    "tool": "cyan",
}


class OutputFormatter:
    """Rich-based output formatting for the switchboard CLI."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def format_tool_list(self, tools: list[ToolEntry]) -> None:
        table = Table(title="Registered Tools", show_lines=True)
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Required", no_wrap=True)
        table.add_column("Description")

        for t in tools:
            required = ", ".join(t.schema.get("required", [])) or "-"
            table.add_row(t.name, required, t.description)

        self.console.print(table)

    def format_tool_info(self, tool: ToolEntry) -> None:
        self.console.print(Panel(
            f"[bold]{tool.name}[/bold]\n\n{tool.description}",
            title=f"Tool: {tool.name}",
        ))
        schema_json = json.dumps(tool.schema, indent=2)
        self.console.print(Syntax(schema_json, "json", theme="monokai"))

    def format_model_list(
        self, models: list[tuple[str, str]], active_model: str | None = None
    ) -> None:
        if not models:
            self.console.print("[dim]No models available.[/dim]")
            return

        table = Table(title="Models")
        table.add_column("Model", style="cyan", no_wrap=True)
        table.add_column("Provider", no_wrap=True)
        table.add_column("")

        for model, provider in models:
            marker = Text("active", style="bold green") if model == active_model else Text("")
            table.add_row(model, provider, marker)

        self.console.print(table)

    def format_tool_calls(self, calls: list[ToolCallRequest]) -> None:
        for call in calls:
            args = call.raw_arguments
            if len(args) > 120:
                args = args[:117] + "..."
            self.console.print(f"  [yellow]>[/yellow] [bold]{call.name}[/bold] ", end="")
            self.console.print(args, markup=False)

    def format_tool_result(self, tool_name: str, result: ToolResult) -> None:
        status = "[green]OK[/green]" if result.success else "[red]FAILED[/red]"
        content = result.content
        if len(content) > 200:
            content = content[:200] + "..."
        self.console.print(f"  {escape(f'[{tool_name}]')} {status}: ", end="")
        self.console.print(content, markup=False)

    def format_confirmation(self, tool_name: str, arguments: dict) -> None:
        self.console.print(
            f"  [bold yellow]Tool call requires confirmation:[/bold yellow] [bold]{escape(tool_name)}[/bold]"
        )
        args_json = json.dumps(arguments, indent=2, default=str)
        self.console.print(Syntax(args_json, "json", theme="monokai"))

    def format_history(self, history: list[Message]) -> None:
        if not history:
            self.console.print("[dim]No messages.[/dim]")
            return

        for msg in history:
            color = ROLE_COLORS.get(msg.role, "white")
            if msg.role == "tool":
                label = f"tool:{msg.name or '?'}"
            else:
                label = msg.role
            content = (msg.content or "")[:100].replace("\n", " ")
            if msg.tool_calls:
                names = ", ".join(c.name for c in msg.tool_calls)
                content = f"{content} [calls: {names}]".strip()
            self.console.print(f"  [{color}]{label:>16s}[/{color}]  ", end="")
            self.console.print(content, markup=False)

    def format_config(self, config: dict) -> None:
        config_json = json.dumps(config, indent=2, default=str)
        self.console.print(Syntax(config_json, "json", theme="monokai"))
