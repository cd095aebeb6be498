"""The standard coding toolset."""

from __future__ import annotations

from pathlib import Path

from switchboard.tools.base import Tool
from switchboard.tools.dispatch import ConfirmCallback, ToolDispatchTable
from switchboard.tools.editor import CreateFileTool, StrReplaceEditorTool, ViewFileTool
from switchboard.tools.shell import BashTool
from switchboard.tools.todo import CreateTodoListTool, TodoList, UpdateTodoListTool


def builtin_tools(
    working_dir: str | Path | None = None,
    bash_timeout: float = 30.0,
) -> list[Tool]:
    """File, shell and todo tools; the two todo tools share one list."""
    todos = TodoList()
    return [
        ViewFileTool(working_dir),
        CreateFileTool(working_dir),
        StrReplaceEditorTool(working_dir),
        BashTool(working_dir, timeout=bash_timeout),
        CreateTodoListTool(todos),
        UpdateTodoListTool(todos),
    ]


def build_dispatch_table(
    working_dir: str | Path | None = None,
    bash_timeout: float = 30.0,
    disabled: list[str] | None = None,
    confirm: ConfirmCallback | None = None,
) -> ToolDispatchTable:
    table = ToolDispatchTable(confirm=confirm)
    for tool in builtin_tools(working_dir, bash_timeout):
        if disabled and tool.name in disabled:
            continue
        table.register_tool(tool)
    return table
