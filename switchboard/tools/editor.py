"""File viewing and editing tools."""

from __future__ import annotations

from pathlib import Path

from switchboard.tools.base import Tool
from switchboard.types import ToolResult

# Cap the amount of a file shown in one view.
_MAX_VIEW_LINES = 2000


class _FileTool(Tool):
    def __init__(self, working_dir: str | Path | None = None) -> None:
        self.working_dir = Path(working_dir or Path.cwd())

    def resolve(self, path: str) -> Path:
        p = Path(path).expanduser()
        if not p.is_absolute():
            p = self.working_dir / p
        return p


class ViewFileTool(_FileTool):
    @property
    def name(self) -> str:
        return "view_file"

    @property
    def description(self) -> str:
        return "View the contents of a file or list directory contents"

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path to the file or directory to view",
                },
                "start_line": {
                    "type": "integer",
                    "description": "Starting line number for partial file viewing (optional)",
                },
                "end_line": {
                    "type": "integer",
                    "description": "Ending line number for partial file viewing (optional)",
                },
            },
            "required": ["path"],
        }

    async def execute(self, **kwargs) -> ToolResult:
        path = self.resolve(kwargs["path"])
        if path.is_dir():
            entries = sorted(
                p.name + ("/" if p.is_dir() else "") for p in path.iterdir()
            )
            return ToolResult.ok(f"Directory contents of {kwargs['path']}:\n" + "\n".join(entries))
        if not path.is_file():
            return ToolResult.fail(f"File or directory not found: {kwargs['path']}")

        lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
        start = kwargs.get("start_line")
        end = kwargs.get("end_line")
        ranged = bool(start or end)
        if ranged:
            start = start or 1
            end = end or len(lines)
            if start < 1 or end < start:
                return ToolResult.fail(f"Invalid line range: {start}-{end}")
            selected = lines[start - 1 : end]
            offset = start
        else:
            selected = lines[:_MAX_VIEW_LINES]
            offset = 1

        numbered = "\n".join(f"{i + offset}: {line}" for i, line in enumerate(selected))
        header = f"Contents of {kwargs['path']}"
        if ranged:
            header += f" (lines {start}-{end})"
        elif len(lines) > _MAX_VIEW_LINES:
            header += f" (first {_MAX_VIEW_LINES} of {len(lines)} lines)"
        return ToolResult.ok(f"{header}:\n{numbered}")


class CreateFileTool(_FileTool):
    @property
    def name(self) -> str:
        return "create_file"

    @property
    def requires_confirmation(self) -> bool:
        return True

    @property
    def description(self) -> str:
        return "Create a new file with the specified content"

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path where the new file should be created",
                },
                "content": {
                    "type": "string",
                    "description": "Content to write to the new file",
                },
            },
            "required": ["path", "content"],
        }

    async def execute(self, **kwargs) -> ToolResult:
        path = self.resolve(kwargs["path"])
        if path.exists():
            return ToolResult.fail(
                f"File already exists: {kwargs['path']}. Use str_replace_editor to modify it."
            )
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(kwargs["content"], encoding="utf-8")
        n = len(kwargs["content"].splitlines())
        return ToolResult.ok(f"Created {kwargs['path']} ({n} lines)")


class StrReplaceEditorTool(_FileTool):
    @property
    def name(self) -> str:
        return "str_replace_editor"

    @property
    def requires_confirmation(self) -> bool:
        return True

    @property
    def description(self) -> str:
        return "Replace text in an existing file using string replacement"

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Path to the file to edit"},
                "old_str": {"type": "string", "description": "The exact string to be replaced"},
                "new_str": {"type": "string", "description": "The string to replace with"},
                "replace_all": {
                    "type": "boolean",
                    "description": "Whether to replace all occurrences (default: false)",
                    "default": False,
                },
            },
            "required": ["path", "old_str", "new_str"],
        }

    async def execute(self, **kwargs) -> ToolResult:
        path = self.resolve(kwargs["path"])
        if not path.is_file():
            return ToolResult.fail(f"File not found: {kwargs['path']}")

        old, new = kwargs["old_str"], kwargs["new_str"]
        text = path.read_text(encoding="utf-8")
        count = text.count(old)
        if not old or count == 0:
            return ToolResult.fail(f"String not found in {kwargs['path']}: {old[:80]!r}")

        if kwargs.get("replace_all"):
            updated = text.replace(old, new)
            replaced = count
        else:
            updated = text.replace(old, new, 1)
            replaced = 1

        path.write_text(updated, encoding="utf-8")
        return ToolResult.ok(
            f"Updated {kwargs['path']}: replaced {replaced} occurrence(s)",
            data={"replacements": replaced},
        )
