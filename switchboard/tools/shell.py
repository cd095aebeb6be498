"""Shell execution tool."""

from __future__ import annotations

import asyncio
import os
import re
import shlex
from pathlib import Path

from switchboard.tools.base import Tool
from switchboard.types import ErrorCode, ToolResult

# Cap output per stream to prevent memory issues.
_MAX_OUTPUT_BYTES = 100 * 1024  # 100 KB

_CWD_MARKER = "__SWITCHBOARD_CWD__"
_SHELL_EXPANSION = re.compile(r"[$`*?]")


class BashTool(Tool):
    """
    Runs commands with ``bash -c``.

    A bare ``cd DIR`` is handled in-process, and a command chain that
    starts with ``cd`` updates the working directory once bash exits, so
    the directory persists between calls the way an interactive shell
    behaves.
    """

    def __init__(self, working_dir: str | Path | None = None, timeout: float = 30.0) -> None:
        self.cwd = Path(working_dir or Path.cwd())
        self.timeout = timeout

    @property
    def name(self) -> str:
        return "bash"

    @property
    def requires_confirmation(self) -> bool:
        return True

    @property
    def description(self) -> str:
        return "Execute bash commands in the terminal"

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "command": {"type": "string", "description": "The bash command to execute"},
            },
            "required": ["command"],
        }

    async def execute(self, **kwargs) -> ToolResult:
        command: str = kwargs["command"].strip()
        words = _split(command)
        if words[:1] == ["cd"] and len(words) <= 2 and not _SHELL_EXPANSION.search(command):
            return self._change_dir(words[1] if len(words) == 2 else "")

        # Commands that start with cd but do more run in bash; the final
        # directory is reported after a marker so the next call starts there.
        track_cwd = words[:1] == ["cd"]
        script = command
        if track_cwd:
            script = f'{command}\n__rc=$?\nprintf "\\n{_CWD_MARKER}%s" "$PWD"\nexit $__rc'

        proc = await asyncio.create_subprocess_exec(
            "bash",
            "-c",
            script,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(self.cwd),
        )
        try:
            stdout_raw, stderr_raw = await asyncio.wait_for(
                proc.communicate(), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            try:
                proc.kill()
                await asyncio.wait_for(proc.wait(), timeout=5)
            except (ProcessLookupError, asyncio.TimeoutError):
                pass
            return ToolResult.fail(
                f"Command timed out after {self.timeout}s", ErrorCode.TIMEOUT
            )

        marker = _CWD_MARKER.encode()
        if track_cwd and marker in stdout_raw:
            stdout_raw, _, cwd_raw = stdout_raw.rpartition(marker)
            stdout_raw = stdout_raw[:-1] if stdout_raw.endswith(b"\n") else stdout_raw
            new_cwd = Path(cwd_raw.decode("utf-8", errors="replace"))
            if new_cwd.is_dir():
                self.cwd = new_cwd

        stdout = stdout_raw[:_MAX_OUTPUT_BYTES].decode("utf-8", errors="replace")
        stderr = stderr_raw[:_MAX_OUTPUT_BYTES].decode("utf-8", errors="replace")
        data: dict = {"exit_code": proc.returncode}
        if len(stdout_raw) > _MAX_OUTPUT_BYTES:
            data["truncated"] = True
            stdout += "\n[output truncated]"

        if proc.returncode != 0:
            return ToolResult.fail(
                (stderr or stdout or f"Command failed with exit code {proc.returncode}").rstrip(),
                data=data,
            )
        output = stdout
        if stderr:
            output = f"{stdout}\n[stderr]\n{stderr}" if stdout else stderr
        return ToolResult.ok(output.rstrip() or "Command executed successfully (no output)", data=data)

    def _change_dir(self, target: str) -> ToolResult:
        if not target:
            new = Path.home()
        else:
            new = Path(os.path.expanduser(target))
            if not new.is_absolute():
                new = self.cwd / new
        new = new.resolve()
        if not new.is_dir():
            return ToolResult.fail(f"cd: no such directory: {target}")
        self.cwd = new
        return ToolResult.ok(f"Changed directory to: {new}")


def _split(command: str) -> list[str]:
    """Split *command* into words, with shell operators as separate words."""
    lexer = shlex.shlex(command, posix=True, punctuation_chars=True)
    lexer.whitespace_split = True
    try:
        return list(lexer)
    except ValueError:
        # Unbalanced quotes; let bash report it.
        return []
