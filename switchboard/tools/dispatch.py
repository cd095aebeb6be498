"""
Tool dispatch table -- tool name -> (schema, handler).

``dispatch`` never raises for the ordinary failure modes: unknown tool,
unparseable or invalid arguments, a denied confirmation, handler exceptions
and timeouts all come back as a failed ``ToolResult`` that is fed to the
model like any other.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Union

from switchboard.tools.base import Tool, function_schema
from switchboard.tools.validation import ArgumentValidator
from switchboard.types import ErrorCode, ToolResult

logger = logging.getLogger(__name__)

Handler = Callable[[dict], Any]

# (tool_name, arguments) -> approved?
ConfirmCallback = Callable[[str, dict], Union[bool, Awaitable[bool]]]

TOOL_NOT_FOUND = "Tool not found"
TOOL_DENIED = "Tool call denied by user"


@dataclass
class ToolEntry:
    name: str
    schema: dict
    handler: Handler
    description: str = ""
    requires_confirmation: bool = False

    def to_openai_schema(self) -> dict:
        return function_schema(self.name, self.description, self.schema)


class ToolDispatchTable:
    """
    Parameters
    ----------
    timeout : float | None
        Max seconds for a single handler; ``None`` means no limit.
    confirm : ConfirmCallback | None
        Asked before any tool registered with ``requires_confirmation``
        runs. Sync or async. ``None`` runs every tool unasked.
    """

    def __init__(
        self,
        timeout: float | None = None,
        confirm: ConfirmCallback | None = None,
    ) -> None:
        self._tools: dict[str, ToolEntry] = {}
        self.timeout = timeout
        self.confirm = confirm

    def register(
        self,
        name: str,
        schema: dict,
        handler: Handler,
        description: str = "",
        *,
        overwrite: bool = False,
        requires_confirmation: bool = False,
    ) -> None:
        if name in self._tools and not overwrite:
            raise ValueError(f"Tool already registered: {name}")
        self._tools[name] = ToolEntry(
            name, schema, handler, description, requires_confirmation
        )

    def register_tool(self, tool: Tool, *, overwrite: bool = False) -> None:
        async def handler(args: dict) -> ToolResult:
            return await tool.execute(**args)

        self.register(
            tool.name,
            tool.parameters,
            handler,
            tool.description,
            overwrite=overwrite,
            requires_confirmation=tool.requires_confirmation,
        )

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)

    def get(self, name: str) -> ToolEntry | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return sorted(self._tools)

    def list(self) -> list[ToolEntry]:
        return [self._tools[n] for n in self.names()]

    def schemas(self) -> list[dict]:
        return [t.to_openai_schema() for t in self.list()]

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    async def dispatch(self, name: str, arguments: dict | str | None) -> ToolResult:
        entry = self._tools.get(name)
        if entry is None:
            logger.info("Unknown tool requested: %s", name)
            return ToolResult.fail(TOOL_NOT_FOUND, ErrorCode.UNKNOWN_TOOL)

        args, error = _coerce_arguments(arguments)
        if error is not None:
            return ToolResult.fail(
                f"Invalid tool arguments: {error}", ErrorCode.INVALID_ARGUMENTS
            )

        valid, error_msg = ArgumentValidator.validate(entry.schema, args)
        if not valid:
            return ToolResult.fail(
                f"Invalid arguments for tool '{name}': {error_msg}",
                ErrorCode.VALIDATION_ERROR,
            )

        if entry.requires_confirmation and self.confirm is not None:
            approved = self.confirm(name, args)
            if inspect.isawaitable(approved):
                approved = await approved
            if not approved:
                logger.info("Tool %s denied by operator", name)
                return ToolResult.fail(TOOL_DENIED, ErrorCode.DENIED)

        try:
            if self.timeout is not None:
                raw = await asyncio.wait_for(_invoke(entry.handler, args), timeout=self.timeout)
            else:
                raw = await _invoke(entry.handler, args)
        except asyncio.TimeoutError:
            return ToolResult.fail(
                f"Tool '{name}' timed out after {self.timeout}s", ErrorCode.TIMEOUT
            )
        except Exception as e:
            logger.warning("Tool %s raised: %s", name, e, exc_info=True)
            return ToolResult.fail(
                f"Tool execution error: {e}", ErrorCode.TOOL_EXCEPTION
            )

        return _normalize_result(raw)


async def _invoke(handler: Handler, args: dict) -> Any:
    result = handler(args)
    if inspect.isawaitable(result):
        result = await result
    return result


def _coerce_arguments(arguments: dict | str | None) -> tuple[dict, str | None]:
    if arguments is None:
        return {}, None
    if isinstance(arguments, dict):
        return arguments, None
    text = arguments.strip() or "{}"
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        return {}, f"{exc.msg}. Arguments received: {text[:100]!r}"
    if not isinstance(parsed, dict):
        return {}, "arguments must be a JSON object"
    return parsed, None


def _normalize_result(raw: Any) -> ToolResult:
    if isinstance(raw, ToolResult):
        return raw
    if raw is None:
        return ToolResult.ok("")
    if isinstance(raw, str):
        return ToolResult.ok(raw)
    return ToolResult.ok(json.dumps(raw, default=str), data=raw)
