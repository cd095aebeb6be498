"""Todo list tools used by the model to plan multi-step work."""

from __future__ import annotations

from dataclasses import dataclass

from switchboard.tools.base import Tool
from switchboard.types import ToolResult

PRIORITIES = ("low", "medium", "high")
_MARKS = {True: "[x]", False: "[ ]"}


@dataclass
class TodoItem:
    id: int
    task: str
    completed: bool = False
    priority: str = "medium"


class TodoList:
    """Shared state for the create/update tools."""

    def __init__(self) -> None:
        self.items: list[TodoItem] = []

    def replace(self, todos: list[dict]) -> None:
        self.items = [
            TodoItem(
                id=i,
                task=t["task"],
                completed=bool(t.get("completed", False)),
                priority=t.get("priority", "medium"),
            )
            for i, t in enumerate(todos, start=1)
        ]

    def update(self, updates: list[dict]) -> list[int]:
        """Apply updates; return ids that did not exist."""
        by_id = {item.id: item for item in self.items}
        missing = []
        for u in updates:
            item = by_id.get(int(u["id"]))
            if item is None:
                missing.append(int(u["id"]))
                continue
            if "task" in u:
                item.task = u["task"]
            if "completed" in u:
                item.completed = bool(u["completed"])
            if "priority" in u:
                item.priority = u["priority"]
        return missing

    def render(self) -> str:
        if not self.items:
            return "Todo list is empty"
        lines = [
            f"{_MARKS[item.completed]} {item.id}. {item.task} ({item.priority})"
            for item in self.items
        ]
        done = sum(1 for item in self.items if item.completed)
        lines.append(f"{done}/{len(self.items)} completed")
        return "\n".join(lines)


_ITEM_PROPS = {
    "task": {"type": "string"},
    "completed": {"type": "boolean"},
    "priority": {"type": "string", "enum": list(PRIORITIES)},
}


class CreateTodoListTool(Tool):
    def __init__(self, todo_list: TodoList) -> None:
        self.todo_list = todo_list

    @property
    def name(self) -> str:
        return "create_todo_list"

    @property
    def description(self) -> str:
        return "Create a visual todo list for planning and tracking tasks"

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "todos": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": _ITEM_PROPS,
                        "required": ["task"],
                    },
                    "description": "Array of todo items to create",
                },
            },
            "required": ["todos"],
        }

    async def execute(self, **kwargs) -> ToolResult:
        self.todo_list.replace(kwargs["todos"])
        return ToolResult.ok(self.todo_list.render())


class UpdateTodoListTool(Tool):
    def __init__(self, todo_list: TodoList) -> None:
        self.todo_list = todo_list

    @property
    def name(self) -> str:
        return "update_todo_list"

    @property
    def description(self) -> str:
        return "Update existing todos in your todo list"

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "updates": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {"id": {"type": "integer"}, **_ITEM_PROPS},
                        "required": ["id"],
                    },
                    "description": "Array of todo updates to apply",
                },
            },
            "required": ["updates"],
        }

    async def execute(self, **kwargs) -> ToolResult:
        missing = self.todo_list.update(kwargs["updates"])
        if missing:
            return ToolResult.fail(
                f"Unknown todo id(s): {', '.join(map(str, missing))}\n{self.todo_list.render()}"
            )
        return ToolResult.ok(self.todo_list.render())
