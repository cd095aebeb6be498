from abc import ABC, abstractmethod

from switchboard.types import ToolResult


def normalize_schema(schema: dict) -> dict:
    s = dict(schema or {})
    s.setdefault("type", "object")
    s.setdefault("properties", {})
    return s


class Tool(ABC):
    @property
    @abstractmethod
    def name(self) -> str: ...

    @property
    @abstractmethod
    def description(self) -> str: ...

    @property
    @abstractmethod
    def parameters(self) -> dict: ...

    @abstractmethod
    async def execute(self, **kwargs) -> ToolResult: ...

    @property
    def requires_confirmation(self) -> bool:
        """Side-effecting tools ask the operator before they run."""
        return False

    def to_openai_schema(self) -> dict:
        return function_schema(self.name, self.description, self.parameters)


def function_schema(name: str, description: str, parameters: dict) -> dict:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": normalize_schema(parameters),
        },
    }
