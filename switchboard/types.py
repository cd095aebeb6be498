from dataclasses import dataclass


@dataclass
class ToolResult:
    success: bool
    output: str | None = None
    error: str | None = None
    error_code: str | None = None
    data: dict | list | None = None

    @property
    def content(self) -> str:
        """Text fed back to the model as the tool message body."""
        if self.success:
            return self.output or "Success"
        return self.error or "Unknown error"

    @classmethod
    def ok(cls, output: str = "", **kwargs) -> "ToolResult":
        return cls(success=True, output=output, **kwargs)

    @classmethod
    def fail(cls, error: str, code: str | None = None, **kwargs) -> "ToolResult":
        return cls(success=False, error=error, error_code=code, **kwargs)


class ErrorCode:
    UNKNOWN_TOOL = "unknown_tool"
    VALIDATION_ERROR = "validation_error"
    INVALID_ARGUMENTS = "invalid_arguments"
    TOOL_EXCEPTION = "tool_exception"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    DENIED = "denied"
