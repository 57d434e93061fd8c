"""Tool result model returned by every diagnostic tool."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ToolResult:
    """
    Outcome of a single tool invocation.

    A failed result is ordinary data: it carries the tool's error messages
    and flows into the agent's analysis like any other result.
    """
    success: bool
    tool_name: str
    data: Any = None
    errors: List[str] = field(default_factory=list)
    execution_time_ms: Optional[int] = None

    @classmethod
    def ok(cls, tool_name: str, data: Any, execution_time_ms: int = 0) -> "ToolResult":
        return cls(
            success=True,
            tool_name=tool_name,
            data=data,
            execution_time_ms=execution_time_ms,
        )

    @classmethod
    def fail(
        cls,
        tool_name: str,
        errors: List[str],
        execution_time_ms: Optional[int] = None,
    ) -> "ToolResult":
        return cls(
            success=False,
            tool_name=tool_name,
            errors=list(errors),
            execution_time_ms=execution_time_ms,
        )

    @property
    def is_failure(self) -> bool:
        return not self.success

    def to_dict(self) -> Dict:
        return {
            "success": self.success,
            "tool_name": self.tool_name,
            "data": self.data,
            "errors": list(self.errors),
            "execution_time_ms": self.execution_time_ms,
        }
