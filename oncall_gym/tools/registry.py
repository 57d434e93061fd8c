"""Tool registry: name-based lookup and invocation of diagnostic tools."""

from typing import Any, Dict, List, Optional, Type

import structlog

from oncall_gym.exceptions import ToolNotFoundError, ValidationError
from oncall_gym.tools.base import BaseTool
from oncall_gym.tools.result import ToolResult


logger = structlog.get_logger()


class ToolRegistry:
    """
    Maps tool names to tool classes.

    ``get`` builds a fresh tool instance per call, bound to the registry's
    data source, so tools never share state between invocations.
    """

    def __init__(self, data_source: Any = None):
        self.data_source = data_source
        self._tools: Dict[str, Type[BaseTool]] = {}

    def register(self, tool_class: Type[BaseTool]) -> Type[BaseTool]:
        name = getattr(tool_class, "name", None)
        if not name:
            raise ValidationError(f"{tool_class!r} is missing a tool name")
        if self.is_registered(name):
            raise ValidationError(f"tool '{name}' is already registered")

        self._tools[name] = tool_class
        logger.debug("Tool registered", tool_name=name)
        return tool_class

    def is_registered(self, tool_name: str) -> bool:
        return tool_name in self._tools

    def get(self, tool_name: str) -> BaseTool:
        if not self.is_registered(tool_name):
            raise ToolNotFoundError(f"unknown tool: {tool_name}")
        return self._tools[tool_name](data_source=self.data_source)

    def call(self, tool_name: str, params: Optional[Dict[str, Any]] = None) -> ToolResult:
        """Look up a tool and run it. Unknown names raise ToolNotFoundError."""
        tool = self.get(tool_name)
        result = tool.call(params or {})

        logger.info(
            "Tool called",
            tool_name=tool_name,
            success=result.success,
            execution_time_ms=result.execution_time_ms,
        )
        return result

    @property
    def tool_names(self) -> List[str]:
        return list(self._tools)

    def tool_schemas(self) -> Dict[str, Dict[str, Any]]:
        """Description and JSON parameter schema of every tool, for agent prompts."""
        return {
            name: {
                "description": tool_class.description,
                "parameters": tool_class.parameter_schema(),
            }
            for name, tool_class in self._tools.items()
        }

    @classmethod
    def default(cls, data_source: Any = None) -> "ToolRegistry":
        """Registry with the built-in fixture-backed tools."""
        from oncall_gym.tools.deploys import DeploysTool
        from oncall_gym.tools.logs import LogsTool
        from oncall_gym.tools.metrics import MetricsTool
        from oncall_gym.tools.runbook import RunbookTool

        registry = cls(data_source=data_source)
        for tool_class in (LogsTool, MetricsTool, DeploysTool, RunbookTool):
            registry.register(tool_class)
        return registry
