"""Diagnostic tools backed by simulated telemetry."""

from oncall_gym.tools.result import ToolResult
from oncall_gym.tools.base import BaseTool, ToolParams
from oncall_gym.tools.registry import ToolRegistry
from oncall_gym.tools.logs import LogsTool
from oncall_gym.tools.metrics import MetricsTool
from oncall_gym.tools.deploys import DeploysTool
from oncall_gym.tools.runbook import RunbookTool

__all__ = [
    "ToolResult",
    "BaseTool",
    "ToolParams",
    "ToolRegistry",
    "LogsTool",
    "MetricsTool",
    "DeploysTool",
    "RunbookTool",
]
