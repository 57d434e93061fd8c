"""Log search tool."""

from typing import Literal, Optional

from pydantic import Field

from oncall_gym.tools.base import BaseTool, ToolParams


LogLevel = Literal["debug", "info", "warn", "error", "fatal"]


class LogsParams(ToolParams):
    service: str = Field(description="Service whose logs to search")
    level: Optional[LogLevel] = Field(default=None, description="Only entries at this level")
    keyword: Optional[str] = Field(default=None, description="Case-insensitive message filter")
    limit: int = Field(default=100, ge=1, description="Maximum entries to return")


class LogsTool(BaseTool):
    """Searches simulated application logs, most recent entries first."""

    name = "logs"
    description = (
        "Search application logs for a service, filtered by level and keyword. "
        "Usually the first place to look when an incident starts."
    )
    Params = LogsParams

    def execute(self, params: LogsParams):
        matching = self.data_source.logs(
            service=params.service,
            level=params.level,
            keyword=params.keyword,
        )
        entries = matching[:params.limit]

        return {
            "entries": entries,
            "count": len(entries),
            "total_available": len(matching),
        }
