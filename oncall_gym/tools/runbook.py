"""Runbook lookup tool."""

from typing import Optional

from pydantic import Field

from oncall_gym.tools.base import BaseTool, ToolParams


class RunbookParams(ToolParams):
    service: str = Field(description="Service the runbook applies to")
    topic: Optional[str] = Field(
        default=None,
        description="Case-insensitive search over runbook titles and symptoms",
    )


class RunbookTool(BaseTool):
    name = "runbook"
    description = (
        "Find operational runbooks for a service by topic or symptom. "
        "Runbooks list investigation steps and escalation paths."
    )
    Params = RunbookParams

    def execute(self, params: RunbookParams):
        runbooks = self.data_source.runbooks(service=params.service, topic=params.topic)
        return {
            "service": params.service,
            "query": params.topic,
            "runbooks": runbooks,
            "total_matches": len(runbooks),
        }
