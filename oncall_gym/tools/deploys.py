"""Deploy history tool."""

from typing import Optional

from pydantic import Field

from oncall_gym.simulator.data_store import parse_timestamp
from oncall_gym.tools.base import BaseTool, ToolExecutionError, ToolParams


class DeploysParams(ToolParams):
    service: str = Field(description="Service whose deploys to list")
    since: Optional[str] = Field(
        default=None,
        description="ISO-8601 time; deploys at or after it are flagged as potential suspects",
    )
    limit: int = Field(default=10, ge=1, description="Maximum deploys to return")


class DeploysTool(BaseTool):
    """Lists recent deploys for a service, newest first."""

    name = "deploys"
    description = (
        "List recent deploys for a service with version, author, changes and "
        "rollback availability. Deploys since a given time are flagged as suspects."
    )
    Params = DeploysParams

    def execute(self, params: DeploysParams):
        cutoff = None
        if params.since is not None:
            cutoff = parse_timestamp(params.since)
            if cutoff is None:
                raise ToolExecutionError(f"since: invalid timestamp '{params.since}'")

        history = self.data_source.deploys(service=params.service)
        deploys = history[:params.limit]
        for deploy in deploys:
            deployed_at = parse_timestamp(deploy.get("timestamp"))
            deploy["potential_suspect"] = bool(
                cutoff is not None and deployed_at is not None and deployed_at >= cutoff
            )

        return {
            "service": params.service,
            "deploys": deploys,
            "total_deploys": len(history),
            "latest_deploy": history[0].get("version") if history else None,
        }
