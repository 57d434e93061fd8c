"""Metrics query tool."""

from datetime import timedelta
from typing import Any, Dict, List

from pydantic import Field

from oncall_gym.simulator.data_store import parse_timestamp
from oncall_gym.tools.base import BaseTool, ToolExecutionError, ToolParams


LIST_METRICS = "_list"

_UNITS = {
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
}


def parse_duration(duration: str) -> timedelta:
    """Convert ``"30m"``, ``"1h"``, ``"7d"`` into a timedelta."""
    return timedelta(**{_UNITS[duration[-1]]: int(duration[:-1])})


class MetricsParams(ToolParams):
    service: str = Field(description="Service to query")
    metric_name: str = Field(
        description=f"Metric to fetch, e.g. latency_p95 or error_rate; '{LIST_METRICS}' lists them"
    )
    duration: str = Field(
        default="1h",
        pattern=r"^\d+[smhd]$",
        description="Window ending at the latest datapoint, e.g. 5m, 1h, 24h",
    )


def _summarize(datapoints: List[Dict[str, Any]]) -> Dict[str, Any]:
    values = [p["value"] for p in datapoints if isinstance(p.get("value"), (int, float))]
    if not values:
        return {"min": None, "max": None, "avg": None, "current": None}

    return {
        "min": min(values),
        "max": max(values),
        "avg": round(sum(values) / len(values), 4),
        # datapoints are newest first
        "current": values[0],
    }


class MetricsTool(BaseTool):
    """Queries simulated time-series metrics with summary statistics."""

    name = "metrics"
    description = (
        "Fetch a metric time series for a service (latency, error rate, memory, ...) "
        "with min/max/avg/current summary. Use metric_name '_list' to list metrics."
    )
    Params = MetricsParams

    def execute(self, params: MetricsParams):
        available = self.data_source.available_metrics(params.service)
        if not available:
            raise ToolExecutionError(f"service '{params.service}' not found")

        if params.metric_name == LIST_METRICS:
            return {"service": params.service, "available_metrics": available}

        if params.metric_name not in available:
            raise ToolExecutionError(
                f"metric '{params.metric_name}' not found for service '{params.service}'"
            )

        datapoints = self._within(
            self.data_source.metrics(params.service, params.metric_name),
            parse_duration(params.duration),
        )

        return {
            "service": params.service,
            "metric_name": params.metric_name,
            "duration": params.duration,
            "datapoints": datapoints,
            "summary": _summarize(datapoints),
        }

    @staticmethod
    def _within(datapoints: List[Dict[str, Any]], window: timedelta) -> List[Dict[str, Any]]:
        """Keep datapoints no older than ``window`` before the latest one."""
        timestamps = [parse_timestamp(p.get("timestamp")) for p in datapoints]
        known = [t for t in timestamps if t is not None]
        if not known:
            return datapoints

        cutoff = max(known) - window
        return [
            p for p, t in zip(datapoints, timestamps)
            if t is None or t >= cutoff
        ]
