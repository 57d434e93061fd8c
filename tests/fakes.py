"""Deterministic fake collaborators and decision builders for tests."""

from typing import Any, Dict, List, Optional

from oncall_gym.tools.result import ToolResult


class ScriptedAgent:
    """Agent that replays a fixed list of decisions; the last one repeats."""

    def __init__(self, decisions: List[Dict[str, Any]], analysis: Optional[Dict[str, Any]] = None):
        self.decisions = decisions
        self.analysis = analysis or {
            "observation": "Gathered additional context",
            "significant": False,
            "hypothesis_update": None,
        }
        self.decide_calls: List[Dict[str, Any]] = []
        self.analyze_calls: List[Dict[str, Any]] = []

    def decide_next_action(self, *, incident, observations, current_hypothesis, step_number):
        self.decide_calls.append({
            "incident": incident,
            "observations": observations,
            "current_hypothesis": current_hypothesis,
            "step_number": step_number,
        })
        return self.decisions[min(step_number, len(self.decisions)) - 1]

    def analyze_result(self, *, tool_result, incident, current_hypothesis):
        self.analyze_calls.append({
            "tool_result": tool_result,
            "incident": incident,
            "current_hypothesis": current_hypothesis,
        })
        return self.analysis


class DeployHunterAgent:
    """Checks runbook, deploys, logs and metrics, then proposes a rollback."""

    def decide_next_action(self, *, incident, observations, current_hypothesis, step_number):
        plan = [
            ("runbook", {"service": incident.service, "topic": "latency"}),
            ("deploys", {"service": incident.service, "limit": 5}),
            ("logs", {"service": incident.service, "level": "error"}),
            ("metrics", {"service": incident.service, "metric_name": "latency_p95"}),
        ]
        if step_number <= len(plan):
            tool_name, params = plan[step_number - 1]
            return {
                "action": "call_tool",
                "tool_name": tool_name,
                "tool_params": params,
                "reasoning": f"Checking {tool_name}",
            }

        return {
            "action": "propose_mitigation",
            "mitigation": "Roll back checkout service to v2.3.0",
            "confidence": 0.85,
            "reasoning": "Deploy at 10:00 correlates with latency increase",
        }

    def analyze_result(self, *, tool_result, incident, current_hypothesis):
        if tool_result.tool_name == "deploys" and tool_result.success:
            return {
                "observation": "Recent deploy v2.3.1 at 10:00 updated the payment SDK, prime suspect",
                "significant": True,
                "hypothesis_update": {
                    "description": "Recent deploy may be causing latency issues",
                    "confidence": 0.6,
                },
            }
        if tool_result.tool_name == "metrics" and tool_result.success:
            return {
                "observation": "Latency increased from 100ms to 520ms right after the deploy at 10:00",
                "significant": True,
                "hypothesis_update": {
                    "description": "Deploy at 10:00 caused latency regression",
                    "confidence": 0.8,
                },
            }
        if tool_result.tool_name == "logs" and tool_result.success:
            return {
                "observation": "Error logs show connection timeouts to the payment service",
                "significant": True,
            }
        return {"observation": "Gathered additional context", "significant": False}


class FakeToolRegistry:
    """Registry returning canned results and recording every call."""

    def __init__(self, result: Optional[ToolResult] = None, error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def call(self, tool_name, params):
        self.calls.append({"tool_name": tool_name, "params": params})
        if self.error is not None:
            raise self.error
        if self.result is not None:
            return self.result
        return ToolResult.ok(tool_name, {"entries": []}, execution_time_ms=3)


def call_tool(tool_name: str = "logs", **params) -> Dict[str, Any]:
    return {
        "action": "call_tool",
        "tool_name": tool_name,
        "tool_params": params or {"service": "checkout"},
        "reasoning": "Still investigating",
    }


def propose(mitigation: str = "Roll back to v2.3.0", confidence: float = 0.9) -> Dict[str, Any]:
    return {
        "action": "propose_mitigation",
        "mitigation": mitigation,
        "confidence": confidence,
        "reasoning": "Evidence points at the deploy",
    }


def escalate(reason: str = "Out of my depth", target: Optional[str] = "payments-oncall") -> Dict[str, Any]:
    return {"action": "escalate", "reason": reason, "escalation_target": target}
