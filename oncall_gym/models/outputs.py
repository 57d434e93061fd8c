"""Structured output models for agent decisions and result analysis.

These Pydantic models define the exact schema the engine accepts from an
agent. Agents may return the models directly or plain mappings; both are
validated through ``parse_decision`` and ``parse_analysis``.
"""

from enum import Enum
from typing import Annotated, Any, Dict, Literal, Mapping, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from oncall_gym.exceptions import AgentContractError


class CallToolDecision(BaseModel):
    """Agent asks the engine to run a diagnostic tool."""

    action: Literal["call_tool"] = "call_tool"
    tool_name: str = Field(description="Registered name of the tool to call")
    tool_params: Dict[str, Any] = Field(
        default_factory=dict,
        description="Parameters passed to the tool"
    )
    reasoning: str = Field(
        default="",
        description="Why the agent chose this tool"
    )


class ProposeMitigationDecision(BaseModel):
    """Agent is confident enough to propose a fix."""

    action: Literal["propose_mitigation"] = "propose_mitigation"
    mitigation: str = Field(description="Proposed mitigation")
    confidence: float = Field(
        ge=0.0,
        le=1.0,
        description="Confidence in the mitigation (0-1)"
    )
    reasoning: str = Field(
        default="",
        description="Evidence summary behind the proposal"
    )


class EscalateDecision(BaseModel):
    """Agent hands the incident to a human."""

    action: Literal["escalate"] = "escalate"
    reason: str = Field(description="Why the agent is escalating")
    escalation_target: Optional[str] = Field(
        default=None,
        description="Team or rotation to escalate to"
    )


AgentDecision = Annotated[
    Union[CallToolDecision, ProposeMitigationDecision, EscalateDecision],
    Field(discriminator="action"),
]

DECISION_ACTIONS = ("call_tool", "propose_mitigation", "escalate")

_decision_adapter = TypeAdapter(AgentDecision)


class HypothesisUpdate(BaseModel):
    """Revision of the working theory suggested by a tool result."""

    description: str = Field(description="Updated theory")
    confidence: float = Field(
        ge=0.0,
        le=1.0,
        description="Confidence in the theory (0-1)"
    )


class ResultAnalysis(BaseModel):
    """Agent's interpretation of a single tool result."""

    observation: str = Field(description="Human-readable summary of the finding")
    significant: bool = Field(
        default=False,
        description="Whether the finding is relevant evidence"
    )
    hypothesis_update: Optional[HypothesisUpdate] = Field(
        default=None,
        description="Revision of the working theory, if any"
    )


def _as_mapping(raw: Any, kind: str) -> Dict[str, Any]:
    if isinstance(raw, BaseModel):
        return raw.model_dump()
    if not isinstance(raw, Mapping):
        raise AgentContractError(
            f"agent returned {type(raw).__name__} for {kind}, expected a mapping"
        )
    return dict(raw)


def parse_decision(raw: Any) -> AgentDecision:
    """Validate whatever ``decide_next_action`` returned."""
    if isinstance(raw, (CallToolDecision, ProposeMitigationDecision, EscalateDecision)):
        return raw

    data = _as_mapping(raw, "decision")
    action = data.get("action")
    if isinstance(action, Enum):
        action = action.value
    if action not in DECISION_ACTIONS:
        raise AgentContractError(f"unknown agent action: {action!r}")
    data["action"] = action

    try:
        return _decision_adapter.validate_python(data)
    except PydanticValidationError as e:
        raise AgentContractError(f"invalid {action} decision: {e}") from e


def parse_analysis(raw: Any) -> ResultAnalysis:
    """Validate whatever ``analyze_result`` returned."""
    if isinstance(raw, ResultAnalysis):
        return raw

    try:
        return ResultAnalysis.model_validate(_as_mapping(raw, "analysis"))
    except PydanticValidationError as e:
        raise AgentContractError(f"invalid result analysis: {e}") from e
