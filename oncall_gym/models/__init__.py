"""Data models module - Incident, Observation, Hypothesis, agent outputs."""

from oncall_gym.models.incident import Incident, IncidentSeverity
from oncall_gym.models.observation import Observation
from oncall_gym.models.hypothesis import Hypothesis, HypothesisStatus
from oncall_gym.models.outputs import (
    AgentDecision,
    CallToolDecision,
    ProposeMitigationDecision,
    EscalateDecision,
    HypothesisUpdate,
    ResultAnalysis,
    parse_decision,
    parse_analysis,
)

__all__ = [
    # Evidence models
    "Incident",
    "IncidentSeverity",
    "Observation",
    "Hypothesis",
    "HypothesisStatus",
    # Agent outputs
    "AgentDecision",
    "CallToolDecision",
    "ProposeMitigationDecision",
    "EscalateDecision",
    "HypothesisUpdate",
    "ResultAnalysis",
    "parse_decision",
    "parse_analysis",
]
