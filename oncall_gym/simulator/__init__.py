"""Simulator module - scenarios, fixture data and run evaluation."""

from oncall_gym.simulator.data_store import DataStore
from oncall_gym.simulator.evaluator import EvaluationResult, ScoreBreakdown, evaluate_run
from oncall_gym.simulator.scenario import GroundTruth, Scenario, SuccessCriteria

__all__ = [
    "DataStore",
    "EvaluationResult",
    "ScoreBreakdown",
    "evaluate_run",
    "GroundTruth",
    "Scenario",
    "SuccessCriteria",
]
