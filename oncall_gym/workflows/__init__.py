"""Workflow module - Step, Run and the investigation Engine."""

from oncall_gym.workflows.step import Step, StepStatus
from oncall_gym.workflows.run import Run, RunStatus, ResolutionType
from oncall_gym.workflows.engine import Engine

__all__ = [
    "Step",
    "StepStatus",
    "Run",
    "RunStatus",
    "ResolutionType",
    "Engine",
]
