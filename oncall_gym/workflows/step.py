"""Step model: the record of one decision cycle within a run."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
import uuid

from oncall_gym.exceptions import ValidationError


class StepStatus(str, Enum):
    """Step execution status."""
    PENDING = "pending"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


FINISHED_STEP_STATUSES = (StepStatus.COMPLETED, StepStatus.FAILED)


@dataclass(frozen=True)
class Step:
    """
    Immutable record of one iteration of the agent loop.

    Captures what the agent decided, which tool it called and with what
    result, what it learned, and how the working hypothesis changed.
    Transitions return new Step values with the same ``id``.
    """
    run_id: str
    step_number: int
    decision: str

    # Tool invocation: {"tool_name": ..., "params": {...}}
    tool_call: Optional[Dict[str, Any]] = None
    # {"success": ..., "data": ..., "errors": [...], "execution_time_ms": ...}
    tool_result: Optional[Dict[str, Any]] = None

    observation: Optional[str] = None

    # Hypothesis snapshots (Hypothesis.to_dict()) around this step
    hypothesis_before: Optional[Dict[str, Any]] = None
    hypothesis_after: Optional[Dict[str, Any]] = None

    status: StepStatus = StepStatus.PENDING

    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        if self.step_number < 1:
            raise ValidationError("step_number must be 1 or greater")
        if not isinstance(self.status, StepStatus):
            try:
                object.__setattr__(self, "status", StepStatus(self.status))
            except ValueError:
                raise ValidationError(f"invalid step status: {self.status}") from None

    def with_status(self, status: StepStatus) -> "Step":
        """Return a copy with a new status, stamping completion when finished."""
        step = replace(self, status=status)
        if step.status in FINISHED_STEP_STATUSES and step.completed_at is None:
            step = replace(step, completed_at=datetime.now(timezone.utc))
        return step

    def with_decision(self, decision: str) -> "Step":
        return replace(self, decision=decision)

    def with_tool_call(self, tool_name: str, params: Optional[Dict[str, Any]] = None) -> "Step":
        return replace(self, tool_call={"tool_name": tool_name, "params": dict(params or {})})

    def with_tool_result(
        self,
        success: bool,
        data: Any = None,
        errors: Optional[List[str]] = None,
        execution_time_ms: Optional[int] = None,
    ) -> "Step":
        return replace(
            self,
            tool_result={
                "success": success,
                "data": data,
                "errors": list(errors or []),
                "execution_time_ms": execution_time_ms,
            },
        )

    def with_observation(self, observation: str) -> "Step":
        return replace(self, observation=observation)

    def with_hypotheses(
        self,
        before: Optional[Dict[str, Any]],
        after: Optional[Dict[str, Any]],
    ) -> "Step":
        return replace(self, hypothesis_before=before, hypothesis_after=after)

    @property
    def is_completed(self) -> bool:
        return self.status == StepStatus.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.status == StepStatus.FAILED

    @property
    def duration_ms(self) -> Optional[float]:
        """Step duration in milliseconds, once the step has finished."""
        if not self.completed_at:
            return None
        return (self.completed_at - self.created_at).total_seconds() * 1000

    def to_dict(self) -> Dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "run_id": self.run_id,
            "step_number": self.step_number,
            "decision": self.decision,
            "tool_call": self.tool_call,
            "tool_result": self.tool_result,
            "observation": self.observation,
            "hypothesis_before": self.hypothesis_before,
            "hypothesis_after": self.hypothesis_after,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
        }
