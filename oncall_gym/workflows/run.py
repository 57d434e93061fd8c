"""Run model: one complete investigation of an incident."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple
import uuid

from oncall_gym.exceptions import ValidationError, WorkflowError
from oncall_gym.models.hypothesis import Hypothesis
from oncall_gym.models.incident import Incident
from oncall_gym.models.observation import Observation
from oncall_gym.workflows.step import Step


DEFAULT_MAX_STEPS = 20


class RunStatus(str, Enum):
    """Run lifecycle status."""
    STARTED = "started"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    ESCALATED = "escalated"


TERMINAL_STATUSES = (RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.ESCALATED)
ACTIVE_STATUSES = (RunStatus.STARTED, RunStatus.RUNNING)


class ResolutionType(str, Enum):
    """How a run ended."""
    MITIGATION_PROPOSED = "mitigation_proposed"
    ESCALATED = "escalated"
    STEP_LIMIT_REACHED = "step_limit_reached"


def _normalize_resolution(resolution: Mapping[str, Any]) -> Dict[str, Any]:
    if "type" not in resolution:
        raise ValidationError("resolution must include a type")

    resolved = dict(resolution)
    resolved["type"] = ResolutionType(resolved["type"])
    return resolved


@dataclass(frozen=True)
class Run:
    """
    A complete agent investigation of an incident.

    Runs are immutable values. Every transition (``add_step``,
    ``add_observation``, ``with_hypothesis``, ``with_status``,
    ``with_resolution``, ``attach_resolution``) returns a new Run and the
    caller must continue with the returned value.

    Lifecycle: started -> running -> completed | failed | escalated, with
    running <-> paused for human-in-the-loop suspension.
    """
    incident: Incident
    status: RunStatus = RunStatus.STARTED
    steps: Tuple[Step, ...] = ()
    observations: Tuple[Observation, ...] = ()
    current_hypothesis: Optional[Hypothesis] = None
    max_steps: int = DEFAULT_MAX_STEPS
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    resolution: Optional[Dict[str, Any]] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        if not isinstance(self.status, RunStatus):
            try:
                object.__setattr__(self, "status", RunStatus(self.status))
            except ValueError:
                raise ValidationError(f"invalid run status: {self.status}") from None

        if isinstance(self.max_steps, bool) or not isinstance(self.max_steps, int) or self.max_steps < 0:
            raise ValidationError("max_steps must be a non-negative integer")

        object.__setattr__(self, "steps", tuple(self.steps))
        object.__setattr__(self, "observations", tuple(self.observations))

    # -- transitions ---------------------------------------------------------

    def add_step(self, step: Step) -> "Run":
        """Append a step; a started run becomes running."""
        if self.is_terminal:
            raise WorkflowError(f"Run {self.id} is {self.status.value}; cannot add steps")

        status = RunStatus.RUNNING if self.status == RunStatus.STARTED else self.status
        return replace(self, steps=self.steps + (step,), status=status)

    def add_observation(self, observation: Observation) -> "Run":
        return replace(self, observations=self.observations + (observation,))

    def with_hypothesis(self, hypothesis: Optional[Hypothesis]) -> "Run":
        return replace(self, current_hypothesis=hypothesis)

    def with_status(self, status: RunStatus) -> "Run":
        """
        Set the status; terminal statuses stamp ``completed_at`` if unset.

        A terminal run keeps its status: moving it anywhere else raises
        WorkflowError.
        """
        if self.is_terminal and status != self.status:
            raise WorkflowError(
                f"Run {self.id} is {self.status.value}; cannot change status to {getattr(status, 'value', status)}"
            )

        run = replace(self, status=status)
        if run.is_terminal and run.completed_at is None:
            run = replace(run, completed_at=datetime.now(timezone.utc))
        return run

    def with_resolution(self, resolution: Mapping[str, Any]) -> "Run":
        """Store the resolution and complete the run."""
        return replace(self, resolution=_normalize_resolution(resolution)).with_status(RunStatus.COMPLETED)

    def attach_resolution(self, resolution: Mapping[str, Any]) -> "Run":
        """
        Store the resolution of a run that already has its terminal status.

        Escalations and failures set ``escalated`` / ``failed`` through
        ``with_status`` first; this keeps that status where
        ``with_resolution`` would force ``completed``.
        """
        if not self.is_terminal:
            raise WorkflowError(
                f"Run {self.id} is {self.status.value}; set a terminal status before attaching a resolution"
            )
        return replace(self, resolution=_normalize_resolution(resolution))

    def pause(self) -> "Run":
        """Suspend a running investigation for human review."""
        if self.status != RunStatus.RUNNING:
            raise WorkflowError(f"only running runs can be paused (status: {self.status.value})")
        return self.with_status(RunStatus.PAUSED)

    def resume(self) -> "Run":
        if self.status != RunStatus.PAUSED:
            raise WorkflowError(f"only paused runs can be resumed (status: {self.status.value})")
        return self.with_status(RunStatus.RUNNING)

    # -- queries -------------------------------------------------------------

    @property
    def incident_id(self) -> str:
        return self.incident.id

    @property
    def step_count(self) -> int:
        return len(self.steps)

    @property
    def last_step(self) -> Optional[Step]:
        return self.steps[-1] if self.steps else None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def step_limit_reached(self) -> bool:
        return self.step_count >= self.max_steps

    @property
    def can_continue(self) -> bool:
        return self.status in ACTIVE_STATUSES and not self.step_limit_reached

    @property
    def significant_observations(self) -> Tuple[Observation, ...]:
        return tuple(o for o in self.observations if o.significant)

    @property
    def duration_seconds(self) -> Optional[float]:
        """Total investigation time in seconds, once the run has completed."""
        if not self.completed_at:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict:
        """Convert to dictionary for serialization and replay."""
        resolution = None
        if self.resolution is not None:
            resolution = {
                k: (v.value if isinstance(v, Enum) else v)
                for k, v in self.resolution.items()
            }

        return {
            "id": self.id,
            "incident_id": self.incident_id,
            "incident": self.incident.to_dict(),
            "status": self.status.value,
            "steps": [s.to_dict() for s in self.steps],
            "step_count": self.step_count,
            "observations": [o.to_dict() for o in self.observations],
            "current_hypothesis": (
                self.current_hypothesis.to_dict() if self.current_hypothesis else None
            ),
            "max_steps": self.max_steps,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "resolution": resolution,
        }
