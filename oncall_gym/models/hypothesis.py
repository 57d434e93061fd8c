"""Hypothesis data model for the agent's working theory."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Optional, Tuple
import uuid

from oncall_gym.exceptions import ValidationError


HIGH_CONFIDENCE_THRESHOLD = 0.8


class HypothesisStatus(str, Enum):
    """Hypothesis lifecycle status."""
    INVESTIGATING = "investigating"
    SUPPORTED = "supported"
    REFUTED = "refuted"
    ACTIONABLE = "actionable"


@dataclass(frozen=True)
class Hypothesis:
    """
    The current theory about what is wrong and how to fix it.

    Hypotheses are immutable. Every ``with_*`` method returns a new
    Hypothesis that keeps the same ``id``, so a theory can be tracked as it
    evolves across steps.
    """
    description: str
    confidence: float = 0.0
    status: HypothesisStatus = HypothesisStatus.INVESTIGATING
    supporting_observation_ids: Tuple[str, ...] = ()
    proposed_mitigation: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        """Validate confidence and status."""
        if isinstance(self.confidence, bool) or not isinstance(self.confidence, (int, float)):
            raise ValidationError("confidence must be a number between 0.0 and 1.0")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValidationError("confidence must be between 0.0 and 1.0")

        if not isinstance(self.status, HypothesisStatus):
            try:
                object.__setattr__(self, "status", HypothesisStatus(self.status))
            except ValueError:
                raise ValidationError(f"invalid status: {self.status}") from None

        object.__setattr__(
            self, "supporting_observation_ids", tuple(self.supporting_observation_ids)
        )

    def with_confidence(self, confidence: float) -> "Hypothesis":
        return replace(self, confidence=confidence)

    def with_status(self, status: HypothesisStatus) -> "Hypothesis":
        return replace(self, status=status)

    def with_description(self, description: str) -> "Hypothesis":
        return replace(self, description=description)

    def with_observation(self, observation_id: str) -> "Hypothesis":
        """Return a copy with one more supporting observation appended."""
        return replace(
            self,
            supporting_observation_ids=self.supporting_observation_ids + (observation_id,),
        )

    def with_mitigation(self, mitigation: str) -> "Hypothesis":
        return replace(self, proposed_mitigation=mitigation)

    @property
    def is_actionable(self) -> bool:
        return self.status == HypothesisStatus.ACTIONABLE

    @property
    def is_high_confidence(self) -> bool:
        return self.confidence >= HIGH_CONFIDENCE_THRESHOLD

    def to_dict(self) -> Dict:
        """Convert to dictionary for step snapshots and audit events."""
        return {
            "id": self.id,
            "description": self.description,
            "confidence": self.confidence,
            "status": self.status.value,
            "supporting_observation_ids": list(self.supporting_observation_ids),
            "proposed_mitigation": self.proposed_mitigation,
        }
