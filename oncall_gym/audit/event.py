"""Audit event model: one auditable action taken during an investigation."""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
import uuid

from oncall_gym.exceptions import ValidationError


class EventType(str, Enum):
    """Every event the engine can emit."""
    # Run lifecycle
    RUN_STARTED = "run_started"
    RUN_COMPLETED = "run_completed"
    RUN_FAILED = "run_failed"
    RUN_ESCALATED = "run_escalated"

    # Step lifecycle
    STEP_STARTED = "step_started"
    STEP_COMPLETED = "step_completed"

    # Agent actions
    DECISION_MADE = "decision_made"
    TOOL_CALLED = "tool_called"
    TOOL_RESULT_RECEIVED = "tool_result_received"

    # Evidence
    OBSERVATION_RECORDED = "observation_recorded"
    HYPOTHESIS_CREATED = "hypothesis_created"
    HYPOTHESIS_UPDATED = "hypothesis_updated"


@dataclass(frozen=True)
class AuditEvent:
    """
    Immutable, timestamped audit record.

    Events are self-contained: ``data`` holds everything needed to replay or
    debug the action without looking up other objects.
    """
    type: EventType
    run_id: str
    data: Dict[str, Any] = field(default_factory=dict)
    step_id: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        if not isinstance(self.type, EventType):
            try:
                object.__setattr__(self, "type", EventType(self.type))
            except ValueError:
                raise ValidationError(f"unknown event type: {self.type}") from None

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "run_id": self.run_id,
            "step_id": self.step_id,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditEvent":
        timestamp = data.get("timestamp")
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)

        kwargs = {
            "type": data["type"],
            "run_id": data["run_id"],
            "data": data.get("data") or {},
            "step_id": data.get("step_id"),
        }
        if timestamp is not None:
            kwargs["timestamp"] = timestamp
        if data.get("id"):
            kwargs["id"] = data["id"]
        return cls(**kwargs)

    @classmethod
    def from_json(cls, payload: str) -> "AuditEvent":
        return cls.from_dict(json.loads(payload))

    # Convenience constructors

    @classmethod
    def run_started(
        cls,
        run_id: str,
        incident_id: str,
        incident_description: str,
        max_steps: Optional[int] = None,
    ) -> "AuditEvent":
        return cls(
            type=EventType.RUN_STARTED,
            run_id=run_id,
            data={
                "incident_id": incident_id,
                "incident_description": incident_description,
                "max_steps": max_steps,
            },
        )

    @classmethod
    def tool_called(
        cls,
        run_id: str,
        step_id: str,
        tool_name: str,
        params: Dict[str, Any],
    ) -> "AuditEvent":
        return cls(
            type=EventType.TOOL_CALLED,
            run_id=run_id,
            step_id=step_id,
            data={"tool_name": tool_name, "params": params},
        )

    @classmethod
    def tool_result_received(
        cls,
        run_id: str,
        step_id: str,
        tool_name: str,
        success: bool,
        execution_time_ms: Optional[int],
        errors: Optional[list] = None,
    ) -> "AuditEvent":
        return cls(
            type=EventType.TOOL_RESULT_RECEIVED,
            run_id=run_id,
            step_id=step_id,
            data={
                "tool_name": tool_name,
                "success": success,
                "execution_time_ms": execution_time_ms,
                "errors": list(errors or []),
            },
        )

    @classmethod
    def observation_recorded(
        cls,
        run_id: str,
        step_id: str,
        observation_id: str,
        summary: str,
        significant: bool,
    ) -> "AuditEvent":
        return cls(
            type=EventType.OBSERVATION_RECORDED,
            run_id=run_id,
            step_id=step_id,
            data={
                "observation_id": observation_id,
                "summary": summary,
                "significant": significant,
            },
        )
