"""Incident data model for the alert that starts an investigation."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping
import uuid

from oncall_gym.exceptions import ValidationError


class IncidentSeverity(str, Enum):
    """Incident severity levels."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class Incident:
    """
    The triggering alert for an investigation.

    Incidents are read-only once constructed. The engine and the run only
    ever read from them.
    """
    service: str
    description: str
    severity: IncidentSeverity = IncidentSeverity.HIGH
    tags: Mapping[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        """Normalize severity and freeze tags."""
        if not isinstance(self.severity, IncidentSeverity):
            try:
                severity = IncidentSeverity(str(self.severity).lower())
            except ValueError:
                raise ValidationError(f"unknown severity: {self.severity}") from None
            object.__setattr__(self, "severity", severity)

        object.__setattr__(self, "tags", MappingProxyType(dict(self.tags or {})))

    def to_dict(self) -> Dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "service": self.service,
            "description": self.description,
            "severity": self.severity.value,
            "tags": dict(self.tags),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Incident":
        """Create an Incident from scenario data."""
        kwargs: Dict[str, Any] = {
            "service": data["service"],
            "description": data["description"],
            "severity": data.get("severity", IncidentSeverity.HIGH),
            "tags": data.get("tags") or {},
        }
        if data.get("id"):
            kwargs["id"] = data["id"]
        return cls(**kwargs)
