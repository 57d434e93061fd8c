"""Observation data model for findings recorded from tool results."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import uuid


@dataclass(frozen=True)
class Observation:
    """A finding produced by the agent's analysis of one tool result."""
    tool_name: str
    summary: str
    significant: bool = False
    raw_data: Any = None
    tool_params: Optional[Dict[str, Any]] = None
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "tool_name": self.tool_name,
            "summary": self.summary,
            "raw_data": self.raw_data,
            "significant": self.significant,
            "recorded_at": self.recorded_at.isoformat(),
            "tool_params": self.tool_params,
        }
