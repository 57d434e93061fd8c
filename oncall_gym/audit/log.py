"""Append-only audit log with pluggable persistence backends.

An ``AuditLog`` can be passed straight to the engine as its event handler
(``Engine(..., event_handler=log.append)``) and then queried to debug or
replay an investigation.
"""

import json
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import structlog

from oncall_gym.audit.event import AuditEvent, EventType


logger = structlog.get_logger()


class MemoryBackend:
    """Keeps serialized events in memory."""

    def __init__(self):
        self.stored_events: List[Dict[str, Any]] = []

    def write(self, event: AuditEvent):
        self.stored_events.append(event.to_dict())


class FileBackend:
    """Appends events to a JSON Lines file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def write(self, event: AuditEvent):
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(event.to_json())
            f.write("\n")

    def read_events(self) -> List[AuditEvent]:
        """Load every event previously written to the file."""
        if not self.path.exists():
            return []

        events = []
        with open(self.path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line:
                    events.append(AuditEvent.from_json(line))
        return events


def _describe(event: AuditEvent) -> str:
    """One-line human description of an event for timelines."""
    data = event.data or {}
    descriptions = {
        EventType.RUN_STARTED: lambda: f"Run started for incident {data.get('incident_id')}",
        EventType.STEP_STARTED: lambda: f"Step {data.get('step_number')} started",
        EventType.DECISION_MADE: lambda: f"Agent decided to {data.get('action')}",
        EventType.TOOL_CALLED: lambda: f"Called tool {data.get('tool_name')}",
        EventType.TOOL_RESULT_RECEIVED: lambda: (
            f"Tool {data.get('tool_name')} "
            f"{'succeeded' if data.get('success') else 'failed'}"
            f" in {data.get('execution_time_ms')}ms"
        ),
        EventType.OBSERVATION_RECORDED: lambda: (
            f"Observed: {data.get('summary')}"
            + (" (significant)" if data.get("significant") else "")
        ),
        EventType.HYPOTHESIS_CREATED: lambda: (
            f"New hypothesis: {data.get('description')} ({data.get('confidence')})"
        ),
        EventType.HYPOTHESIS_UPDATED: lambda: (
            f"Hypothesis updated: {data.get('description')} ({data.get('confidence')})"
        ),
        EventType.STEP_COMPLETED: lambda: f"Step {data.get('step_number')} completed",
        EventType.RUN_COMPLETED: lambda: f"Run completed: {data.get('description')}",
        EventType.RUN_FAILED: lambda: f"Run failed: {data.get('reason')}",
        EventType.RUN_ESCALATED: lambda: (
            f"Escalated to {data.get('escalation_target')}: {data.get('reason')}"
        ),
    }
    describe = descriptions.get(event.type)
    return describe() if describe else str(event.type)


class AuditLog:
    """
    Append-only collection of audit events.

    Events are kept in insertion order, which is the order the engine emitted
    them. If a backend is configured every appended event is also written to
    it.
    """

    def __init__(self, backend: Optional[Any] = None):
        self.backend = backend
        self._events: List[AuditEvent] = []

    @property
    def events(self) -> List[AuditEvent]:
        return list(self._events)

    def __len__(self):
        return len(self._events)

    def append(self, event: AuditEvent):
        """Record an event and persist it to the backend."""
        self._events.append(event)
        if self.backend is not None:
            self.backend.write(event)

        logger.debug(
            "Audit event recorded",
            event_type=event.type.value,
            run_id=event.run_id,
            step_id=event.step_id,
        )

    # Queries

    def events_for_run(self, run_id: str) -> List[AuditEvent]:
        return [e for e in self._events if e.run_id == run_id]

    def events_of_type(self, *types: Union[EventType, str]) -> List[AuditEvent]:
        wanted = {EventType(t) for t in types}
        return [e for e in self._events if e.type in wanted]

    def events_for_step(self, step_id: str) -> List[AuditEvent]:
        return [e for e in self._events if e.step_id == step_id]

    def events_in_range(self, start: datetime, end: datetime) -> List[AuditEvent]:
        """Events with ``start <= timestamp <= end``."""
        return [e for e in self._events if start <= e.timestamp <= end]

    def tool_calls(self) -> List[Dict[str, Optional[AuditEvent]]]:
        """Pair each tool_called event with the result received in the same step."""
        pairs = []
        pending: Dict[Optional[str], Dict[str, Optional[AuditEvent]]] = {}

        for event in self._events:
            if event.type == EventType.TOOL_CALLED:
                pair = {"call": event, "result": None}
                pairs.append(pair)
                pending[event.step_id] = pair
            elif event.type == EventType.TOOL_RESULT_RECEIVED:
                pair = pending.pop(event.step_id, None)
                if pair is not None:
                    pair["result"] = event

        return pairs

    def timeline(self) -> List[Dict[str, Any]]:
        """Human-readable timeline of every event."""
        return [
            {
                "time": e.timestamp,
                "type": e.type.value,
                "step_id": e.step_id,
                "description": _describe(e),
            }
            for e in self._events
        ]

    def export(self, format: str = "json") -> str:
        """Export all events as a JSON array or JSON Lines."""
        records = [e.to_dict() for e in self._events]

        if format == "json":
            return json.dumps(records, default=str, indent=2)
        if format == "jsonl":
            return "\n".join(json.dumps(r, default=str) for r in records)

        raise ValueError(f"unsupported export format: {format}")

    def summary(self) -> Dict[str, Any]:
        """Summary statistics across all recorded events."""
        counts = Counter(e.type for e in self._events)
        timestamps = [e.timestamp for e in self._events]

        return {
            "total_events": len(self._events),
            "runs": len({e.run_id for e in self._events}),
            "steps": counts[EventType.STEP_STARTED],
            "tool_calls": counts[EventType.TOOL_CALLED],
            "failed_tool_calls": sum(
                1 for e in self._events
                if e.type == EventType.TOOL_RESULT_RECEIVED and not e.data.get("success")
            ),
            "observations": counts[EventType.OBSERVATION_RECORDED],
            "hypothesis_changes": (
                counts[EventType.HYPOTHESIS_CREATED] + counts[EventType.HYPOTHESIS_UPDATED]
            ),
            "by_type": {t.value: n for t, n in counts.items()},
            "first_event_at": min(timestamps).isoformat() if timestamps else None,
            "last_event_at": max(timestamps).isoformat() if timestamps else None,
        }

    @classmethod
    def from_events(cls, events: Iterable[AuditEvent], backend: Optional[Any] = None) -> "AuditLog":
        """Rebuild a log from previously persisted events."""
        log = cls(backend=backend)
        log._events.extend(events)
        return log
