"""Audit trail - events emitted by the engine and the log that stores them."""

from oncall_gym.audit.event import AuditEvent, EventType
from oncall_gym.audit.log import AuditLog, FileBackend, MemoryBackend

__all__ = [
    "AuditEvent",
    "EventType",
    "AuditLog",
    "FileBackend",
    "MemoryBackend",
]
