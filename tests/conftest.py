"""Shared fixtures."""

from pathlib import Path

import pytest

from oncall_gym.config import Settings, reset_settings
from oncall_gym.models.incident import Incident


FIXTURES_DIR = Path(__file__).parent / "fixtures"
LATENCY_SPIKE_DIR = FIXTURES_DIR / "incidents" / "latency_spike"


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch, tmp_path):
    """Keep tests independent of any local config file or environment."""
    monkeypatch.setenv("ONCALL_GYM_CONFIG_PATH", str(tmp_path / "missing.yaml"))
    monkeypatch.delenv("ONCALL_GYM_AUDIT_LOG", raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def incident():
    return Incident(service="checkout", description="p95 latency spike above 500ms")


@pytest.fixture
def latency_spike_dir():
    return LATENCY_SPIKE_DIR


@pytest.fixture
def telemetry():
    """Inline telemetry matching the latency spike scenario."""
    return {
        "logs": [
            {"timestamp": "2024-01-15T10:30:00Z", "service": "checkout", "level": "error",
             "message": "Connection timeout to database"},
            {"timestamp": "2024-01-15T10:30:01Z", "service": "checkout", "level": "error",
             "message": "Failed to process payment"},
            {"timestamp": "2024-01-15T10:30:02Z", "service": "checkout", "level": "info",
             "message": "Retry attempt 1"},
            {"timestamp": "2024-01-15T10:29:00Z", "service": "inventory", "level": "info",
             "message": "Stock updated"},
            {"timestamp": "2024-01-15T10:28:00Z", "service": "checkout", "level": "warn",
             "message": "Slow query detected"},
        ],
        "metrics": {
            "checkout": {
                "latency_p95": [
                    {"timestamp": "2024-01-15T10:30:00Z", "value": 450},
                    {"timestamp": "2024-01-15T10:25:00Z", "value": 520},
                    {"timestamp": "2024-01-15T10:20:00Z", "value": 480},
                    {"timestamp": "2024-01-15T10:15:00Z", "value": 150},
                    {"timestamp": "2024-01-15T10:10:00Z", "value": 120},
                ],
                "error_rate": [
                    {"timestamp": "2024-01-15T10:30:00Z", "value": 0.15},
                    {"timestamp": "2024-01-15T10:25:00Z", "value": 0.12},
                ],
            },
        },
        "deploys": [
            {"id": "deploy-001", "service": "checkout", "version": "v2.3.1",
             "previous_version": "v2.3.0", "timestamp": "2024-01-15T10:00:00Z",
             "author": "alice@example.com", "status": "succeeded",
             "changes": ["Updated payment processor SDK"], "rollback_available": True},
            {"id": "deploy-002", "service": "checkout", "version": "v2.3.0",
             "previous_version": "v2.2.9", "timestamp": "2024-01-14T15:00:00Z",
             "author": "bob@example.com", "status": "succeeded",
             "changes": ["Bug fix for cart calculation"], "rollback_available": True},
            {"id": "deploy-003", "service": "inventory", "version": "v1.5.0",
             "previous_version": "v1.4.9", "timestamp": "2024-01-15T09:00:00Z",
             "author": "charlie@example.com", "status": "succeeded",
             "changes": ["Database migration"], "rollback_available": False},
        ],
        "runbooks": [
            {"id": "rb-001", "service": "checkout", "title": "High Latency Investigation",
             "symptoms": ["p95 latency spike", "slow responses", "timeout errors"],
             "severity": "high", "steps": ["Check recent deploys for changes"],
             "escalation": "Page database team if connection pool exhausted"},
            {"id": "rb-002", "service": "checkout", "title": "Payment Processing Failures",
             "symptoms": ["payment errors", "transaction failures"],
             "severity": "critical", "steps": ["Check Stripe status page"],
             "escalation": "Page payments team immediately"},
            {"id": "rb-003", "service": "inventory", "title": "Stock Sync Failures",
             "symptoms": ["inventory mismatch"], "severity": "high",
             "steps": ["Review sync job logs"], "escalation": "Contact warehouse ops team"},
        ],
    }
