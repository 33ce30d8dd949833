"""
Shared fixtures for monitoring unit tests.

No network or Redis is needed: the backend client is an AsyncMock and
payload builders produce the dict shapes the monitoring backend returns.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from services.monitoring_client import MonitoringClient

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _iso(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def mock_client():
    """Monitoring client whose every action is an AsyncMock."""
    client = AsyncMock(spec=MonitoringClient)
    client.get_system_health.return_value = {"overall_status": "healthy", "services": []}
    client.get_performance_dashboard.return_value = {"timestamp": _iso(NOW), "period_hours": 24}
    client.get_error_reports.return_value = []
    client.get_feedback.return_value = []
    client.get_maintenance_notifications.return_value = []
    client.get_audit_trail.return_value = []
    return client


@pytest.fixture
def service_payload():
    def build(**overrides):
        payload = {
            "service_name": "api-gateway",
            "status": "healthy",
            "uptime_percentage": 99.9,
            "response_time_avg": 120.0,
            "error_rate": 0.1,
            "health_details": {},
            "last_health_check": _iso(NOW - timedelta(minutes=1)),
            "alert_threshold_exceeded": False,
        }
        payload.update(overrides)
        return payload
    return build


@pytest.fixture
def error_payload():
    def build(**overrides):
        payload = {
            "id": "err-1",
            "error_message": "TypeError: cannot read properties of undefined",
            "error_stack": "at render (app.js:10)",
            "component_stack": None,
            "page_url": "/admin/users",
            "user_id": "user-1",
            "error_boundary_level": "component",
            "timestamp": _iso(NOW - timedelta(hours=2)),
            "is_resolved": False,
        }
        payload.update(overrides)
        return payload
    return build


@pytest.fixture
def feedback_payload():
    def build(**overrides):
        payload = {
            "id": "fb-1",
            "user_id": "user-1",
            "module": "scheduling",
            "feedback_type": "bug_report",
            "rating": 2,
            "title": "Calendar does not load",
            "comment": "Spinner forever",
            "priority": "high",
            "status": "pending",
            "category": None,
            "tags": [],
            "created_at": _iso(NOW - timedelta(hours=3)),
        }
        payload.update(overrides)
        return payload
    return build


@pytest.fixture
def maintenance_payload():
    def build(**overrides):
        payload = {
            "id": "mw-1",
            "title": "Database upgrade",
            "description": "Postgres minor version upgrade",
            "maintenance_type": "infrastructure",
            "scheduled_start": _iso(NOW + timedelta(hours=10)),
            "scheduled_end": _iso(NOW + timedelta(hours=12)),
            "affected_services": ["database"],
            "severity": "high",
            "status": "scheduled",
            "user_groups": ["all"],
        }
        payload.update(overrides)
        return payload
    return build


@pytest.fixture
def audit_payload():
    def build(**overrides):
        payload = {
            "id": "audit-1",
            "user_id": "admin-1",
            "action_type": "update",
            "action_name": "update_feedback_status",
            "resource_type": "feedback",
            "resource_id": "fb-1",
            "old_values": {"status": "pending"},
            "new_values": {"status": "acknowledged"},
            "success": True,
            "created_at": _iso(NOW - timedelta(hours=1)),
        }
        payload.update(overrides)
        return payload
    return build
