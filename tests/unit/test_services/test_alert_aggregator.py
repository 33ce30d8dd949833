"""
Tests for alert derivation, ranking and summaries.
"""

from datetime import timedelta

import pytest

from models.monitoring import ErrorReport, FeedbackItem, MaintenanceWindow, ServiceHealthRecord
from services.alert_aggregator import derive_alerts, rank_alerts, summarize_alerts


@pytest.fixture
def service(service_payload):
    return lambda **kw: ServiceHealthRecord.model_validate(service_payload(**kw))


@pytest.fixture
def error(error_payload):
    return lambda **kw: ErrorReport.model_validate(error_payload(**kw))


@pytest.fixture
def feedback(feedback_payload):
    return lambda **kw: FeedbackItem.model_validate(feedback_payload(**kw))


@pytest.fixture
def maintenance(maintenance_payload):
    return lambda **kw: MaintenanceWindow.model_validate(maintenance_payload(**kw))


class TestDeriveAlerts:

    def test_unhealthy_service_and_application_error_are_both_critical(self, now, service, error):
        alerts = derive_alerts(
            [service(status="unhealthy")],
            [error(error_boundary_level="application", timestamp=(now - timedelta(hours=2)).isoformat())],
            [],
            [],
            now=now,
        )

        assert len(alerts) == 2
        assert {alert.severity for alert in alerts} == {"critical"}
        assert [alert.source_type for alert in alerts] == ["health", "error"]

    def test_maintenance_outside_window_does_not_alert(self, now, maintenance):
        far = maintenance(scheduled_start=(now + timedelta(hours=30)).isoformat(),
                          scheduled_end=(now + timedelta(hours=32)).isoformat())
        near = maintenance(scheduled_start=(now + timedelta(hours=10)).isoformat(), severity="medium")

        assert derive_alerts([], [], [], [far], now=now) == []

        alerts = derive_alerts([], [], [], [near], now=now)
        assert len(alerts) == 1
        assert alerts[0].severity == "medium"
        assert alerts[0].id == "maintenance-mw-1"

    def test_degraded_service_is_high(self, now, service):
        alerts = derive_alerts([service(), service(service_name="auth", status="degraded")], [], [], [], now=now)

        assert [(alert.id, alert.severity) for alert in alerts] == [("health-auth", "high")]
        assert alerts[0].message == "Service auth is degraded"

    def test_maintenance_status_service_alerts_high(self, now, service):
        alerts = derive_alerts([service(status="maintenance")], [], [], [], now=now)

        assert alerts[0].severity == "high"

    def test_error_rules(self, now, error):
        errors = [
            error(id="old", timestamp=(now - timedelta(hours=25)).isoformat()),
            error(id="resolved", is_resolved=True),
            error(id="component"),
        ]

        alerts = derive_alerts([], errors, [], [], now=now)

        assert [alert.source_id for alert in alerts] == ["component"]
        assert alerts[0].severity == "high"

    def test_long_error_message_is_truncated(self, now, error):
        message = "x" * 150

        alert = derive_alerts([], [error(error_message=message)], [], [], now=now)[0]

        assert alert.message == "Unresolved error: " + "x" * 100 + "..."

    def test_short_error_message_is_not_marked_truncated(self, now, error):
        alert = derive_alerts([], [error(error_message="Boom")], [], [], now=now)[0]

        assert alert.message == "Unresolved error: Boom"

    def test_feedback_rules(self, now, feedback):
        items = [
            feedback(id="high-pending"),
            feedback(id="critical-pending", priority="critical"),
            feedback(id="medium-pending", priority="medium"),
            feedback(id="high-acknowledged", status="acknowledged"),
        ]

        alerts = derive_alerts([], [], items, [], now=now)

        assert [(alert.source_id, alert.severity) for alert in alerts] == [
            ("high-pending", "high"),
            ("critical-pending", "critical"),
        ]

    def test_only_scheduled_maintenance_alerts(self, now, maintenance):
        windows = [
            maintenance(id="running", status="in_progress"),
            maintenance(id="cancelled", status="cancelled"),
            maintenance(id="overdue", scheduled_start=(now - timedelta(hours=1)).isoformat()),
        ]

        alerts = derive_alerts([], [], [], windows, now=now)

        assert [alert.source_id for alert in alerts] == ["overdue"]

    def test_derivation_is_pure(self, now, service, error, feedback, maintenance):
        inputs = ([service(status="unhealthy")], [error()], [feedback()], [maintenance()])

        first = derive_alerts(*inputs, now=now)
        second = derive_alerts(*inputs, now=now)

        assert first == second
        assert len(first) == 4
        assert inputs[1][0].is_resolved is False

    def test_empty_inputs(self, now):
        assert derive_alerts([], [], [], [], now=now) == []


class TestRankAndSummarize:

    def test_rank_by_severity_then_newest(self, now, service, error, feedback):
        alerts = derive_alerts(
            [service(service_name="auth", status="degraded", last_health_check=(now - timedelta(minutes=30)).isoformat())],
            [
                error(id="older", timestamp=(now - timedelta(hours=5)).isoformat()),
                error(id="newer", timestamp=(now - timedelta(hours=1)).isoformat(), error_boundary_level="application"),
            ],
            [feedback(priority="critical", created_at=(now - timedelta(hours=3)).isoformat())],
            [],
            now=now,
        )

        ranked = rank_alerts(alerts)

        assert [alert.id for alert in ranked] == ["error-newer", "feedback-fb-1", "health-auth", "error-older"]

    def test_summary_counts_every_severity(self, now, service, feedback):
        alerts = derive_alerts([service(status="unhealthy")], [], [feedback()], [], now=now)

        assert summarize_alerts(alerts) == {"critical": 1, "high": 1, "medium": 0, "low": 0}

    def test_summary_of_nothing(self):
        assert summarize_alerts([]) == {"critical": 0, "high": 0, "medium": 0, "low": 0}
