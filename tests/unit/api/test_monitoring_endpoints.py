"""
Tests for monitoring API endpoints: routing, payloads and error status mapping.
"""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.monitoring_endpoints import router
from services.dashboard import MonitoringDashboard
from services.monitoring_client import BackendError, NetworkError


async def idle_subscribe(channel):
    return
    yield


@pytest.fixture
def dashboard(mock_client):
    return MonitoringDashboard(mock_client, subscribe_fn=idle_subscribe, auto_refresh=False)


@pytest.fixture
def app(dashboard):
    """Create test FastAPI app with the monitoring router and a preloaded dashboard."""
    test_app = FastAPI()
    test_app.include_router(router)
    test_app.state.dashboard = dashboard
    return test_app


@pytest.fixture
def client(app):
    return TestClient(app)


def recent(hours=1):
    return (datetime.now(timezone.utc) - timedelta(hours=hours)).isoformat()


class TestReadEndpoints:

    def test_dashboard_snapshot(self, client, mock_client, service_payload):
        mock_client.get_system_health.return_value = {"services": [service_payload(status="unhealthy")]}
        assert client.post("/api/monitoring/refresh").status_code == 200

        response = client.get("/api/monitoring/dashboard")

        assert response.status_code == 200
        data = response.json()
        assert data["system_health"]["data"]["overall_status"] == "unhealthy"
        assert data["alerts"]["summary"]["critical"] == 1
        assert data["auto_refresh"] is False

    def test_refresh_reports_per_domain_failures(self, client, mock_client):
        mock_client.get_audit_trail.side_effect = BackendError("permission denied")

        response = client.post("/api/monitoring/refresh")

        assert response.status_code == 200
        data = response.json()
        assert data["results"]["audit"] is False
        assert data["results"]["errors"] is True
        assert data["errors"] == {"audit": "permission denied"}

    def test_domain_view_with_filters_refetches(self, client, mock_client, error_payload):
        mock_client.get_error_reports.return_value = [error_payload()]

        response = client.get("/api/monitoring/errors", params={"is_resolved": "false", "limit": 5})

        assert response.status_code == 200
        assert response.json()["data"][0]["id"] == "err-1"
        mock_client.get_error_reports.assert_awaited_once_with(None, None, False, 5)

    def test_filtered_read_does_not_change_shared_alerts(self, client, dashboard, mock_client, error_payload):
        mock_client.get_error_reports.return_value = [error_payload(timestamp=recent())]
        client.post("/api/monitoring/refresh")
        assert [alert["id"] for alert in client.get("/api/monitoring/alerts").json()["alerts"]] == ["error-err-1"]

        mock_client.get_error_reports.return_value = []
        filtered = client.get("/api/monitoring/errors", params={"is_resolved": "true"})
        assert filtered.json()["data"] == []

        mock_client.get_error_reports.return_value = [error_payload(timestamp=recent())]
        client.post("/api/monitoring/refresh")

        assert [alert["id"] for alert in client.get("/api/monitoring/alerts").json()["alerts"]] == ["error-err-1"]
        assert mock_client.get_error_reports.await_args.args == (None, None, None, 50)
        assert dashboard.errors.filters == {"limit": 50}

    def test_domain_view_failure_is_reported_in_view(self, client, mock_client):
        mock_client.get_feedback.side_effect = NetworkError("Connection refused")

        response = client.get("/api/monitoring/feedback", params={"status": "pending"})

        assert response.status_code == 200
        assert response.json()["error"] == "Connection refused"
        assert response.json()["data"] == []

    def test_alert_feed(self, client, mock_client, feedback_payload):
        mock_client.get_feedback.return_value = [feedback_payload(priority="critical")]
        client.post("/api/monitoring/refresh")

        response = client.get("/api/monitoring/alerts")

        assert response.status_code == 200
        assert response.json()["alerts"][0]["id"] == "feedback-fb-1"
        assert response.json()["summary"]["critical"] == 1

    def test_missing_dashboard_is_503(self):
        bare = FastAPI()
        bare.include_router(router)

        response = TestClient(bare).get("/api/monitoring/dashboard")

        assert response.status_code == 503


class TestWriteEndpoints:

    def test_resolve_error(self, client, mock_client, error_payload):
        mock_client.get_error_reports.return_value = [error_payload()]
        client.post("/api/monitoring/refresh")

        response = client.post("/api/monitoring/errors/err-1/resolve", json={"resolution_notes": "Fixed in 1.4.2"})

        assert response.status_code == 200
        mock_client.resolve_error.assert_awaited_once_with("err-1", "Fixed in 1.4.2")

    def test_resolve_error_without_notes_is_400(self, client, mock_client, error_payload):
        mock_client.get_error_reports.return_value = [error_payload()]
        client.post("/api/monitoring/refresh")

        response = client.post("/api/monitoring/errors/err-1/resolve", json={"resolution_notes": ""})

        assert response.status_code == 400
        assert "notes" in response.json()["detail"]

    def test_backend_failure_is_502(self, client, mock_client, error_payload):
        mock_client.get_error_reports.return_value = [error_payload()]
        client.post("/api/monitoring/refresh")
        mock_client.resolve_error.side_effect = BackendError("Error report not found")

        response = client.post("/api/monitoring/errors/err-1/resolve", json={"resolution_notes": "x"})

        assert response.status_code == 502
        assert response.json()["detail"] == "Error report not found"

    def test_network_failure_is_503(self, client, mock_client):
        mock_client.check_api_endpoints.side_effect = NetworkError("timed out")

        response = client.post("/api/monitoring/health/check-endpoints")

        assert response.status_code == 503

    def test_illegal_feedback_transition_is_400(self, client, mock_client, feedback_payload):
        mock_client.get_feedback.return_value = [feedback_payload()]
        client.post("/api/monitoring/refresh")

        response = client.patch("/api/monitoring/feedback/fb-1/status", json={"status": "resolved"})

        assert response.status_code == 400
        assert "pending -> resolved" in response.json()["detail"]

    def test_submit_feedback(self, client, mock_client):
        mock_client.submit_feedback.return_value = "fb-7"

        response = client.post("/api/monitoring/feedback", json={
            "user_id": "user-3",
            "module": "reports",
            "feedback_type": "usability_issue",
            "title": "Filter resets on reload",
        })

        assert response.status_code == 201
        assert response.json() == {"id": "fb-7"}
        assert mock_client.submit_feedback.await_args.args[0]["priority"] == "medium"

    def test_schedule_maintenance_validation(self, client, mock_client):
        response = client.post("/api/monitoring/maintenance", json={"title": "No dates"})

        assert response.status_code == 400
        mock_client.schedule_maintenance.assert_not_called()

    def test_update_service_health(self, client, mock_client):
        response = client.put("/api/monitoring/health/services/auth", json={
            "status": "degraded",
            "uptime_percentage": 98.0,
            "response_time_avg": 900.0,
            "error_rate": 3.5,
        })

        assert response.status_code == 200
        mock_client.update_service_health.assert_awaited_once_with("auth", "degraded", 98.0, 900.0, 3.5, None)

    def test_resolve_alert(self, client, mock_client, error_payload):
        mock_client.get_error_reports.return_value = [error_payload(timestamp=recent())]
        client.post("/api/monitoring/refresh")

        response = client.post("/api/monitoring/alerts/error-err-1/resolve", json={"resolution_notes": "Reverted"})

        assert response.status_code == 200
        mock_client.resolve_error.assert_awaited_once_with("err-1", "Reverted")

    def test_auto_refresh_toggle(self, client, dashboard):
        response = client.put("/api/monitoring/auto-refresh", json={"enabled": True})

        assert response.status_code == 200
        assert response.json() == {"auto_refresh": True}
        assert dashboard.auto_refresh is True


class TestExportEndpoint:

    def test_csv_download(self, client, mock_client, audit_payload):
        mock_client.get_audit_trail.return_value = [audit_payload()]

        response = client.get(
            "/api/monitoring/export/audit_trail",
            params={"start": "2025-05-01T00:00:00Z", "end": "2025-06-01T00:00:00Z", "format": "csv"},
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert 'filename="audit_trail_export_' in response.headers["content-disposition"]
        assert response.text.splitlines()[0].startswith('"id","user_id"')

    def test_unsupported_domain_is_400(self, client):
        response = client.get(
            "/api/monitoring/export/health",
            params={"start": "2025-05-01T00:00:00Z", "end": "2025-06-01T00:00:00Z"},
        )

        assert response.status_code == 400
        assert "Unsupported export domain" in response.json()["detail"]

    def test_unsupported_format_is_rejected(self, client):
        response = client.get(
            "/api/monitoring/export/errors",
            params={"start": "2025-05-01T00:00:00Z", "end": "2025-06-01T00:00:00Z", "format": "xml"},
        )

        assert response.status_code == 422
