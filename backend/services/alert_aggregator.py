"""
Alert Aggregator

Pure projection from the health, error, feedback and maintenance snapshots to a
unified alert list. Holds no state of its own; given the same snapshots and the
same `now` it always returns the same alerts.
"""

from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from models.monitoring import (
    SEVERITY_RANK,
    Alert,
    ErrorReport,
    FeedbackItem,
    MaintenanceWindow,
    ServiceHealthRecord,
)

ALERT_WINDOW = timedelta(hours=24)
MESSAGE_PREVIEW_CHARS = 100


def _health_alerts(services: Iterable[ServiceHealthRecord]) -> List[Alert]:
    return [
        Alert(
            id=f"health-{service.service_name}",
            source_type="health",
            source_id=service.service_name,
            severity="critical" if service.status == "unhealthy" else "high",
            message=f"Service {service.service_name} is {service.status}",
            timestamp=service.last_health_check,
        )
        for service in services
        if service.status != "healthy"
    ]


def _error_alerts(errors: Iterable[ErrorReport], now: datetime, window: timedelta) -> List[Alert]:
    alerts = []
    cutoff = now - window
    for report in errors:
        if report.is_resolved or report.timestamp < cutoff:
            continue
        preview = report.error_message[:MESSAGE_PREVIEW_CHARS]
        if len(report.error_message) > MESSAGE_PREVIEW_CHARS:
            preview += "..."
        alerts.append(Alert(
            id=f"error-{report.id}",
            source_type="error",
            source_id=report.id,
            severity="critical" if report.error_boundary_level == "application" else "high",
            message=f"Unresolved error: {preview}",
            timestamp=report.timestamp,
        ))
    return alerts


def _feedback_alerts(feedback: Iterable[FeedbackItem]) -> List[Alert]:
    return [
        Alert(
            id=f"feedback-{item.id}",
            source_type="feedback",
            source_id=item.id,
            severity=item.priority,
            message=f"{item.priority} priority feedback: {item.title}",
            timestamp=item.created_at,
        )
        for item in feedback
        if item.status == "pending" and item.priority in ("high", "critical")
    ]


def _maintenance_alerts(windows: Iterable[MaintenanceWindow], now: datetime, window: timedelta) -> List[Alert]:
    horizon = now + window
    return [
        Alert(
            id=f"maintenance-{maintenance.id}",
            source_type="maintenance",
            source_id=maintenance.id,
            severity=maintenance.severity,
            message=f"Scheduled maintenance: {maintenance.title}",
            timestamp=maintenance.scheduled_start,
        )
        for maintenance in windows
        # Overdue-but-still-scheduled windows keep alerting until someone moves them on
        if maintenance.status == "scheduled" and maintenance.scheduled_start <= horizon
    ]


def derive_alerts(
    health: Iterable[ServiceHealthRecord],
    errors: Iterable[ErrorReport],
    feedback: Iterable[FeedbackItem],
    maintenance: Iterable[MaintenanceWindow],
    now: Optional[datetime] = None,
    window: timedelta = ALERT_WINDOW,
) -> List[Alert]:
    """
    Derive alerts from the four alerting domains.

    Rules are applied per source with no cross-source de-duplication. Output
    order is health, error, feedback, maintenance; use `rank_alerts` for a
    severity-ordered feed.

    Args:
        health: Current service health records
        errors: Current error reports
        feedback: Current feedback items
        maintenance: Current maintenance windows
        now: Reference time (defaults to the current UTC time)
        window: Look-back for errors and look-ahead for maintenance

    Returns:
        List of unresolved alerts
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    return (
        _health_alerts(health)
        + _error_alerts(errors, now, window)
        + _feedback_alerts(feedback)
        + _maintenance_alerts(maintenance, now, window)
    )


def rank_alerts(alerts: Iterable[Alert]) -> List[Alert]:
    """Most severe first; newest first within a severity."""
    oldest = datetime.min.replace(tzinfo=timezone.utc)
    by_time = sorted(alerts, key=lambda alert: alert.timestamp or oldest, reverse=True)
    return sorted(by_time, key=lambda alert: SEVERITY_RANK[alert.severity], reverse=True)


def summarize_alerts(alerts: Iterable[Alert]) -> Dict[str, int]:
    """Alert counts per severity, always including every level."""
    counts = Counter(alert.severity for alert in alerts)
    return {severity: counts.get(severity, 0) for severity in ("critical", "high", "medium", "low")}
