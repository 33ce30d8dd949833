"""
Monitoring Domain Models

Immutable Pydantic V2 records for every monitoring domain (health, performance,
errors, feedback, maintenance, audit) plus the derived alert projection.
Containers replace these snapshots wholesale; nothing mutates them in place.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


HealthStatus = Literal["healthy", "degraded", "unhealthy", "maintenance"]
Severity = Literal["low", "medium", "high", "critical"]
FeedbackStatus = Literal["pending", "acknowledged", "in_progress", "resolved", "rejected", "duplicate"]
FeedbackType = Literal[
    "bug_report",
    "feature_request",
    "improvement_suggestion",
    "usability_issue",
    "content_feedback",
    "general_feedback",
]
MaintenanceStatus = Literal["scheduled", "in_progress", "completed", "cancelled", "extended"]
MaintenanceType = Literal["scheduled", "emergency", "security_update", "feature_update", "infrastructure"]
AlertSource = Literal["health", "error", "feedback", "maintenance"]

SEVERITY_RANK: Dict[str, int] = {"low": 0, "medium": 1, "high": 2, "critical": 3}


class MonitoringRecord(BaseModel):
    """Base for records received from the monitoring backend."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("*", mode="after")
    @classmethod
    def assume_utc(cls, value: Any) -> Any:
        # The backend sometimes sends naive ISO strings; they are UTC.
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


# Health

class ServiceHealthRecord(MonitoringRecord):
    """Latest health check result for one service, keyed by service_name."""
    service_name: str = Field(..., description="Unique service key")
    status: HealthStatus
    uptime_percentage: float = Field(..., ge=0, le=100)
    response_time_avg: float = Field(..., ge=0, description="Average response time in ms")
    error_rate: float = Field(..., ge=0, le=100, description="Error rate in percent")
    health_details: Dict[str, Any] = Field(default_factory=dict)
    last_health_check: datetime
    alert_threshold_exceeded: bool = False


class SystemHealthSnapshot(MonitoringRecord):
    """Health payload: every service plus the backend's own summary."""
    overall_status: str = "unknown"
    services: List[ServiceHealthRecord] = Field(default_factory=list)
    real_time_checks: Dict[str, bool] = Field(default_factory=dict)
    last_updated: Optional[datetime] = None
    alerts: List[ServiceHealthRecord] = Field(default_factory=list)


def calculate_overall_status(services: List[ServiceHealthRecord]) -> str:
    """Worst-of rollup used when the backend omits overall_status."""
    if not services:
        return "unknown"
    statuses = {service.status for service in services}
    if "unhealthy" in statuses:
        return "unhealthy"
    if "degraded" in statuses:
        return "degraded"
    return "healthy"


# Performance

class SlowPage(MonitoringRecord):
    url: str
    avg_time: float


class SlowEndpoint(MonitoringRecord):
    endpoint: str
    avg_time: float
    error_rate: float = 0


class HourlyCount(MonitoringRecord):
    hour: str
    count: int


class ErrorTypeCount(MonitoringRecord):
    message: str
    count: int


class PageViews(MonitoringRecord):
    page: str
    views: int


class PagePerformance(MonitoringRecord):
    avg_page_load_time: float = 0
    p95_page_load_time: float = 0
    total_page_views: int = 0
    slowest_pages: List[SlowPage] = Field(default_factory=list)


class ApiPerformance(MonitoringRecord):
    avg_response_time: float = 0
    p95_response_time: float = 0
    total_requests: int = 0
    error_rate: float = 0
    slowest_endpoints: List[SlowEndpoint] = Field(default_factory=list)


class ErrorSummary(MonitoringRecord):
    total_errors: int = 0
    unresolved_errors: int = 0
    error_rate_trend: List[HourlyCount] = Field(default_factory=list)
    top_error_types: List[ErrorTypeCount] = Field(default_factory=list)


class UserActivity(MonitoringRecord):
    active_users: int = 0
    total_sessions: int = 0
    avg_session_duration: float = 0
    top_pages: List[PageViews] = Field(default_factory=list)


class PerformanceSnapshot(MonitoringRecord):
    """Aggregate over a rolling window; identified only by its window parameters."""
    timestamp: datetime
    period_hours: int
    page_performance: PagePerformance = Field(default_factory=PagePerformance)
    api_performance: ApiPerformance = Field(default_factory=ApiPerformance)
    error_summary: ErrorSummary = Field(default_factory=ErrorSummary)
    user_activity: UserActivity = Field(default_factory=UserActivity)


# Errors

class ErrorReport(MonitoringRecord):
    """Client-side error capture. Resolution is terminal."""
    id: str
    error_message: str
    error_stack: Optional[str] = None
    component_stack: Optional[str] = None
    page_url: str = ""
    user_id: Optional[str] = None
    error_boundary_level: str = "component"
    timestamp: datetime
    is_resolved: bool = False
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolution_notes: Optional[str] = None


# Feedback

class FeedbackItem(MonitoringRecord):
    id: str
    user_id: str
    module: str
    feedback_type: FeedbackType
    rating: Optional[int] = Field(None, ge=1, le=5)
    title: str
    comment: str
    priority: Severity
    status: FeedbackStatus
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    resolution_notes: Optional[str] = None
    created_at: datetime


class FeedbackSubmission(BaseModel):
    """New feedback as submitted by a user; the backend assigns id and created_at."""
    user_id: str
    module: str
    feedback_type: FeedbackType
    rating: Optional[int] = Field(None, ge=1, le=5)
    title: str = Field(..., min_length=1)
    comment: str = ""
    priority: Optional[Severity] = None
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


def determine_feedback_priority(feedback_type: str, rating: Optional[int] = None) -> str:
    """Default priority for feedback submitted without one."""
    if feedback_type == "bug_report":
        return "high" if rating is not None and rating <= 2 else "medium"
    if feedback_type == "usability_issue":
        return "medium"
    return "low"


# Maintenance

class MaintenanceWindow(MonitoringRecord):
    id: str
    title: str
    description: str = ""
    maintenance_type: MaintenanceType = "scheduled"
    scheduled_start: datetime
    scheduled_end: datetime
    affected_services: List[str] = Field(default_factory=list)
    severity: Severity = "medium"
    status: MaintenanceStatus = "scheduled"
    user_groups: List[str] = Field(default_factory=lambda: ["all"])
    actual_start: Optional[datetime] = None
    actual_end: Optional[datetime] = None


class MaintenanceRequest(BaseModel):
    """Maintenance window to schedule. Presence of title/start/end is checked by the container."""
    title: Optional[str] = None
    description: str = ""
    maintenance_type: MaintenanceType = "scheduled"
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    affected_services: List[str] = Field(default_factory=list)
    severity: Severity = "medium"
    user_groups: List[str] = Field(default_factory=lambda: ["all"])


# Audit

class AuditEntry(MonitoringRecord):
    """Append-only audit record; read-only to this service."""
    id: str
    user_id: Optional[str] = None
    action_type: str
    action_name: str
    resource_type: str
    resource_id: Optional[str] = None
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    success: bool = True
    error_message: Optional[str] = None
    created_at: datetime


# Alerts

class Alert(BaseModel):
    """Derived, non-persisted alert. Resolution goes through the source domain."""
    model_config = ConfigDict(frozen=True)

    id: str
    source_type: AlertSource
    source_id: str = Field(..., description="Key of the underlying record in its domain")
    severity: Severity
    message: str
    timestamp: Optional[datetime] = None
    resolved: bool = False


class ExportBlob(BaseModel):
    """Serialized export ready to be offered as a download."""
    model_config = ConfigDict(frozen=True)

    filename: str
    content_type: str
    content: bytes
