"""
Monitoring Dashboard API Models

Pydantic V2 request and response models for the monitoring endpoints.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from models.monitoring import Alert, FeedbackStatus, HealthStatus, MaintenanceStatus


class DomainView(BaseModel):
    """One domain container as seen by the presentation layer."""
    domain: str
    data: Any = None
    loading: bool = False
    error: Optional[str] = Field(None, description="Last failure message for this domain, if any")
    last_fetched: Optional[datetime] = None


class AlertFeed(BaseModel):
    alerts: List[Alert]
    summary: Dict[str, int] = Field(..., description="Alert count per severity")


class DashboardSnapshot(BaseModel):
    """Everything the monitoring page renders, in one payload."""
    system_health: DomainView
    performance: DomainView
    errors: DomainView
    feedback: DomainView
    maintenance: DomainView
    audit: DomainView
    alerts: AlertFeed
    auto_refresh: bool


class RefreshResponse(BaseModel):
    results: Dict[str, bool] = Field(..., description="Per-domain refresh outcome")
    errors: Dict[str, str] = Field(default_factory=dict, description="Failure messages for domains that failed")


class AutoRefreshRequest(BaseModel):
    enabled: bool


class AutoRefreshResponse(BaseModel):
    auto_refresh: bool


class ServiceHealthUpdateRequest(BaseModel):
    status: HealthStatus
    uptime_percentage: float
    response_time_avg: float
    error_rate: float
    health_details: Optional[Dict[str, Any]] = None


class TrackErrorRequest(BaseModel):
    error_message: str
    error_stack: Optional[str] = None
    component_stack: Optional[str] = None
    page_url: Optional[str] = None
    user_id: Optional[str] = None
    device_info: Optional[Dict[str, Any]] = None
    error_boundary_level: Optional[str] = None
    additional_info: Optional[Dict[str, Any]] = None


class ResolveErrorRequest(BaseModel):
    resolution_notes: str


class FeedbackStatusRequest(BaseModel):
    status: FeedbackStatus
    resolution_notes: Optional[str] = None


class MaintenanceStatusRequest(BaseModel):
    status: MaintenanceStatus
    actual_start: Optional[datetime] = None
    actual_end: Optional[datetime] = None


class ResolveAlertRequest(BaseModel):
    resolution_notes: Optional[str] = None


class CreatedResponse(BaseModel):
    id: str
