"""
Monitoring API Endpoints

Exposes the monitoring dashboard to the admin frontend: the combined snapshot,
per-domain views, the alert feed, every mutating operation and export downloads.
"""

from datetime import datetime
from typing import Any, Dict, NoReturn, Optional

from fastapi import APIRouter, HTTPException, Query, Request, Response

from models.dashboard import (
    AlertFeed,
    AutoRefreshRequest,
    AutoRefreshResponse,
    CreatedResponse,
    DashboardSnapshot,
    DomainView,
    FeedbackStatusRequest,
    MaintenanceStatusRequest,
    RefreshResponse,
    ResolveAlertRequest,
    ResolveErrorRequest,
    ServiceHealthUpdateRequest,
    TrackErrorRequest,
)
from models.monitoring import FeedbackSubmission, MaintenanceRequest
from services.alert_aggregator import summarize_alerts
from services.dashboard import MonitoringDashboard, domain_view
from services.domain_state import DomainState
from services.export_engine import EXPORTABLE_DOMAINS
from services.monitoring_client import BackendError, MonitoringError, NetworkError, ValidationError
from utils.logging import get_logger

logger = get_logger("monitoring-api")
router = APIRouter(prefix="/api/monitoring", tags=["System Monitoring"])


def get_dashboard(request: Request) -> MonitoringDashboard:
    dashboard = getattr(request.app.state, "dashboard", None)
    if dashboard is None:
        raise HTTPException(status_code=503, detail="Monitoring dashboard is not running")
    return dashboard


def _raise_http(exc: MonitoringError) -> NoReturn:
    """Translate the monitoring error taxonomy into HTTP status codes."""
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=400, detail=exc.message)
    if isinstance(exc, NetworkError):
        raise HTTPException(status_code=503, detail=f"Monitoring backend unreachable: {exc.message}")
    if isinstance(exc, BackendError):
        raise HTTPException(status_code=502, detail=exc.message)
    raise HTTPException(status_code=500, detail=exc.message)


async def filtered_view(state: DomainState, filters: Dict[str, Any]) -> DomainView:
    """One caller's filtered read; the shared snapshot and its alerts stay on the defaults."""
    try:
        records = await state.query(**filters)
    except MonitoringError as e:
        logger.warning(
            f"Filtered {state.domain} read failed",
            extra={"data": {"domain": state.domain, "filters": list(filters), "error": e.message}}
        )
        empty = state.empty() if callable(state.empty) else state.empty
        return DomainView(domain=state.domain, data=empty, error=e.message)
    return DomainView(domain=state.domain, data=records, last_fetched=datetime.now().astimezone())


@router.get("/dashboard", response_model=DashboardSnapshot)
async def get_dashboard_snapshot(request: Request):
    """Current state of every domain plus the derived alert feed."""
    return get_dashboard(request).snapshot()


@router.get("/alerts", response_model=AlertFeed)
async def get_alerts(request: Request):
    alerts = get_dashboard(request).alerts
    return AlertFeed(alerts=alerts, summary=summarize_alerts(alerts))


@router.post("/alerts/{alert_id}/resolve", response_model=AlertFeed)
async def resolve_alert(alert_id: str, body: ResolveAlertRequest, request: Request):
    """Resolve an alert through the domain record it was derived from."""
    dashboard = get_dashboard(request)
    try:
        await dashboard.resolve_alert(alert_id, body.resolution_notes)
    except MonitoringError as e:
        _raise_http(e)
    alerts = dashboard.alerts
    return AlertFeed(alerts=alerts, summary=summarize_alerts(alerts))


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_all(request: Request):
    """Refresh every domain; failures are reported per domain."""
    dashboard = get_dashboard(request)
    results = await dashboard.refresh_all()
    errors = {
        domain: dashboard.states[domain].error
        for domain, ok in results.items()
        if not ok and dashboard.states[domain].error
    }
    return RefreshResponse(results=results, errors=errors)


@router.put("/auto-refresh", response_model=AutoRefreshResponse)
async def set_auto_refresh(body: AutoRefreshRequest, request: Request):
    dashboard = get_dashboard(request)
    await dashboard.set_auto_refresh(body.enabled)
    return AutoRefreshResponse(auto_refresh=dashboard.auto_refresh)


# Health

@router.get("/health", response_model=DomainView)
async def get_system_health(request: Request):
    return domain_view(get_dashboard(request).system_health)


@router.put("/health/services/{service_name}", response_model=DomainView)
async def update_service_health(service_name: str, body: ServiceHealthUpdateRequest, request: Request):
    state = get_dashboard(request).system_health
    try:
        await state.update_service_health(
            service_name,
            body.status,
            body.uptime_percentage,
            body.response_time_avg,
            body.error_rate,
            body.health_details,
        )
    except MonitoringError as e:
        _raise_http(e)
    return domain_view(state)


@router.post("/health/check-endpoints")
async def check_api_endpoints(request: Request):
    """Run live probes against the backend's own API endpoints."""
    try:
        return await get_dashboard(request).system_health.check_api_endpoints()
    except MonitoringError as e:
        _raise_http(e)


# Performance

@router.get("/performance", response_model=DomainView)
async def get_performance(request: Request, hours_back: Optional[int] = Query(None, gt=0)):
    state = get_dashboard(request).performance
    if hours_back is not None:
        return await filtered_view(state, {"hours_back": hours_back})
    return domain_view(state)


@router.get("/performance/report")
async def generate_report(
    request: Request,
    hours_back: int = Query(24, gt=0),
    include_metrics: bool = True,
):
    try:
        return await get_dashboard(request).performance.generate_report(hours_back, include_metrics)
    except MonitoringError as e:
        _raise_http(e)


# Errors

@router.get("/errors", response_model=DomainView)
async def get_errors(
    request: Request,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    is_resolved: Optional[bool] = None,
    limit: Optional[int] = Query(None, gt=0),
):
    state = get_dashboard(request).errors
    filters = {
        key: value for key, value in {
            "start_date": start_date,
            "end_date": end_date,
            "is_resolved": is_resolved,
            "limit": limit,
        }.items() if value is not None
    }
    if filters:
        return await filtered_view(state, filters)
    return domain_view(state)


@router.post("/errors", response_model=CreatedResponse, status_code=201)
async def track_error(body: TrackErrorRequest, request: Request):
    try:
        error_id = await get_dashboard(request).errors.track_error(**body.model_dump())
    except MonitoringError as e:
        _raise_http(e)
    return CreatedResponse(id=error_id)


@router.post("/errors/{error_id}/resolve", response_model=DomainView)
async def resolve_error(error_id: str, body: ResolveErrorRequest, request: Request):
    state = get_dashboard(request).errors
    try:
        await state.resolve_error(error_id, body.resolution_notes)
    except MonitoringError as e:
        _raise_http(e)
    return domain_view(state)


# Feedback

@router.get("/feedback", response_model=DomainView)
async def get_feedback(
    request: Request,
    module: Optional[str] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    limit: Optional[int] = Query(None, gt=0),
):
    state = get_dashboard(request).feedback
    filters = {
        key: value for key, value in {
            "module": module,
            "status": status,
            "priority": priority,
            "limit": limit,
        }.items() if value is not None
    }
    if filters:
        return await filtered_view(state, filters)
    return domain_view(state)


@router.post("/feedback", response_model=CreatedResponse, status_code=201)
async def submit_feedback(body: FeedbackSubmission, request: Request):
    try:
        feedback_id = await get_dashboard(request).feedback.submit_feedback(body)
    except MonitoringError as e:
        _raise_http(e)
    return CreatedResponse(id=feedback_id)


@router.patch("/feedback/{feedback_id}/status", response_model=DomainView)
async def update_feedback_status(feedback_id: str, body: FeedbackStatusRequest, request: Request):
    state = get_dashboard(request).feedback
    try:
        await state.update_feedback_status(feedback_id, body.status, body.resolution_notes)
    except MonitoringError as e:
        _raise_http(e)
    return domain_view(state)


# Maintenance

@router.get("/maintenance", response_model=DomainView)
async def get_maintenance(
    request: Request,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    status: Optional[str] = None,
):
    state = get_dashboard(request).maintenance
    filters = {
        key: value for key, value in {
            "start_date": start_date,
            "end_date": end_date,
            "status": status,
        }.items() if value is not None
    }
    if filters:
        return await filtered_view(state, filters)
    return domain_view(state)


@router.post("/maintenance", response_model=CreatedResponse, status_code=201)
async def schedule_maintenance(body: MaintenanceRequest, request: Request):
    try:
        notification_id = await get_dashboard(request).maintenance.schedule_notification(body)
    except MonitoringError as e:
        _raise_http(e)
    return CreatedResponse(id=notification_id)


@router.patch("/maintenance/{notification_id}/status", response_model=DomainView)
async def update_maintenance_status(notification_id: str, body: MaintenanceStatusRequest, request: Request):
    state = get_dashboard(request).maintenance
    try:
        await state.update_notification_status(notification_id, body.status, body.actual_start, body.actual_end)
    except MonitoringError as e:
        _raise_http(e)
    return domain_view(state)


# Audit

@router.get("/audit", response_model=DomainView)
async def get_audit_trail(
    request: Request,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    action_type: Optional[str] = None,
    user_id: Optional[str] = None,
    resource_type: Optional[str] = None,
    limit: Optional[int] = Query(None, gt=0),
):
    state = get_dashboard(request).audit
    filters = {
        key: value for key, value in {
            "start_date": start_date,
            "end_date": end_date,
            "action_type": action_type,
            "user_id": user_id,
            "resource_type": resource_type,
            "limit": limit,
        }.items() if value is not None
    }
    if filters:
        return await filtered_view(state, filters)
    return domain_view(state)


# Export

@router.get("/export/{domain}")
async def export_data(
    domain: str,
    request: Request,
    start: datetime,
    end: datetime,
    format: str = Query("json", pattern="^(json|csv)$"),
):
    """
    Download a domain's records for [start, end] as JSON or CSV.

    Supported domains: errors, feedback, audit_trail, performance, maintenance.
    """
    try:
        blob = await get_dashboard(request).export(domain, start, end, format)
    except MonitoringError as e:
        if isinstance(e, ValidationError) and domain not in EXPORTABLE_DOMAINS:
            logger.warning(f"Rejected export of unsupported domain: {domain}")
        _raise_http(e)

    return Response(
        content=blob.content,
        media_type=blob.content_type,
        headers={"Content-Disposition": f'attachment; filename="{blob.filename}"'},
    )
