"""
Monitoring Backend Client

Thin async wrapper over the remote monitoring backend. Every operation is a
POST of {"action": <name>, ...params} to one function URL. Transport failures
become NetworkError, structured backend failures become BackendError with the
backend's message passed through verbatim. Nothing here retries or caches.
"""

import asyncio
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

import aiohttp

from utils.logging import get_logger, log_external_api_call

logger = get_logger("monitoring-client")


class MonitoringError(Exception):
    """Base class for monitoring failures surfaced to the dashboard."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NetworkError(MonitoringError):
    """The monitoring backend could not be reached."""
    pass


class BackendError(MonitoringError):
    """The monitoring backend answered with a structured failure."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ValidationError(MonitoringError):
    """Caller input was rejected before any network call."""
    pass


def _iso(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _records(data: Any, key: str) -> List[Dict[str, Any]]:
    """Accept either a bare list or {key: [...]} from list actions."""
    if data is None:
        return []
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return data.get(key) or []
    raise BackendError(f"Unexpected response shape for {key}")


def _created_id(data: Any, key: str) -> str:
    """Pull the id of a newly created record out of a create response."""
    if not isinstance(data, dict) or data.get(key) is None:
        raise BackendError(f"Monitoring backend response is missing {key}")
    return str(data[key])


class MonitoringClient:
    """Request/response access to the monitoring backend, one method per action."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url
        self._api_key = api_key
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {"Content-Type": "application/json"}
            if self._api_key:
                headers["Authorization"] = f"Bearer {self._api_key}"
                headers["apikey"] = self._api_key
            self._session = aiohttp.ClientSession(timeout=self._timeout, headers=headers)
            self._owns_session = True
        return self._session

    async def close(self):
        """Close the HTTP session if this client created it."""
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def invoke(self, action: str, **params: Any) -> Any:
        """
        Invoke one backend action.

        Args:
            action: Backend action name (e.g. "get_system_health")
            **params: Action parameters; None values are omitted

        Returns:
            Decoded JSON response body

        Raises:
            NetworkError: Transport failure or timeout
            BackendError: Non-2xx status or a body carrying an "error" key
        """
        payload = {"action": action}
        payload.update({key: _iso(value) for key, value in params.items() if value is not None})

        session = await self._get_session()
        start_time = time.time()
        try:
            async with session.post(self.base_url, json=payload) as response:
                status = response.status
                try:
                    body = await response.json(content_type=None)
                except ValueError:
                    body = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(
                f"Monitoring backend unreachable for {action}",
                extra={"data": {"action": action, "error": str(e) or type(e).__name__}}
            )
            raise NetworkError(str(e) or f"Network failure during {action}") from e

        log_external_api_call(
            service="monitoring-backend",
            endpoint=action,
            status_code=status,
            duration_ms=round((time.time() - start_time) * 1000, 1),
            logger=logger,
        )

        if isinstance(body, dict) and body.get("error"):
            error = body["error"]
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise BackendError(message, status_code=status)
        if status >= 400:
            raise BackendError(
                body if isinstance(body, str) and body else f"HTTP {status} from monitoring backend",
                status_code=status,
            )
        return body

    # Health

    async def get_system_health(self) -> Dict[str, Any]:
        return await self.invoke("get_system_health")

    async def update_service_health(
        self,
        service_name: str,
        status: str,
        uptime_percentage: float,
        response_time_avg: float,
        error_rate: float,
        health_details: Optional[Dict[str, Any]] = None,
    ) -> None:
        await self.invoke(
            "update_service_health",
            serviceName=service_name,
            status=status,
            uptimePercentage=uptime_percentage,
            responseTimeAvg=response_time_avg,
            errorRate=error_rate,
            healthDetails=health_details,
        )

    async def check_api_endpoints(self) -> Dict[str, Any]:
        return await self.invoke("check_api_endpoints")

    async def generate_health_report(self, hours_back: int = 24, include_metrics: bool = True) -> Dict[str, Any]:
        return await self.invoke("generate_health_report", hoursBack=hours_back, includeMetrics=include_metrics)

    # Performance

    async def get_performance_dashboard(self, hours_back: int = 24) -> Dict[str, Any]:
        return await self.invoke("get_performance_dashboard", hoursBack=hours_back)

    # Errors

    async def get_error_reports(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        is_resolved: Optional[bool] = None,
        limit: int = 50,
    ) -> List[Dict[str, Any]]:
        data = await self.invoke(
            "get_error_reports",
            startDate=start_date,
            endDate=end_date,
            isResolved=is_resolved,
            limit=limit,
        )
        return _records(data, "error_reports")

    async def track_error(
        self,
        error_message: str,
        error_stack: Optional[str] = None,
        component_stack: Optional[str] = None,
        page_url: Optional[str] = None,
        user_id: Optional[str] = None,
        device_info: Optional[Dict[str, Any]] = None,
        error_boundary_level: Optional[str] = None,
        additional_info: Optional[Dict[str, Any]] = None,
    ) -> str:
        data = await self.invoke(
            "track_error",
            errorMessage=error_message,
            errorStack=error_stack,
            componentStack=component_stack,
            pageUrl=page_url,
            userId=user_id,
            deviceInfo=device_info,
            errorBoundaryLevel=error_boundary_level,
            additionalInfo=additional_info,
        )
        return _created_id(data, "errorId")

    async def resolve_error(self, error_id: str, resolution_notes: str) -> None:
        await self.invoke("resolve_error", errorId=error_id, resolutionNotes=resolution_notes)

    # Feedback

    async def get_feedback(
        self,
        module: Optional[str] = None,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        limit: int = 50,
    ) -> List[Dict[str, Any]]:
        data = await self.invoke("get_feedback", module=module, status=status, priority=priority, limit=limit)
        return _records(data, "feedback")

    async def submit_feedback(self, feedback: Dict[str, Any]) -> str:
        data = await self.invoke(
            "submit_feedback",
            userId=feedback.get("user_id"),
            module=feedback.get("module"),
            feedbackType=feedback.get("feedback_type"),
            rating=feedback.get("rating"),
            title=feedback.get("title"),
            comment=feedback.get("comment"),
            priority=feedback.get("priority"),
            category=feedback.get("category"),
            tags=feedback.get("tags"),
        )
        return _created_id(data, "feedbackId")

    async def update_feedback_status(
        self,
        feedback_id: str,
        status: str,
        resolution_notes: Optional[str] = None,
    ) -> None:
        await self.invoke(
            "update_feedback_status",
            feedbackId=feedback_id,
            status=status,
            resolutionNotes=resolution_notes,
        )

    # Maintenance

    async def get_maintenance_notifications(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        status: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        data = await self.invoke(
            "get_maintenance_notifications",
            startDate=start_date,
            endDate=end_date,
            status=status,
        )
        return _records(data, "notifications")

    async def schedule_maintenance(self, window: Dict[str, Any]) -> str:
        data = await self.invoke(
            "schedule_maintenance",
            title=window.get("title"),
            description=window.get("description"),
            maintenanceType=window.get("maintenance_type"),
            scheduledStart=window.get("scheduled_start"),
            scheduledEnd=window.get("scheduled_end"),
            affectedServices=window.get("affected_services"),
            severity=window.get("severity"),
            userGroups=window.get("user_groups"),
        )
        return _created_id(data, "notificationId")

    async def update_maintenance_status(
        self,
        notification_id: str,
        status: str,
        actual_start: Optional[datetime] = None,
        actual_end: Optional[datetime] = None,
    ) -> None:
        await self.invoke(
            "update_maintenance_status",
            notificationId=notification_id,
            status=status,
            actualStart=actual_start,
            actualEnd=actual_end,
        )

    # Audit

    async def get_audit_trail(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        action_type: Optional[str] = None,
        user_id: Optional[str] = None,
        resource_type: Optional[str] = None,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        data = await self.invoke(
            "get_audit_trail",
            startDate=start_date,
            endDate=end_date,
            actionType=action_type,
            userId=user_id,
            resourceType=resource_type,
            limit=limit,
        )
        return _records(data, "audit_trail")
