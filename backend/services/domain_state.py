"""
Domain State Containers

Each container holds {data, loading, error} for one monitoring domain and owns
that domain's mutating operations. Snapshots are replaced in a single
assignment, never patched. Every mutation writes through to the backend and
then re-fetches its own domain instead of updating local state optimistically.
"""

from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, FrozenSet, List, Optional, Set, Tuple, Union

from models.monitoring import (
    ErrorReport,
    FeedbackItem,
    FeedbackSubmission,
    MaintenanceRequest,
    MaintenanceWindow,
    ServiceHealthRecord,
    SystemHealthSnapshot,
    determine_feedback_priority,
)
from services.fetchers import DomainFetcher
from services.monitoring_client import MonitoringClient, MonitoringError, ValidationError
from utils.logging import get_logger

logger = get_logger("domain-state")


FEEDBACK_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "pending": frozenset({"acknowledged", "rejected"}),
    "acknowledged": frozenset({"in_progress", "rejected"}),
    "in_progress": frozenset({"resolved", "rejected"}),
    "resolved": frozenset(),
    "rejected": frozenset(),
    "duplicate": frozenset(),
}

# "extended" re-opens the window, so it behaves like in_progress
MAINTENANCE_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "scheduled": frozenset({"in_progress", "cancelled"}),
    "in_progress": frozenset({"completed", "extended"}),
    "extended": frozenset({"completed", "extended"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
}

HEALTH_STATUSES = frozenset({"healthy", "degraded", "unhealthy", "maintenance"})


class DomainState:
    """Reactive holder of one domain's last-known snapshot."""

    domain: str = ""
    empty: Any = None

    def __init__(
        self,
        fetcher: DomainFetcher,
        client: Optional[MonitoringClient] = None,
        default_filters: Optional[Dict[str, Any]] = None,
    ):
        self.fetcher = fetcher
        self.client = client or fetcher.client
        self._default_filters = dict(default_filters or {})
        self._filters = dict(self._default_filters)
        self._data = self.empty() if callable(self.empty) else self.empty
        self._error: Optional[str] = None
        self._in_flight = 0
        self.last_fetched: Optional[datetime] = None
        self._listeners: List[Callable[["DomainState"], Any]] = []
        # Record ids with a mutation awaiting the backend
        self._claimed: Set[str] = set()
        # Statuses the backend accepted that no later refresh has confirmed yet
        self._applied: Dict[str, Tuple[str, int]] = {}
        self._sequence = 0

    @property
    def data(self) -> Any:
        return self._data

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def filters(self) -> Dict[str, Any]:
        return dict(self._filters)

    def add_listener(self, listener: Callable[["DomainState"], Any]) -> Callable[[], None]:
        """
        Call `listener(state)` after every refresh outcome, success or failure.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def remove():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self):
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.error(f"Change listener for {self.domain} failed", exc_info=True)

    async def refresh(self, **filters: Any) -> bool:
        """
        Fetch this domain and replace the snapshot.

        Explicit filters replace the remembered ones (on top of the defaults);
        a bare call reuses whatever was used last. Failures are recorded in
        `error` and the previous snapshot is kept.

        Returns:
            True if the snapshot was replaced
        """
        if filters:
            self._filters = {**self._default_filters, **filters}

        seen = self._sequence
        self._in_flight += 1
        self._error = None
        try:
            records = await self.fetcher.fetch(**self._filters)
        except MonitoringError as e:
            self._error = e.message
            logger.warning(
                f"Failed to fetch {self.domain}",
                extra={"data": {"domain": self.domain, "error": e.message, "error_type": type(e).__name__}}
            )
            return False
        except Exception as e:
            self._error = f"Failed to fetch {self.domain}: {e}"
            logger.error(f"Unexpected error fetching {self.domain}", exc_info=True)
            return False
        else:
            self._data = records
            self.last_fetched = datetime.now().astimezone()
            self._applied = {
                record_id: entry for record_id, entry in self._applied.items() if entry[1] > seen
            }
            return True
        finally:
            self._in_flight -= 1
            self._notify()

    def reset_filters(self) -> None:
        """Forget remembered filters; the next refresh uses the defaults only."""
        self._filters = dict(self._default_filters)

    async def query(self, **filters: Any) -> Any:
        """
        Fetch a filtered view of this domain without touching the snapshot.

        Filters apply on top of the defaults for this call only. Failures are
        raised, not recorded in `error`.
        """
        return await self.fetcher.fetch(**{**self._default_filters, **filters})

    def _reject(self, message: str) -> None:
        self._error = message
        raise ValidationError(message)

    def _status_of(self, record_id: str, snapshot_status: str) -> str:
        """Effective status: an accepted change wins until a later fetch confirms it."""
        entry = self._applied.get(record_id)
        return entry[0] if entry else snapshot_status

    def _claim(self, record_id: str, label: str) -> None:
        if record_id in self._claimed:
            self._reject(f"{label} {record_id} already has a change in progress")
        self._claimed.add(record_id)

    async def _write_through(
        self,
        operation: str,
        call: Awaitable[Any],
        record_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Any:
        """
        Run a backend mutation, record any failure, then re-fetch this domain.

        With `record_id`, the id must already be claimed; it is released once
        the mutation settles and `status` is remembered as applied.
        """
        try:
            result = await call
        except MonitoringError as e:
            self._error = e.message
            logger.error(
                f"{operation} failed",
                extra={"data": {"domain": self.domain, "error": e.message, "error_type": type(e).__name__}}
            )
            raise
        else:
            if record_id is not None:
                self._sequence += 1
                self._applied[record_id] = (status, self._sequence)
        finally:
            if record_id is not None:
                self._claimed.discard(record_id)
        logger.info(f"{operation} succeeded", extra={"data": {"domain": self.domain}})
        await self.refresh()
        return result


class HealthState(DomainState):
    domain = "health"
    empty = None

    @property
    def services(self) -> List[ServiceHealthRecord]:
        snapshot: Optional[SystemHealthSnapshot] = self._data
        return list(snapshot.services) if snapshot else []

    async def update_service_health(
        self,
        service_name: str,
        status: str,
        uptime_percentage: float,
        response_time_avg: float,
        error_rate: float,
        health_details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Upsert one service's health, then re-fetch Health."""
        if not service_name or not service_name.strip():
            self._reject("Service name is required")
        if status not in HEALTH_STATUSES:
            self._reject(f"Invalid health status: {status}")
        if not 0 <= uptime_percentage <= 100 or not 0 <= error_rate <= 100:
            self._reject("Uptime and error rate must be percentages between 0 and 100")
        if response_time_avg < 0:
            self._reject("Response time cannot be negative")

        await self._write_through(
            f"Health update for {service_name}",
            self.client.update_service_health(
                service_name, status, uptime_percentage, response_time_avg, error_rate, health_details
            ),
        )

    async def check_api_endpoints(self) -> Dict[str, Any]:
        """Run the backend's live endpoint probes; results are not part of the snapshot."""
        try:
            return await self.client.check_api_endpoints()
        except MonitoringError as e:
            self._error = e.message
            raise


class PerformanceState(DomainState):
    domain = "performance"
    empty = None

    async def generate_report(self, hours_back: int = 24, include_metrics: bool = True) -> Dict[str, Any]:
        """Ask the backend for a consolidated health report over the window."""
        if hours_back <= 0:
            self._reject("hours_back must be positive")
        try:
            return await self.client.generate_health_report(hours_back, include_metrics)
        except MonitoringError as e:
            self._error = e.message
            raise


class ErrorState(DomainState):
    domain = "errors"
    empty = list

    def find(self, error_id: str) -> Optional[ErrorReport]:
        return next((report for report in self._data if report.id == error_id), None)

    async def resolve_error(self, error_id: str, resolution_notes: str) -> None:
        """Resolve an unresolved error. Resolution is terminal; resolving twice fails."""
        if not resolution_notes or not resolution_notes.strip():
            self._reject("Resolution notes are required")
        report = self.find(error_id)
        if report is None:
            self._reject(f"Error report {error_id} is not loaded")
        if report.is_resolved or self._status_of(error_id, "unresolved") == "resolved":
            self._reject(f"Error report {error_id} is already resolved")
        self._claim(error_id, "Error report")

        await self._write_through(
            f"Resolve error {error_id}",
            self.client.resolve_error(error_id, resolution_notes.strip()),
            record_id=error_id,
            status="resolved",
        )

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
        """Record a captured client-side error and return its id."""
        if not error_message or not error_message.strip():
            self._reject("Error message is required")
        return await self._write_through(
            "Track error",
            self.client.track_error(
                error_message,
                error_stack=error_stack,
                component_stack=component_stack,
                page_url=page_url,
                user_id=user_id,
                device_info=device_info,
                error_boundary_level=error_boundary_level,
                additional_info=additional_info,
            ),
        )


class FeedbackState(DomainState):
    domain = "feedback"
    empty = list

    def find(self, feedback_id: str) -> Optional[FeedbackItem]:
        return next((item for item in self._data if item.id == feedback_id), None)

    async def submit_feedback(self, submission: FeedbackSubmission) -> str:
        payload = submission.model_dump()
        if payload["priority"] is None:
            payload["priority"] = determine_feedback_priority(submission.feedback_type, submission.rating)
        return await self._write_through("Submit feedback", self.client.submit_feedback(payload))

    async def update_feedback_status(
        self,
        feedback_id: str,
        status: str,
        resolution_notes: Optional[str] = None,
    ) -> None:
        """Move feedback along its forward-only status graph."""
        item = self.find(feedback_id)
        if item is None:
            self._reject(f"Feedback {feedback_id} is not loaded")
        current = self._status_of(feedback_id, item.status)
        if status not in FEEDBACK_TRANSITIONS.get(current, frozenset()):
            self._reject(f"Illegal feedback transition {current} -> {status}")
        self._claim(feedback_id, "Feedback")

        notes = resolution_notes if status == "resolved" and resolution_notes else None
        await self._write_through(
            f"Feedback {feedback_id} -> {status}",
            self.client.update_feedback_status(feedback_id, status, notes),
            record_id=feedback_id,
            status=status,
        )


class MaintenanceState(DomainState):
    domain = "maintenance"
    empty = list

    def find(self, notification_id: str) -> Optional[MaintenanceWindow]:
        return next((window for window in self._data if window.id == notification_id), None)

    async def schedule_notification(self, window: Union[MaintenanceRequest, Dict[str, Any]]) -> str:
        """Schedule a maintenance window and return its id."""
        if isinstance(window, dict):
            window = MaintenanceRequest.model_validate(window)
        missing = [
            name for name in ("title", "scheduled_start", "scheduled_end")
            if not getattr(window, name) or (name == "title" and not window.title.strip())
        ]
        if missing:
            self._reject(f"Missing required maintenance fields: {', '.join(missing)}")
        if window.scheduled_end <= window.scheduled_start:
            self._reject("Maintenance must end after it starts")

        return await self._write_through(
            f"Schedule maintenance '{window.title}'",
            self.client.schedule_maintenance(window.model_dump()),
        )

    async def update_notification_status(
        self,
        notification_id: str,
        status: str,
        actual_start: Optional[datetime] = None,
        actual_end: Optional[datetime] = None,
    ) -> None:
        window = self.find(notification_id)
        if window is None:
            self._reject(f"Maintenance window {notification_id} is not loaded")
        current = self._status_of(notification_id, window.status)
        if status not in MAINTENANCE_TRANSITIONS.get(current, frozenset()):
            self._reject(f"Illegal maintenance transition {current} -> {status}")
        self._claim(notification_id, "Maintenance window")

        await self._write_through(
            f"Maintenance {notification_id} -> {status}",
            self.client.update_maintenance_status(notification_id, status, actual_start, actual_end),
            record_id=notification_id,
            status=status,
        )


class AuditState(DomainState):
    """Read-only; the audit trail is append-only and owned elsewhere."""
    domain = "audit"
    empty = list
