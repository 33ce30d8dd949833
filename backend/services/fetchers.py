"""
Domain Fetchers

One fetcher per monitoring domain. Each wraps a single backend request and
normalizes the response into immutable records. Fetchers hold no cache and never
retry; staleness belongs to the state containers.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import pydantic
from pydantic import TypeAdapter

from models.monitoring import (
    AuditEntry,
    ErrorReport,
    FeedbackItem,
    MaintenanceWindow,
    PerformanceSnapshot,
    SystemHealthSnapshot,
    calculate_overall_status,
)
from services.monitoring_client import BackendError, MonitoringClient
from utils.logging import get_logger

logger = get_logger("fetchers")


def _newest_first(records: List[Any], field: str) -> List[Any]:
    return sorted(records, key=lambda record: getattr(record, field), reverse=True)


class DomainFetcher:
    """Base fetcher: request, then validate into typed records."""

    domain: str = ""
    record_type: Any = None

    def __init__(self, client: MonitoringClient):
        self.client = client
        self._adapter = TypeAdapter(self.record_type)

    async def fetch(self, **filters: Any) -> Any:
        raise NotImplementedError

    def _normalize(self, raw: Any) -> Any:
        try:
            return self._adapter.validate_python(raw)
        except pydantic.ValidationError as e:
            logger.warning(
                f"Malformed {self.domain} response from monitoring backend",
                extra={"data": {"domain": self.domain, "errors": e.error_count()}}
            )
            raise BackendError(f"Malformed {self.domain} response: {e.errors()[0]['msg']}") from e


class HealthFetcher(DomainFetcher):
    domain = "health"
    record_type = SystemHealthSnapshot

    async def fetch(self) -> SystemHealthSnapshot:
        raw = await self.client.get_system_health()
        snapshot = self._normalize(raw)
        if isinstance(raw, dict) and "overall_status" not in raw:
            snapshot = snapshot.model_copy(update={"overall_status": calculate_overall_status(snapshot.services)})
        return snapshot


class PerformanceFetcher(DomainFetcher):
    domain = "performance"
    record_type = PerformanceSnapshot

    async def fetch(self, hours_back: int = 24) -> PerformanceSnapshot:
        raw = await self.client.get_performance_dashboard(hours_back)
        return self._normalize(raw)


class ErrorFetcher(DomainFetcher):
    domain = "errors"
    record_type = List[ErrorReport]

    async def fetch(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        is_resolved: Optional[bool] = None,
        limit: int = 50,
    ) -> List[ErrorReport]:
        raw = await self.client.get_error_reports(start_date, end_date, is_resolved, limit)
        return _newest_first(self._normalize(raw), "timestamp")


class FeedbackFetcher(DomainFetcher):
    domain = "feedback"
    record_type = List[FeedbackItem]

    async def fetch(
        self,
        module: Optional[str] = None,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        limit: int = 50,
    ) -> List[FeedbackItem]:
        raw = await self.client.get_feedback(module, status, priority, limit)
        return _newest_first(self._normalize(raw), "created_at")


class MaintenanceFetcher(DomainFetcher):
    domain = "maintenance"
    record_type = List[MaintenanceWindow]

    async def fetch(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        status: Optional[str] = None,
    ) -> List[MaintenanceWindow]:
        raw = await self.client.get_maintenance_notifications(start_date, end_date, status)
        return self._normalize(raw)


class AuditFetcher(DomainFetcher):
    domain = "audit"
    record_type = List[AuditEntry]

    async def fetch(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        action_type: Optional[str] = None,
        user_id: Optional[str] = None,
        resource_type: Optional[str] = None,
        limit: int = 100,
    ) -> List[AuditEntry]:
        raw = await self.client.get_audit_trail(start_date, end_date, action_type, user_id, resource_type, limit)
        return self._normalize(raw)


def build_fetchers(client: MonitoringClient) -> Dict[str, DomainFetcher]:
    """All six fetchers keyed by domain name."""
    fetchers = [
        HealthFetcher(client),
        PerformanceFetcher(client),
        ErrorFetcher(client),
        FeedbackFetcher(client),
        MaintenanceFetcher(client),
        AuditFetcher(client),
    ]
    return {fetcher.domain: fetcher for fetcher in fetchers}
