"""
Monitoring Dashboard

Composes the domain containers, poll scheduler, live update subscriber, alert
aggregator and export engine behind one object. Whoever owns the dashboard's
lifetime calls start()/stop(), or uses it as an async context manager.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from models.dashboard import AlertFeed, DashboardSnapshot, DomainView
from models.monitoring import Alert, ExportBlob
from services.alert_aggregator import derive_alerts, rank_alerts, summarize_alerts
from services.domain_state import (
    AuditState,
    DomainState,
    ErrorState,
    FeedbackState,
    HealthState,
    MaintenanceState,
    PerformanceState,
)
from services.export_engine import ExportEngine
from services.fetchers import build_fetchers
from services.live_updates import LiveUpdateSubscriber, SubscribeFn
from services.monitoring_client import MonitoringClient, ValidationError
from services.poll_scheduler import PollScheduler
from utils.logging import get_logger, log_system_state_change

logger = get_logger("monitoring-dashboard")


class MonitoringDashboard:
    """Single entry point for the monitoring page."""

    def __init__(
        self,
        client: MonitoringClient,
        *,
        subscribe_fn: Optional[SubscribeFn] = None,
        channel_prefix: str = "monitoring",
        health_interval: float = 30.0,
        performance_interval: float = 60.0,
        auto_refresh: bool = True,
        performance_hours_back: int = 24,
        alert_window_hours: int = 24,
        error_limit: int = 50,
        feedback_limit: int = 50,
        audit_limit: int = 100,
        export_limit: int = 10000,
        owns_client: bool = False,
    ):
        self.client = client
        self._owns_client = owns_client
        self.auto_refresh = auto_refresh
        self.alert_window = timedelta(hours=alert_window_hours)

        fetchers = build_fetchers(client)
        self.system_health = HealthState(fetchers["health"])
        self.performance = PerformanceState(fetchers["performance"], default_filters={"hours_back": performance_hours_back})
        self.errors = ErrorState(fetchers["errors"], default_filters={"limit": error_limit})
        self.feedback = FeedbackState(fetchers["feedback"], default_filters={"limit": feedback_limit})
        self.maintenance = MaintenanceState(fetchers["maintenance"])
        self.audit = AuditState(fetchers["audit"], default_filters={"limit": audit_limit})

        self.scheduler = PollScheduler()
        self.scheduler.register(self.system_health, health_interval)
        self.scheduler.register(self.performance, performance_interval)

        self.live_updates = LiveUpdateSubscriber(subscribe_fn, channel_prefix=channel_prefix)
        for state in (self.system_health, self.errors, self.feedback):
            self.live_updates.register(state)

        self.exporter = ExportEngine(fetchers, record_limit=export_limit)
        self.is_running = False

    @classmethod
    def from_settings(cls, settings, subscribe_fn: Optional[SubscribeFn] = None) -> "MonitoringDashboard":
        """Build a dashboard (and the client it owns) from application settings."""
        api_key = settings.MONITORING_API_KEY.get_secret_value() if settings.MONITORING_API_KEY else None
        client = MonitoringClient(
            settings.MONITORING_API_URL,
            api_key=api_key,
            timeout=settings.MONITORING_HTTP_TIMEOUT,
        )
        return cls(
            client,
            subscribe_fn=subscribe_fn,
            channel_prefix=settings.MONITORING_CHANNEL_PREFIX,
            health_interval=settings.HEALTH_POLL_INTERVAL,
            performance_interval=settings.PERFORMANCE_POLL_INTERVAL,
            auto_refresh=settings.AUTO_REFRESH,
            performance_hours_back=settings.PERFORMANCE_HOURS_BACK,
            alert_window_hours=settings.ALERT_WINDOW_HOURS,
            error_limit=settings.ERROR_FETCH_LIMIT,
            feedback_limit=settings.FEEDBACK_FETCH_LIMIT,
            audit_limit=settings.AUDIT_FETCH_LIMIT,
            export_limit=settings.EXPORT_RECORD_LIMIT,
            owns_client=True,
        )

    @property
    def states(self) -> Dict[str, DomainState]:
        return {
            "health": self.system_health,
            "performance": self.performance,
            "errors": self.errors,
            "feedback": self.feedback,
            "maintenance": self.maintenance,
            "audit": self.audit,
        }

    # Lifecycle

    async def start(self):
        """Initial load, then live subscriptions, then polling if auto-refresh is on."""
        if self.is_running:
            return
        self.is_running = True
        await self.refresh_all()
        await self.live_updates.start()
        if self.auto_refresh:
            await self.scheduler.start()
        log_system_state_change(
            "monitoring-dashboard", "started", {"auto_refresh": self.auto_refresh}, logger=logger
        )

    async def stop(self):
        """Tear down timers and subscriptions; snapshots are kept."""
        if not self.is_running:
            if self._owns_client:
                await self.client.close()
            return
        self.is_running = False
        try:
            await self.scheduler.stop()
            await self.live_updates.stop()
        finally:
            if self._owns_client:
                await self.client.close()
        log_system_state_change("monitoring-dashboard", "stopped", {}, logger=logger)

    async def __aenter__(self) -> "MonitoringDashboard":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()

    async def set_auto_refresh(self, enabled: bool):
        """Turn polling on or off without discarding last-known state."""
        self.auto_refresh = enabled
        if not self.is_running:
            return
        if enabled:
            await self.scheduler.start()
        else:
            await self.scheduler.stop()

    # Reads

    async def refresh_all(self) -> Dict[str, bool]:
        """
        Fetch every domain concurrently.

        One domain failing never blocks the others; each failure lands in that
        domain's own `error`.

        Returns:
            Per-domain success flags
        """
        domains = list(self.states)
        results = await asyncio.gather(
            *(self.states[domain].refresh() for domain in domains),
            return_exceptions=True,
        )
        outcome = {}
        for domain, result in zip(domains, results):
            if isinstance(result, BaseException):
                logger.error(f"Refresh of {domain} raised", exc_info=result)
                outcome[domain] = False
            else:
                outcome[domain] = result

        failed = [domain for domain, ok in outcome.items() if not ok]
        logger.info(
            "Refreshed all monitoring domains",
            extra={"data": {"succeeded": len(domains) - len(failed), "failed": failed}}
        )
        return outcome

    def current_alerts(self, now: Optional[datetime] = None) -> List[Alert]:
        return rank_alerts(derive_alerts(
            self.system_health.services,
            self.errors.data,
            self.feedback.data,
            self.maintenance.data,
            now=now,
            window=self.alert_window,
        ))

    @property
    def alerts(self) -> List[Alert]:
        """Severity-ranked alerts derived from the current snapshots."""
        return self.current_alerts()

    def snapshot(self) -> DashboardSnapshot:
        alerts = self.alerts
        return DashboardSnapshot(
            system_health=domain_view(self.system_health),
            performance=domain_view(self.performance),
            errors=domain_view(self.errors),
            feedback=domain_view(self.feedback),
            maintenance=domain_view(self.maintenance),
            audit=domain_view(self.audit),
            alerts=AlertFeed(alerts=alerts, summary=summarize_alerts(alerts)),
            auto_refresh=self.auto_refresh,
        )

    # Writes

    async def resolve_alert(self, alert_id: str, resolution_notes: Optional[str] = None):
        """
        Resolve an alert by acting on the record behind it.

        Error alerts resolve the error (notes required); feedback alerts
        acknowledge the pending feedback. Health and maintenance alerts clear
        only when their service or window changes, so they cannot be resolved here.
        """
        alert = next((candidate for candidate in self.alerts if candidate.id == alert_id), None)
        if alert is None:
            raise ValidationError(f"No active alert {alert_id}")

        if alert.source_type == "error":
            await self.errors.resolve_error(alert.source_id, resolution_notes or "")
        elif alert.source_type == "feedback":
            await self.feedback.update_feedback_status(alert.source_id, "acknowledged")
        else:
            raise ValidationError(
                f"{alert.source_type} alerts clear when the underlying {alert.source_type} record changes"
            )
        logger.info(
            f"Resolved alert {alert_id}",
            extra={"data": {"source_type": alert.source_type, "source_id": alert.source_id}}
        )

    async def export(self, domain: str, start: datetime, end: datetime, fmt: str = "json") -> ExportBlob:
        return await self.exporter.export(domain, start, end, fmt)


def domain_view(state: DomainState) -> DomainView:
    return DomainView(
        domain=state.domain,
        data=state.data,
        loading=state.loading,
        error=state.error,
        last_fetched=state.last_fetched,
    )
