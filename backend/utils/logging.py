"""
Structured logging for the monitoring backend.

structlog on top of the stdlib root logger, JSON by default, with the service
name and per-request correlation data carried in contextvars.
"""

import logging
import sys
import time
import uuid
from typing import Any, Dict, Optional

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response


def configure_logging(
    service_name: str = "monitoring-api",
    log_level: str = "INFO",
    enable_json: bool = True
) -> None:
    """Route structlog through stdlib logging and bind the service name."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
        force=True
    )

    renderer = structlog.processors.JSONRenderer() if enable_json else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service=service_name)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tags each request with an X-Request-ID and logs one line when it finishes."""

    def __init__(self, app, service_name: str = "monitoring-api"):
        super().__init__(app)
        self.service_name = service_name
        self.logger = get_logger("request")

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            service=self.service_name,
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            self.logger.error("Request failed", exc_info=True)
            raise

        self.logger.info(
            f"{request.method} {request.url.path} -> {response.status_code}",
            extra={"data": {
                "status_code": response.status_code,
                "response_time_ms": round((time.perf_counter() - started) * 1000, 1),
            }}
        )
        response.headers["X-Request-ID"] = request_id
        return response


def log_external_api_call(
    service: str,
    endpoint: str,
    method: str = "POST",
    status_code: Optional[int] = None,
    duration_ms: Optional[float] = None,
    logger: Optional[structlog.stdlib.BoundLogger] = None
) -> None:
    """Debug-level record of one monitoring backend call."""
    (logger or get_logger("external_api")).debug(
        f"{method} {service}:{endpoint}",
        extra={"data": {
            "service": service,
            "endpoint": endpoint,
            "method": method,
            "status_code": status_code,
            "duration_ms": duration_ms,
        }}
    )


def log_system_state_change(
    component: str,
    state: str,
    details: Dict[str, Any],
    logger: Optional[structlog.stdlib.BoundLogger] = None
) -> None:
    """Lifecycle transitions of the scheduler, subscriber and dashboard."""
    (logger or get_logger("system")).info(
        f"{component} {state}",
        extra={"data": {"component": component, "new_state": state, **details}}
    )
