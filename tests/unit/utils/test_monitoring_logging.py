"""
Tests for structured logging configuration.
"""

import json
import logging

import pytest
import structlog
from fastapi import FastAPI
from fastapi.testclient import TestClient

from utils.logging import (
    RequestLoggingMiddleware,
    configure_logging,
    get_logger,
    log_external_api_call,
    log_system_state_change,
)


class CapturingHandler(logging.Handler):
    """A logging handler that captures log records."""

    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(self.format(record))


@pytest.fixture
def capturing_handler():
    configure_logging(service_name="test-service", log_level="DEBUG", enable_json=True)
    handler = CapturingHandler()
    root_logger = logging.getLogger()
    root_logger.addHandler(handler)
    yield handler
    root_logger.removeHandler(handler)
    structlog.contextvars.clear_contextvars()


def test_logger_context_variables(capturing_handler):
    structlog.contextvars.bind_contextvars(request_id="test-123")

    get_logger("test").info("Test message")

    output = json.loads(capturing_handler.records[-1])
    assert output["request_id"] == "test-123"
    assert output["service"] == "test-service"
    assert output["event"] == "Test message"


def test_system_state_change_carries_details(capturing_handler):
    log_system_state_change("poll-scheduler", "running", {"domains": {"health": 30.0}}, logger=get_logger("state-test"))

    output = json.loads(capturing_handler.records[-1])
    assert output["extra"]["data"]["component"] == "poll-scheduler"
    assert output["extra"]["data"]["new_state"] == "running"
    assert output["extra"]["data"]["domains"] == {"health": 30.0}


def test_external_api_call_is_debug(capturing_handler):
    log_external_api_call("monitoring-backend", "get_feedback", status_code=200, duration_ms=12.5,
                          logger=get_logger("api-test"))

    output = json.loads(capturing_handler.records[-1])
    assert output["level"] == "debug"
    assert output["extra"]["data"]["endpoint"] == "get_feedback"


def test_request_middleware_sets_request_id():
    app = FastAPI()
    app.add_middleware(RequestLoggingMiddleware, service_name="test-service")

    @app.get("/ping")
    async def ping():
        return {"ok": True}

    response = TestClient(app).get("/ping", headers={"X-Request-ID": "req-42"})

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "req-42"
