"""
Monitoring Backend Server

Serves the monitoring dashboard to the admin frontend: aggregated health,
performance, error, feedback, maintenance and audit data, derived alerts,
and exports.
"""

import asyncio
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv

# Load environment variables FIRST before importing config
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.monitoring_endpoints import router as monitoring_router
from config import settings
from services.dashboard import MonitoringDashboard
from utils.logging import RequestLoggingMiddleware, configure_logging, get_logger
from utils.redis_manager import check_redis_connection, close_redis

configure_logging(
    service_name="monitoring-api",
    log_level=settings.LOG_LEVEL,
    enable_json=settings.LOG_JSON,
)

logger = get_logger("monitoring-api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Starting Monitoring Backend Server...")

    dashboard = MonitoringDashboard.from_settings(settings)
    try:
        await dashboard.start()
    except Exception as e:
        logger.error(f"Failed to start monitoring dashboard: {e}")
        await dashboard.stop()
        raise
    app.state.dashboard = dashboard
    logger.info("Monitoring Backend Server started successfully")

    yield

    # Shutdown
    logger.info("Shutting down Monitoring Backend Server...")
    await dashboard.stop()
    await close_redis()


app = FastAPI(
    title="Monitoring Backend",
    description="Operational monitoring and alerting aggregator",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware, service_name="monitoring-api")

app.include_router(monitoring_router)


@app.get("/")
async def root():
    return {
        "service": "monitoring-api",
        "endpoints": {
            "dashboard": "/api/monitoring/dashboard",
            "alerts": "/api/monitoring/alerts",
            "export": "/api/monitoring/export/{domain}",
            "health": "/health",
        }
    }


@app.get("/health")
async def health_check():
    """Liveness of this process plus the state of its push channel."""
    dashboard = getattr(app.state, "dashboard", None)
    redis_ok = await check_redis_connection()
    return {
        "status": "healthy" if dashboard is not None and dashboard.is_running else "starting",
        "service": "monitoring-api",
        "redis": "connected" if redis_ok else "unavailable",
        "auto_refresh": dashboard.auto_refresh if dashboard is not None else None,
        "live_domains": dashboard.live_updates.subscribed_domains if dashboard is not None else [],
    }


async def main():
    """Run the monitoring server."""
    config = uvicorn.Config(
        app,
        host="0.0.0.0",
        port=settings.MONITORING_PORT,
        log_config=None  # Use our structured logging
    )
    server = uvicorn.Server(config)

    logger.info("Starting uvicorn server", extra={"data": {"host": "0.0.0.0", "port": settings.MONITORING_PORT}})

    await server.serve()


if __name__ == "__main__":
    asyncio.run(main())
