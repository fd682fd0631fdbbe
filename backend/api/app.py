"""
FastAPI application factory for the Matchcast API service.

Creates the app with:
- REST routes (matches, admin sync)
- Middleware stack
- Health check endpoints
- Lifespan management (startup/shutdown)
- Background daily sync scheduler
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Union

from fastapi import FastAPI

from shared.config import get_settings
from shared.utils.database import DatabaseManager, connect_with_retry
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server

from api.dependencies import get_db, init_dependencies
from api.middleware import setup_middleware
from api.routes.matches import router as matches_router
from api.routes.sync import router as sync_router
from ingest.service import build_orchestrator
from scheduler.service import DailySyncScheduler
from scheduler.status import SchedulerStatusTracker

logger = get_logger(__name__)

# How long shutdown waits for an in-flight scheduled sync before cancelling it.
SHUTDOWN_GRACE_S = 30.0


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """No-op lifespan for testing without a database."""
    yield


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Handles startup (connect to the database, create tables, start the
    daily scheduler) and shutdown (graceful cleanup).
    """
    settings = get_settings()
    setup_logging("api")
    start_metrics_server()

    # Retry so the healthcheck can pass once the database is ready
    db = DatabaseManager(settings)
    await connect_with_retry(db.connect, "Database")
    await db.create_schema()

    orchestrator = build_orchestrator(db, settings)
    await orchestrator.provider.start()

    tracker = SchedulerStatusTracker(orchestrator.state)
    scheduler = DailySyncScheduler(orchestrator, tracker, settings)
    init_dependencies(db, orchestrator, tracker, scheduler)

    scheduler_task: asyncio.Task[None] | None = None
    if settings.sync_schedule_enabled:
        scheduler_task = asyncio.create_task(scheduler.run())
    else:
        scheduler.refresh_schedule()

    status = tracker.get_status()
    logger.info(
        "api_service_started",
        host=settings.api_host,
        port=settings.api_port,
        schedule_enabled=status.enabled,
        next_run=status.next_run,
        timezone=status.timezone,
    )

    yield

    # Shutdown
    scheduler.request_shutdown()
    if scheduler_task is not None:
        try:
            await asyncio.wait_for(scheduler_task, timeout=SHUTDOWN_GRACE_S)
        except (asyncio.TimeoutError, asyncio.CancelledError):
            logger.warning("scheduler_stop_timeout", grace_s=SHUTDOWN_GRACE_S)

    await orchestrator.provider.close()
    await db.disconnect()
    logger.info("api_service_stopped")


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application. Set use_lifespan=False for testing without a database."""
    app = FastAPI(
        title="Matchcast API",
        description="Football fixtures and broadcast schedule",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else _noop_lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Middleware
    setup_middleware(app)

    # REST routes
    app.include_router(matches_router)
    app.include_router(sync_router)

    # Health check
    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "api"}

    @app.get("/ready", tags=["system"])
    async def readiness() -> Dict[str, Union[str, bool]]:
        """Readiness: checks the database connection."""
        try:
            db = get_db()
        except RuntimeError:
            db_ok = False
        else:
            db_ok = await db.ping()

        return {
            "status": "ok" if db_ok else "degraded",
            "database": db_ok,
        }

    return app


# For running with uvicorn directly
app = create_app()
