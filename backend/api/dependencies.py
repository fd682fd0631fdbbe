"""
Dependency injection for the API service.
Provides the database, the sync services, settings and admin auth to route handlers.
"""
from __future__ import annotations

import hmac
from typing import Optional

from fastapi import Depends, Header, HTTPException

from shared.config import Settings, get_settings
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger

from ingest.service import SyncOrchestrator
from ingest.store import SyncStore
from scheduler.service import DailySyncScheduler
from scheduler.status import SchedulerStatusTracker

logger = get_logger(__name__)

# Module-level singletons, initialized at startup
_db: DatabaseManager | None = None
_orchestrator: SyncOrchestrator | None = None
_tracker: SchedulerStatusTracker | None = None
_scheduler: DailySyncScheduler | None = None


def init_dependencies(
    db: DatabaseManager | None,
    orchestrator: SyncOrchestrator,
    tracker: SchedulerStatusTracker,
    scheduler: DailySyncScheduler,
) -> None:
    """Initialize module-level singletons. Called once at startup."""
    global _db, _orchestrator, _tracker, _scheduler
    _db = db
    _orchestrator = orchestrator
    _tracker = tracker
    _scheduler = scheduler


def get_db() -> DatabaseManager:
    """FastAPI dependency: returns the shared DatabaseManager."""
    if _db is None:
        raise RuntimeError("DatabaseManager not initialized; call init_dependencies first")
    return _db


def get_orchestrator() -> SyncOrchestrator:
    if _orchestrator is None:
        raise RuntimeError("SyncOrchestrator not initialized; call init_dependencies first")
    return _orchestrator


def get_store(orchestrator: SyncOrchestrator = Depends(get_orchestrator)) -> SyncStore:
    return orchestrator.store


def get_tracker() -> SchedulerStatusTracker:
    if _tracker is None:
        raise RuntimeError("SchedulerStatusTracker not initialized; call init_dependencies first")
    return _tracker


def get_scheduler() -> DailySyncScheduler:
    if _scheduler is None:
        raise RuntimeError("DailySyncScheduler not initialized; call init_dependencies first")
    return _scheduler


def require_admin(
    x_admin_passkey: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Reject admin requests whose x-admin-passkey header is missing or wrong."""
    if not x_admin_passkey:
        raise HTTPException(status_code=401, detail="Admin passkey is required")
    if not settings.admin_passkey:
        logger.error("admin_passkey_not_configured")
        raise HTTPException(status_code=401, detail="Server configuration error")
    if not hmac.compare_digest(x_admin_passkey, settings.admin_passkey):
        raise HTTPException(status_code=401, detail="Invalid admin passkey")
