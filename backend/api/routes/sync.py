"""
Admin sync endpoints.

POST /v1/admin/sync          - Run a synchronization now (busy result if one is in flight).
GET  /v1/admin/sync/status   - Orchestrator state, daily schedule, last successful sync time.
GET  /v1/admin/sync/history  - Most recent run-log records, newest first.
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from shared.models.domain import SyncResult
from shared.utils.logging import get_logger

from api.dependencies import get_orchestrator, get_scheduler, get_tracker, require_admin
from ingest.service import SyncOrchestrator
from scheduler.service import DailySyncScheduler
from scheduler.status import SchedulerStatusTracker

logger = get_logger(__name__)
router = APIRouter(
    prefix="/v1/admin/sync",
    tags=["admin", "sync"],
    dependencies=[Depends(require_admin)],
)


@router.post("")
async def trigger_sync(
    scheduler: DailySyncScheduler = Depends(get_scheduler),
) -> SyncResult:
    """Run a synchronization and wait for its result."""
    result = await scheduler.trigger_now()
    logger.info("admin_sync_triggered", success=result.success, message=result.message)
    return result


@router.get("/status")
async def sync_status(
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
    tracker: SchedulerStatusTracker = Depends(get_tracker),
) -> dict[str, Any]:
    return {
        "success": True,
        "data": {
            **orchestrator.status(),
            "scheduler": tracker.get_status().model_dump(mode="json"),
            "last_sync_date": await orchestrator.last_sync_date(),
        },
    }


@router.get("/history")
async def sync_history(
    limit: int = Query(10, ge=1, le=100),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    history = await orchestrator.history(limit)
    return {
        "success": True,
        "data": {
            "history": [run.model_dump(mode="json") for run in history],
            "total_count": len(history),
        },
    }
