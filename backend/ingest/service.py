"""
Sync orchestrator and manual sync entrypoint.

One synchronize() call plans the dates, fetches each of them sequentially
from the fixture provider, keeps allow-listed and well-formed fixtures,
upserts them in one batch and records the run. Run with
``python -m ingest.service`` for a one-off manual sync.
"""
from __future__ import annotations

import asyncio
import sys
import time
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional

import structlog

from shared.config import Settings, get_settings
from shared.errors import ConcurrencyRejectedError
from shared.models.domain import Match, SyncResult, SyncRun, SyncStats
from shared.models.enums import SyncStatus
from shared.utils.database import DatabaseManager, connect_with_retry
from shared.utils.http_client import SleepFn
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import SYNC_DURATION, SYNC_MATCHES, SYNC_RUNNING, SYNC_RUNS

from ingest.leagues import is_supported
from ingest.normalization.transformer import transform_fixture
from ingest.planner import SyncDatePlanner
from ingest.providers.api_football import ApiFootballProvider
from ingest.providers.base import BaseProvider, RawFixture
from ingest.store import LAST_SYNC_DATE_KEY, SqlSyncStore, SyncStore

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _league_id(fixture: RawFixture) -> Any:
    league = fixture.get("league")
    return league.get("id") if isinstance(league, dict) else None


@dataclass
class SyncState:
    """In-process orchestration state, shared by handle with the status tracker."""
    running: bool = False
    total_runs: int = 0
    last_error: Optional[str] = None
    last_result: Optional[SyncResult] = None


class SyncOrchestrator:
    """
    Runs fixture synchronization with an at-most-one-in-flight guard.

    The guard is a flag checked and set with no await in between, which makes
    it atomic within one event loop. It does not coordinate across processes.
    """

    def __init__(
        self,
        store: SyncStore,
        provider: BaseProvider,
        planner: SyncDatePlanner | None = None,
        settings: Settings | None = None,
        state: SyncState | None = None,
        sleep: SleepFn | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._store = store
        self._provider = provider
        self._planner = planner or SyncDatePlanner(store)
        self._rate_limit_delay_s = settings.sync_rate_limit_delay_s
        self._state = state or SyncState()
        self._sleep: SleepFn = sleep or asyncio.sleep
        self._clock = clock or _utcnow

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def store(self) -> SyncStore:
        return self._store

    @property
    def provider(self) -> BaseProvider:
        return self._provider

    def _acquire(self) -> None:
        if self._state.running:
            raise ConcurrencyRejectedError()
        self._state.running = True
        self._state.total_runs += 1
        SYNC_RUNNING.set(1)

    def _release(self) -> None:
        self._state.running = False
        SYNC_RUNNING.set(0)

    async def synchronize(self) -> SyncResult:
        """Run one synchronization. Never raises; failures come back as a SyncResult."""
        try:
            self._acquire()
        except ConcurrencyRejectedError as exc:
            logger.info("sync_rejected_already_running")
            return SyncResult(success=False, message=str(exc))

        start = time.perf_counter()
        run: SyncRun | None = None
        try:
            run = await self._store.record_run(SyncRun(started_at=self._clock()))
            structlog.contextvars.bind_contextvars(sync_run_id=run.id)
            logger.info("sync_started", run_id=run.id, total_runs=self._state.total_runs)

            dates = await self._planner.plan_dates()
            matches = await self._collect(dates)
            counts = await self._store.upsert_matches(matches)

            finished_at = self._clock()
            await self._store.set_setting(LAST_SYNC_DATE_KEY, finished_at.isoformat())
            run = await self._store.record_run(
                run.model_copy(update={
                    "status": SyncStatus.COMPLETED,
                    "completed_at": finished_at,
                    "matches_fetched": len(matches),
                    "matches_inserted": counts.inserted,
                    "matches_updated": counts.updated,
                })
            )

            duration_ms = int((time.perf_counter() - start) * 1000)
            result = SyncResult(
                success=True,
                message="Sync completed successfully",
                stats=SyncStats(
                    duration_ms=duration_ms,
                    matches_fetched=run.matches_fetched,
                    matches_inserted=run.matches_inserted,
                    matches_updated=run.matches_updated,
                ),
            )
            self._state.last_error = None
            SYNC_RUNS.labels(status=SyncStatus.COMPLETED.value).inc()
            SYNC_MATCHES.labels(outcome="fetched").inc(run.matches_fetched)
            SYNC_MATCHES.labels(outcome="inserted").inc(run.matches_inserted)
            SYNC_MATCHES.labels(outcome="updated").inc(run.matches_updated)
            logger.info(
                "sync_completed",
                run_id=run.id,
                duration_ms=duration_ms,
                matches_fetched=run.matches_fetched,
                matches_inserted=run.matches_inserted,
                matches_updated=run.matches_updated,
            )

        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.error("sync_failed", run_id=run.id if run else None, error=message, exc_info=True)
            self._state.last_error = message
            SYNC_RUNS.labels(status=SyncStatus.FAILED.value).inc()
            if run is not None and run.status is SyncStatus.RUNNING:
                await self._record_failure(run, message)
            result = SyncResult(success=False, message="Sync failed", error=message)

        finally:
            SYNC_DURATION.observe(time.perf_counter() - start)
            self._release()
            structlog.contextvars.unbind_contextvars("sync_run_id")

        self._state.last_result = result
        return result

    async def _record_failure(self, run: SyncRun, message: str) -> None:
        failed = run.model_copy(update={
            "status": SyncStatus.FAILED,
            "completed_at": self._clock(),
            "error_message": message,
        })
        try:
            await self._store.record_run(failed)
        except Exception as exc:
            logger.error("sync_run_log_failed", run_id=run.id, error=str(exc))

    async def _collect(self, dates: list[date]) -> list[Match]:
        """Fetch every planned date in order, pausing between consecutive requests."""
        collected: list[Match] = []
        for index, day in enumerate(dates):
            fixtures = await self._provider.fetch_fixtures_for_date(day)
            supported = [f for f in fixtures if is_supported(_league_id(f))]
            matches = [m for m in map(transform_fixture, supported) if m is not None]
            logger.info(
                "fixtures_collected",
                date=day.isoformat(),
                received=len(fixtures),
                supported=len(supported),
                valid=len(matches),
            )
            collected.extend(matches)
            if index < len(dates) - 1:
                await self._sleep(self._rate_limit_delay_s)
        return collected

    def status(self) -> dict[str, Any]:
        last = self._state.last_result
        return {
            "is_running": self._state.running,
            "last_sync": last.model_dump() if last else None,
        }

    async def history(self, limit: int = 10) -> list[SyncRun]:
        return await self._store.recent_runs(limit)

    async def last_sync_date(self) -> Optional[str]:
        return await self._store.get_setting(LAST_SYNC_DATE_KEY)


def build_orchestrator(
    db: DatabaseManager,
    settings: Settings | None = None,
    provider: BaseProvider | None = None,
) -> SyncOrchestrator:
    """Wire the SQL store and the API-Football provider into an orchestrator."""
    settings = settings or get_settings()
    store = SqlSyncStore(db)
    return SyncOrchestrator(
        store=store,
        provider=provider or ApiFootballProvider(settings),
        settings=settings,
    )


async def main() -> int:
    """Manual sync entrypoint: one run against the configured database."""
    settings = get_settings()
    setup_logging("sync")

    db = DatabaseManager(settings)
    await connect_with_retry(db.connect, "Database")
    orchestrator = build_orchestrator(db, settings)
    provider = orchestrator.provider
    await provider.start()

    try:
        await db.create_schema()
        result = await orchestrator.synchronize()
        if result.success and result.stats:
            logger.info("manual_sync_completed", **result.stats.model_dump())
            return 0
        logger.error("manual_sync_failed", message=result.message, error=result.error)
        return 1
    finally:
        await provider.close()
        await db.disconnect()
        logger.info("database_connection_closed")


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
