"""
Daily sync scheduler for Matchcast.
Sleeps until the tracker's next_run, triggers a synchronization, then
recomputes the schedule whatever the outcome.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable

from shared.config import Settings, get_settings
from shared.models.domain import SchedulerStatus, SyncResult
from shared.utils.logging import get_logger

from ingest.service import SyncOrchestrator
from scheduler.status import SchedulerStatusTracker

logger = get_logger(__name__)

# How long to idle before re-checking when no next_run can be computed.
IDLE_RECHECK_S = 300.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DailySyncScheduler:
    """
    Runs synchronize() once a day at the configured local time.

    Manual triggers go through trigger_now(), which shares the orchestrator's
    in-flight guard with the scheduled run.
    """

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        tracker: SchedulerStatusTracker,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._tracker = tracker
        self._settings = settings or get_settings()
        self._clock = clock or _utcnow
        self._shutdown = asyncio.Event()

    def refresh_schedule(self, after: datetime | None = None) -> SchedulerStatus:
        """Recompute next_run from settings, strictly later than ``after`` when given."""
        s = self._settings
        now = self._clock()
        if after is not None and now <= after:
            now = after + timedelta(seconds=1)
        return self._tracker.set_schedule(
            s.sync_schedule_enabled, s.sync_hour, s.sync_minute, s.sync_timezone, now=now
        )

    async def trigger_now(self) -> SyncResult:
        """Manual trigger. Same entry point and guard as the scheduled run."""
        logger.info("sync_manual_trigger")
        return await self._orchestrator.synchronize()

    async def _wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; True when shutdown was requested meanwhile."""
        try:
            await asyncio.wait_for(self._shutdown.wait(), timeout=max(seconds, 0.0))
        except asyncio.TimeoutError:
            return False
        return True

    async def run_once(self, slot: datetime | None = None) -> SyncResult:
        """Run the scheduled sync and advance next_run past ``slot``."""
        logger.info("sync_scheduled_trigger")
        try:
            return await self._orchestrator.synchronize()
        finally:
            self.refresh_schedule(after=slot)

    async def run(self) -> None:
        """Main scheduler loop."""
        status = self.refresh_schedule()
        while not self._shutdown.is_set():
            try:
                if status.next_run is None:
                    if await self._wait(IDLE_RECHECK_S):
                        break
                    status = self.refresh_schedule()
                    continue

                delay = (status.next_run - self._clock()).total_seconds()
                if delay > 0:
                    if await self._wait(delay):
                        break
                    continue

                result = await self.run_once(status.next_run)
                status = self._tracker.get_status()
                logger.info("sync_scheduled_finished", success=result.success, next_run=status.next_run)

            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.error("scheduler_loop_error", error=str(exc), exc_info=True)
                await asyncio.sleep(5.0)
                status = self.refresh_schedule()

    def request_shutdown(self) -> None:
        self._shutdown.set()
