"""
Scheduler status tracker.
Computes the next daily sync time in a named timezone and reports run statistics.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from shared.models.domain import SchedulerStatus
from shared.utils.logging import get_logger
from shared.utils.metrics import SCHEDULER_NEXT_RUN

from ingest.service import SyncState

logger = get_logger(__name__)


def compute_next_run(hour: int, minute: int, tz_name: str, now: datetime) -> datetime:
    """
    Next occurrence of hour:minute in ``tz_name`` at or after ``now``.

    The candidate is built on the zone's own calendar date, so the process
    timezone never matters. An ambiguous wall time (DST fall-back) resolves
    to its first occurrence. Candidates are compared as UTC instants, never
    by wall clock. Returns an aware datetime in ``tz_name``.
    """
    zone = ZoneInfo(tz_name)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now_utc = now.astimezone(timezone.utc)
    day = now_utc.astimezone(zone).date()

    while True:
        candidate = datetime(day.year, day.month, day.day, hour, minute, tzinfo=zone)
        if candidate.astimezone(timezone.utc) >= now_utc:
            return candidate
        day += timedelta(days=1)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SchedulerStatusTracker:
    """Holds the active daily schedule and reads run counters from the shared SyncState."""

    def __init__(self, state: SyncState, clock: Callable[[], datetime] | None = None) -> None:
        self._state = state
        self._clock = clock or _utcnow
        self._enabled = False
        self._hour: Optional[int] = None
        self._minute: Optional[int] = None
        self._timezone: Optional[str] = None
        self._next_run: Optional[datetime] = None

    def set_schedule(
        self,
        enabled: bool,
        hour: int,
        minute: int,
        tz_name: str,
        now: datetime | None = None,
    ) -> SchedulerStatus:
        """Store the schedule and recompute next_run. Never raises."""
        self._enabled = enabled
        self._hour = hour
        self._minute = minute
        self._timezone = tz_name
        self._next_run = None

        if enabled:
            try:
                self._next_run = compute_next_run(hour, minute, tz_name, now or self._clock())
            except Exception as exc:
                logger.warning(
                    "next_run_unavailable",
                    hour=hour,
                    minute=minute,
                    timezone=tz_name,
                    error=str(exc),
                )

        SCHEDULER_NEXT_RUN.set(self._next_run.timestamp() if self._next_run else 0)
        logger.info(
            "sync_schedule_updated",
            enabled=enabled,
            next_run=self._next_run.isoformat() if self._next_run else None,
        )
        return self.get_status()

    def get_status(self) -> SchedulerStatus:
        return SchedulerStatus(
            enabled=self._enabled,
            hour=self._hour,
            minute=self._minute,
            timezone=self._timezone,
            next_run=self._next_run,
            total_runs=self._state.total_runs,
            last_error=self._state.last_error,
            is_running=self._state.running,
        )
