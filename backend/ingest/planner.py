"""
Sync date planner: decides which calendar days a sync run fetches.

Yesterday is always refetched so late finishing matches get final scores.
Today and the next six days are fetched only while the store holds no match
for them. Once a future day has any match it is not refreshed again until it
becomes "yesterday", so upstream corrections to kickoff times, logos or
venues wait until then.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from shared.utils.logging import get_logger

from ingest.store import SyncStore

logger = get_logger(__name__)

LOOKAHEAD_DAYS = 7


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class SyncDatePlanner:
    def __init__(self, store: SyncStore, lookahead_days: int = LOOKAHEAD_DAYS) -> None:
        self._store = store
        self._lookahead_days = lookahead_days

    async def plan_dates(self, today: date | None = None) -> list[date]:
        """Return yesterday followed by the missing days in [today, today + 6], ascending."""
        today = today or utc_today()
        dates = [today - timedelta(days=1)]
        skipped: list[str] = []

        for offset in range(self._lookahead_days):
            day = today + timedelta(days=offset)
            if await self._store.has_matches_for_date(day):
                skipped.append(day.isoformat())
            else:
                dates.append(day)

        logger.info(
            "sync_dates_planned",
            dates=[d.isoformat() for d in dates],
            skipped=skipped,
        )
        return dates
