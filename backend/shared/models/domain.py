"""
Pydantic v2 domain models shared across Matchcast.
These are the internal/wire representations, not ORM models.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.models.enums import SyncStatus


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


# ── Match ───────────────────────────────────────────────────────────────
class Match(DomainModel):
    """A fixture in the internal shape. `match_id` is the upstream id as a string."""
    match_id: str
    external_id: int
    league_id: Optional[int] = None
    fixture_date: date
    kickoff_time: datetime
    status: str = "NS"
    status_text: str = "Not Started"
    home_team_name: str
    home_team_logo: Optional[str] = None
    home_team_goals: Optional[int] = None
    away_team_name: str
    away_team_logo: Optional[str] = None
    away_team_goals: Optional[int] = None
    competition_name: str
    competition_logo: Optional[str] = None
    competition_country: Optional[str] = None
    venue_name: Optional[str] = None
    venue_city: Optional[str] = None
    referee: Optional[str] = None
    # Channel ids in display order; sync never writes these.
    channels: list[int] = Field(default_factory=list)

    def synced_fields(self) -> dict[str, object]:
        """Columns owned by the sync (everything except channel links)."""
        return self.model_dump(exclude={"channels"})


# ── Sync bookkeeping ────────────────────────────────────────────────────
class UpsertCounts(DomainModel):
    inserted: int = 0
    updated: int = 0


class SyncRun(DomainModel):
    """Run-log record for one synchronization attempt."""
    id: Optional[int] = None
    started_at: datetime
    completed_at: Optional[datetime] = None
    status: SyncStatus = SyncStatus.RUNNING
    matches_fetched: int = 0
    matches_inserted: int = 0
    matches_updated: int = 0
    error_message: Optional[str] = None


class SyncStats(DomainModel):
    duration_ms: int
    matches_fetched: int
    matches_inserted: int
    matches_updated: int


class SyncResult(DomainModel):
    success: bool
    message: str
    stats: Optional[SyncStats] = None
    error: Optional[str] = None


class SchedulerStatus(DomainModel):
    enabled: bool = False
    hour: Optional[int] = None
    minute: Optional[int] = None
    timezone: Optional[str] = None
    next_run: Optional[datetime] = None
    total_runs: int = 0
    last_error: Optional[str] = None
    is_running: bool = False
