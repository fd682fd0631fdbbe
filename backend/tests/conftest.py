"""Shared fixtures: in-memory store, scripted provider and raw fixture factory."""
from __future__ import annotations

import asyncio
from datetime import date
from typing import Any, Callable, Optional

import pytest

from shared.config import Settings
from shared.models.domain import Match, SyncRun, UpsertCounts
from shared.models.enums import SyncStatus

from ingest.store import SyncStore


def make_raw_fixture(
    fixture_id: int = 1001,
    kickoff: str = "2026-10-17T19:00:00+00:00",
    league_id: int = 39,
    home: Optional[str] = "Arsenal",
    away: Optional[str] = "Chelsea",
    status_short: Optional[str] = "NS",
    status_long: Optional[str] = "Not Started",
) -> dict[str, Any]:
    """Build an API-Football v3 fixture record."""
    return {
        "fixture": {
            "id": fixture_id,
            "referee": "M. Oliver",
            "date": kickoff,
            "status": {"short": status_short, "long": status_long},
            "venue": {"name": "Emirates Stadium", "city": "London"},
        },
        "league": {
            "id": league_id,
            "name": "Premier League",
            "country": "England",
            "logo": "https://media.api-sports.io/football/leagues/39.png",
        },
        "teams": {
            "home": {"name": home, "logo": "https://media.api-sports.io/football/teams/42.png"},
            "away": {"name": away, "logo": "https://media.api-sports.io/football/teams/49.png"},
        },
        "goals": {"home": None, "away": None},
    }


class FakeStore(SyncStore):
    """In-memory SyncStore with the same run-log rules as the SQL store."""

    def __init__(self) -> None:
        self.matches: dict[str, Match] = {}
        self.runs: dict[int, SyncRun] = {}
        self.settings: dict[str, Any] = {}
        self.upsert_calls = 0
        self.fail_upsert: Optional[Exception] = None

    async def upsert_matches(self, matches: list[Match]) -> UpsertCounts:
        self.upsert_calls += 1
        if self.fail_upsert is not None:
            raise self.fail_upsert
        counts = UpsertCounts()
        batch = {m.match_id: m for m in matches}
        for match_id, match in batch.items():
            existing = self.matches.get(match_id)
            if existing is None:
                counts.inserted += 1
                self.matches[match_id] = match
            else:
                counts.updated += 1
                self.matches[match_id] = match.model_copy(update={"channels": existing.channels})
        return counts

    async def has_matches_for_date(self, day: date) -> bool:
        return any(m.fixture_date == day for m in self.matches.values())

    async def matches_for_date(self, day: date) -> list[Match]:
        found = [m for m in self.matches.values() if m.fixture_date == day]
        return sorted(found, key=lambda m: (m.kickoff_time, m.match_id))

    async def record_run(self, run: SyncRun) -> SyncRun:
        if run.id is None:
            run = run.model_copy(update={"id": len(self.runs) + 1})
        elif self.runs[run.id].status.is_terminal:
            raise ValueError(f"Sync run {run.id} is already {self.runs[run.id].status.value}")
        self.runs[run.id] = run
        return run

    async def recent_runs(self, limit: int = 10) -> list[SyncRun]:
        ordered = sorted(self.runs.values(), key=lambda r: (r.started_at, r.id or 0), reverse=True)
        return ordered[:limit]

    async def get_setting(self, key: str) -> Any:
        return self.settings.get(key)

    async def set_setting(self, key: str, value: Any) -> None:
        self.settings[key] = value

    def runs_with_status(self, status: SyncStatus) -> list[SyncRun]:
        return [r for r in self.runs.values() if r.status is status]


class FakeProvider:
    """Fixture source returning scripted responses per date."""

    def __init__(
        self,
        fixtures: Optional[Callable[[date], list[dict[str, Any]]]] = None,
        fail_on: Optional[date] = None,
        error: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
    ) -> None:
        self._fixtures = fixtures or (lambda day: [])
        self._fail_on = fail_on
        self._error = error
        self.gate = gate
        self.requested: list[date] = []

    async def start(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def fetch_fixtures_for_date(self, day: date) -> list[dict[str, Any]]:
        self.requested.append(day)
        if self.gate is not None:
            await self.gate.wait()
        if self._error is not None and (self._fail_on is None or self._fail_on == day):
            raise self._error
        return self._fixtures(day)


class RecordingSleep:
    """Stand-in for asyncio.sleep that records the requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        api_football_key="test-key",
        admin_passkey="s3cret",
        metrics_enabled=False,
    )


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()
