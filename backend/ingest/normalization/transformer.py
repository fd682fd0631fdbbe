"""
Fixture transformer: maps one raw API-Football fixture into the internal Match shape.

Records that cannot be mapped are dropped (``None``) rather than failing the batch.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from shared.errors import MalformedRecordError
from shared.models.domain import Match
from shared.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_STATUS = "NS"
DEFAULT_STATUS_TEXT = "Not Started"


def _section(obj: Any, key: str) -> dict[str, Any]:
    """Nested object lookup that tolerates missing or null sections."""
    if not isinstance(obj, dict):
        return {}
    value = obj.get(key)
    return value if isinstance(value, dict) else {}


def _require(value: Any, field: str, fixture_id: Any) -> Any:
    if value is None or value == "":
        raise MalformedRecordError(field, fixture_id)
    return value


def parse_kickoff(raw: str) -> datetime:
    """Parse an ISO-8601 kickoff instant into an aware UTC datetime."""
    parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def transform_fixture(raw: Any) -> Optional[Match]:
    """
    Map a raw fixture record into a Match.

    Returns None when the fixture id, date, either team name or the
    competition name is missing, or when the record has an unexpected shape.
    """
    fixture_id = _section(raw, "fixture").get("id")
    try:
        return _build_match(raw)
    except MalformedRecordError as exc:
        logger.debug("fixture_skipped_incomplete", fixture_id=fixture_id, field=exc.field)
        return None
    except Exception as exc:
        logger.warning("fixture_transform_failed", fixture_id=fixture_id, error=str(exc))
        return None


def _build_match(raw: Any) -> Match:
    fixture = _section(raw, "fixture")
    teams = _section(raw, "teams")
    home = _section(teams, "home")
    away = _section(teams, "away")
    goals = _section(raw, "goals")
    league = _section(raw, "league")
    status = _section(fixture, "status")
    venue = _section(fixture, "venue")

    external_id = _require(fixture.get("id"), "fixture.id", None)
    kickoff_raw = _require(fixture.get("date"), "fixture.date", external_id)
    home_name = _require(home.get("name"), "teams.home.name", external_id)
    away_name = _require(away.get("name"), "teams.away.name", external_id)
    competition = _require(league.get("name"), "league.name", external_id)

    kickoff = parse_kickoff(kickoff_raw)

    return Match(
        match_id=str(external_id),
        external_id=int(external_id),
        league_id=league.get("id"),
        fixture_date=kickoff.date(),
        kickoff_time=kickoff,
        status=status.get("short") or DEFAULT_STATUS,
        status_text=status.get("long") or DEFAULT_STATUS_TEXT,
        home_team_name=home_name,
        home_team_logo=home.get("logo"),
        home_team_goals=goals.get("home"),
        away_team_name=away_name,
        away_team_logo=away.get("logo"),
        away_team_goals=goals.get("away"),
        competition_name=competition,
        competition_logo=league.get("logo"),
        competition_country=league.get("country"),
        venue_name=venue.get("name"),
        venue_city=venue.get("city"),
        referee=fixture.get("referee"),
    )
