"""
Match REST endpoints.

GET /v1/matches?date=YYYY-MM-DD - Synced matches for one day (defaults to today, UTC).
"""
from __future__ import annotations

from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from shared.utils.logging import get_logger

from api.dependencies import get_store
from ingest.planner import utc_today
from ingest.store import SyncStore

logger = get_logger(__name__)
router = APIRouter(prefix="/v1/matches", tags=["matches"])


@router.get("")
async def list_matches(
    date_str: Optional[str] = Query(
        None,
        alias="date",
        description="Date in YYYY-MM-DD format. Defaults to today (UTC).",
    ),
    store: SyncStore = Depends(get_store),
) -> dict[str, Any]:
    """List the day's matches ordered by kickoff, with their linked channel ids."""
    if date_str:
        try:
            target_date = date.fromisoformat(date_str)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid date format. Use YYYY-MM-DD.")
    else:
        target_date = utc_today()

    matches = await store.matches_for_date(target_date)
    return {
        "success": True,
        "data": {
            "date": target_date.isoformat(),
            "matches": [m.model_dump(mode="json") for m in matches],
            "total_count": len(matches),
        },
    }
