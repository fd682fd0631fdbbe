"""
Storage collaborator for the sync pipeline.

SyncStore is the contract the planner and orchestrator depend on;
SqlSyncStore implements it on the SQLAlchemy async engine.
"""
from __future__ import annotations

import abc
from datetime import date, timezone
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from shared.models.domain import Match, SyncRun, UpsertCounts
from shared.models.enums import SyncStatus
from shared.models.orm import AppSettingORM, MatchORM, SyncLogORM
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger

logger = get_logger(__name__)

LAST_SYNC_DATE_KEY = "last_sync_date"

# Keeps each statement well below the PostgreSQL bind-parameter limit.
UPSERT_CHUNK_SIZE = 500


class SyncStore(abc.ABC):
    """Persistence operations used by synchronization and the admin endpoints."""

    @abc.abstractmethod
    async def upsert_matches(self, matches: list[Match]) -> UpsertCounts:
        """Insert new matches and fully replace synced fields of existing ones, keyed on match_id."""
        ...

    @abc.abstractmethod
    async def has_matches_for_date(self, day: date) -> bool:
        ...

    @abc.abstractmethod
    async def matches_for_date(self, day: date) -> list[Match]:
        ...

    @abc.abstractmethod
    async def record_run(self, run: SyncRun) -> SyncRun:
        """Create the run log entry (``run.id is None``) or update an existing one."""
        ...

    @abc.abstractmethod
    async def recent_runs(self, limit: int = 10) -> list[SyncRun]:
        ...

    @abc.abstractmethod
    async def get_setting(self, key: str) -> Any:
        ...

    @abc.abstractmethod
    async def set_setting(self, key: str, value: Any) -> None:
        ...


def _dedupe(matches: list[Match]) -> list[Match]:
    """Last record wins when one fixture shows up twice in a batch."""
    by_id: dict[str, Match] = {}
    for match in matches:
        by_id[match.match_id] = match
    return list(by_id.values())


def _to_match(row: MatchORM) -> Match:
    data = {name: getattr(row, name) for name in Match.model_fields if name != "channels"}
    if data["kickoff_time"].tzinfo is None:
        data["kickoff_time"] = data["kickoff_time"].replace(tzinfo=timezone.utc)
    data["channels"] = [channel.id for channel in row.channels]
    return Match.model_validate(data)


class SqlSyncStore(SyncStore):
    """SyncStore backed by the relational schema in shared.models.orm."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    def _insert(self, table: Any) -> Any:
        if self._db.dialect_name == "sqlite":
            return sqlite_insert(table)
        return pg_insert(table)

    async def upsert_matches(self, matches: list[Match]) -> UpsertCounts:
        if not matches:
            return UpsertCounts()

        rows = [m.synced_fields() for m in _dedupe(matches)]
        ids = [row["match_id"] for row in rows]

        async with self._db.write_session() as session:
            existing: set[str] = set()
            for i in range(0, len(ids), UPSERT_CHUNK_SIZE):
                chunk = ids[i : i + UPSERT_CHUNK_SIZE]
                result = await session.execute(
                    select(MatchORM.match_id).where(MatchORM.match_id.in_(chunk))
                )
                existing.update(result.scalars().all())

            for i in range(0, len(rows), UPSERT_CHUNK_SIZE):
                stmt = self._insert(MatchORM).values(rows[i : i + UPSERT_CHUNK_SIZE])
                replace = {col: stmt.excluded[col] for col in rows[0] if col != "match_id"}
                replace["updated_at"] = func.now()
                stmt = stmt.on_conflict_do_update(index_elements=["match_id"], set_=replace)
                await session.execute(stmt)

        counts = UpsertCounts(inserted=len(ids) - len(existing), updated=len(existing))
        logger.info("matches_upserted", inserted=counts.inserted, updated=counts.updated)
        return counts

    async def has_matches_for_date(self, day: date) -> bool:
        async with self._db.read_session() as session:
            result = await session.execute(
                select(MatchORM.id).where(MatchORM.fixture_date == day).limit(1)
            )
            return result.first() is not None

    async def matches_for_date(self, day: date) -> list[Match]:
        async with self._db.read_session() as session:
            result = await session.execute(
                select(MatchORM)
                .where(MatchORM.fixture_date == day)
                .order_by(MatchORM.kickoff_time, MatchORM.match_id)
            )
            return [_to_match(row) for row in result.scalars().all()]

    async def record_run(self, run: SyncRun) -> SyncRun:
        async with self._db.write_session() as session:
            if run.id is None:
                row = SyncLogORM(started_at=run.started_at)
                session.add(row)
            else:
                row = await session.get(SyncLogORM, run.id)
                if row is None:
                    raise LookupError(f"Sync run {run.id} does not exist")
                if SyncStatus(row.status).is_terminal:
                    raise ValueError(f"Sync run {run.id} is already {row.status}")
            row.status = run.status.value
            row.completed_at = run.completed_at
            row.matches_fetched = run.matches_fetched
            row.matches_inserted = run.matches_inserted
            row.matches_updated = run.matches_updated
            row.error_message = run.error_message
            await session.flush()
            return run.model_copy(update={"id": row.id})

    async def recent_runs(self, limit: int = 10) -> list[SyncRun]:
        async with self._db.read_session() as session:
            result = await session.execute(
                select(SyncLogORM)
                .order_by(SyncLogORM.started_at.desc(), SyncLogORM.id.desc())
                .limit(limit)
            )
            return [SyncRun.model_validate(row) for row in result.scalars().all()]

    async def get_setting(self, key: str) -> Any:
        async with self._db.read_session() as session:
            row: Optional[AppSettingORM] = await session.get(AppSettingORM, key)
            return row.key_value if row else None

    async def set_setting(self, key: str, value: Any) -> None:
        stmt = self._insert(AppSettingORM).values(key_name=key, key_value=value)
        stmt = stmt.on_conflict_do_update(
            index_elements=["key_name"],
            set_={"key_value": stmt.excluded.key_value, "updated_at": func.now()},
        )
        async with self._db.write_session() as session:
            await session.execute(stmt)
        logger.debug("setting_saved", key=key)
