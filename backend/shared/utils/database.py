"""
Async database access on the SQLAlchemy 2.0 async engine.

PostgreSQL (asyncpg) in deployments, SQLite (aiosqlite) in tests. The same
ORM metadata is used for both, and create_schema() builds any missing table.
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from shared.config import Settings, get_settings
from shared.models.orm import Base
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# Startup may race the database container becoming ready.
CONNECT_RETRY_ATTEMPTS = 10
CONNECT_RETRY_BASE_DELAY_S = 2.0


async def connect_with_retry(connect_fn: Callable[[], Awaitable[None]], name: str) -> None:
    """Await ``connect_fn`` until it succeeds, doubling the pause between attempts."""
    for attempt in range(1, CONNECT_RETRY_ATTEMPTS + 1):
        try:
            await connect_fn()
            return
        except Exception as exc:
            if attempt == CONNECT_RETRY_ATTEMPTS:
                logger.error("connect_failed", name=name, attempts=attempt, error=str(exc))
                raise
            delay = CONNECT_RETRY_BASE_DELAY_S * (2 ** (attempt - 1))
            logger.warning(
                "connect_retry",
                name=name,
                attempt=attempt,
                max_attempts=CONNECT_RETRY_ATTEMPTS,
                delay_s=delay,
                error=str(exc),
            )
            await asyncio.sleep(delay)


class DatabaseManager:
    """Owns the async engine and hands out read and write sessions."""

    def __init__(self, settings: Settings | None = None, url: str | None = None) -> None:
        self._settings = settings or get_settings()
        self._url = url or self._settings.database_url
        self._engine: Optional[AsyncEngine] = None
        self._sessions: Optional[async_sessionmaker[AsyncSession]] = None

    def _engine_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {"echo": self._settings.debug}
        if self._url.startswith("sqlite"):
            return options
        options.update(
            pool_size=self._settings.db_pool_min,
            max_overflow=max(0, self._settings.db_pool_max - self._settings.db_pool_min),
            pool_pre_ping=True,
            pool_recycle=300,
            connect_args={
                "timeout": self._settings.db_command_timeout,
                "command_timeout": self._settings.db_command_timeout,
            },
        )
        return options

    async def connect(self) -> None:
        """Create the engine and verify one round trip."""
        engine = create_async_engine(self._url, **self._engine_options())
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception:
            await engine.dispose()
            raise
        self._engine = engine
        self._sessions = async_sessionmaker(engine, expire_on_commit=False)
        logger.info("database_connected", dialect=engine.dialect.name)

    async def disconnect(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._sessions = None
            logger.info("database_disconnected")

    async def create_schema(self) -> None:
        """Create any missing tables; existing ones are left untouched."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database_schema_ready", tables=sorted(Base.metadata.tables))

    async def ping(self) -> bool:
        try:
            async with self.read_session() as session:
                await session.execute(text("SELECT 1"))
        except Exception as exc:
            logger.warning("database_ping_failed", error=str(exc))
            return False
        return True

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database not connected; call connect() first")
        return self._engine

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def _factory(self) -> async_sessionmaker[AsyncSession]:
        if self._sessions is None:
            raise RuntimeError("Database not connected; call connect() first")
        return self._sessions

    @asynccontextmanager
    async def read_session(self) -> AsyncIterator[AsyncSession]:
        """Session for queries; nothing is committed."""
        async with self._factory()() as session:
            yield session

    @asynccontextmanager
    async def write_session(self) -> AsyncIterator[AsyncSession]:
        """Session inside one transaction: committed on exit, rolled back on error."""
        async with self._factory()() as session, session.begin():
            yield session
