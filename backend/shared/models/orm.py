"""
SQLAlchemy 2.0 ORM models for Matchcast.
Column types stay dialect-neutral so the same schema runs on PostgreSQL and SQLite.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


match_channels = Table(
    "match_channels",
    Base.metadata,
    Column("match_pk", Integer, ForeignKey("matches.id", ondelete="CASCADE"), primary_key=True),
    Column("channel_id", Integer, ForeignKey("channels.id", ondelete="CASCADE"), primary_key=True),
    Column("position", Integer, nullable=False, default=0),
)


class ChannelORM(Base):
    __tablename__ = "channels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    logo_url: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class MatchORM(Base):
    __tablename__ = "matches"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    match_id: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)
    external_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    league_id: Mapped[Optional[int]] = mapped_column(Integer, index=True)
    fixture_date: Mapped[date] = mapped_column(Date, index=True, nullable=False)
    kickoff_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="NS")
    status_text: Mapped[str] = mapped_column(String(50), nullable=False, default="Not Started")
    home_team_name: Mapped[str] = mapped_column(String(200), nullable=False)
    home_team_logo: Mapped[Optional[str]] = mapped_column(Text)
    home_team_goals: Mapped[Optional[int]] = mapped_column(Integer)
    away_team_name: Mapped[str] = mapped_column(String(200), nullable=False)
    away_team_logo: Mapped[Optional[str]] = mapped_column(Text)
    away_team_goals: Mapped[Optional[int]] = mapped_column(Integer)
    competition_name: Mapped[str] = mapped_column(String(200), nullable=False)
    competition_logo: Mapped[Optional[str]] = mapped_column(Text)
    competition_country: Mapped[Optional[str]] = mapped_column(String(100))
    venue_name: Mapped[Optional[str]] = mapped_column(String(200))
    venue_city: Mapped[Optional[str]] = mapped_column(String(100))
    referee: Mapped[Optional[str]] = mapped_column(String(200))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    channels: Mapped[list["ChannelORM"]] = relationship(
        secondary=match_channels,
        order_by=match_channels.c.position,
        lazy="selectin",
    )


class SyncLogORM(Base):
    __tablename__ = "sync_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="running")
    matches_fetched: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    matches_inserted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    matches_updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_message: Mapped[Optional[str]] = mapped_column(Text)


class AppSettingORM(Base):
    __tablename__ = "app_settings"

    key_name: Mapped[str] = mapped_column(String(100), primary_key=True)
    key_value: Mapped[Any] = mapped_column(JSON)
    description: Mapped[Optional[str]] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
