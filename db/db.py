"""
Async DB layer for the health tracker.
Uses SQLAlchemy 2.0 + asyncpg driver against the hosted Postgres instance;
no raw SQL strings in app code. Table names follow the hosted backend's
schema, attribute names follow ``app.types.health_contract``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, AsyncGenerator
from uuid import uuid4

from sqlalchemy import JSON, DateTime, Float, Index, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.ext.asyncio import (
    create_async_engine, async_sessionmaker, AsyncSession
)

from config import settings

# ──────────────────────────────────────────────────────────────────────
# 1. Declarative metadata
# ──────────────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    pass

# ──────────────────────────────────────────────────────────────────────
# 2. Lazy engine / session factory
# ──────────────────────────────────────────────────────────────────────
_engine = None
_session_maker: async_sessionmaker[AsyncSession] | None = None

def async_database_url() -> str:
    url = settings.database_url()
    if "+asyncpg" not in url:
        url = url.replace("postgres://", "postgresql+asyncpg://", 1).replace(
            "postgresql://", "postgresql+asyncpg://", 1
        )
    return url

def get_engine():
    global _engine
    if _engine is None:
        _engine = create_async_engine(async_database_url(), pool_size=5, max_overflow=5)
    return _engine

def get_session() -> AsyncGenerator[AsyncSession, None]:
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(get_engine(), expire_on_commit=False)
    async def _session_scope():
        async with _session_maker() as session:
            yield session
    return _session_scope()

def _uuid() -> str:
    return str(uuid4())

def _now() -> datetime:
    return datetime.now(timezone.utc)

Timestamp = DateTime(timezone=True)

# ──────────────────────────────────────────────────────────────────────
# 3. ORM models
# ──────────────────────────────────────────────────────────────────────

class VitalsRow(Base):
    __tablename__ = "health_data"

    id:               Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    owner_id:         Mapped[str] = mapped_column("user_id", String, index=True)
    heart_rate:       Mapped[float | None] = mapped_column(Float)
    systolic_bp:      Mapped[float | None] = mapped_column(Float)
    diastolic_bp:     Mapped[float | None] = mapped_column(Float)
    blood_sugar:      Mapped[float | None] = mapped_column(Float)
    blood_sugar_type: Mapped[str | None] = mapped_column(String(16))
    weight:           Mapped[float | None] = mapped_column(Float)
    temperature:      Mapped[float | None] = mapped_column(Float)
    sleep_hours:      Mapped[float | None] = mapped_column(Float)
    exercise_minutes: Mapped[float | None] = mapped_column(Float)
    steps:            Mapped[float | None] = mapped_column(Float)
    mood:             Mapped[str | None] = mapped_column(String)
    symptoms:         Mapped[str | None] = mapped_column(Text)
    medications:      Mapped[str | None] = mapped_column(Text)
    notes:            Mapped[str | None] = mapped_column(Text)
    created_at:       Mapped[datetime] = mapped_column(Timestamp, default=_now, server_default=func.now())

    __table_args__ = (Index("ix_health_data_user_created", "user_id", "created_at"),)


class SymptomRow(Base):
    __tablename__ = "symptoms"

    id:         Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    owner_id:   Mapped[str] = mapped_column("user_id", String, index=True)
    symptoms:   Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    notes:      Mapped[str | None] = mapped_column("additional_notes", Text)
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=_now, server_default=func.now())


class InsightRow(Base):
    __tablename__ = "health_insights"

    id:         Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    owner_id:   Mapped[str] = mapped_column("user_id", String, index=True)
    title:      Mapped[str] = mapped_column(String)
    body:       Mapped[str] = mapped_column(Text)
    # "metadata" is reserved on declarative classes
    meta:       Mapped[dict[str, Any]] = mapped_column("metadata", JSON, default=dict)
    source:     Mapped[str] = mapped_column(String(32), default="server")
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=_now, server_default=func.now())


class ReminderRow(Base):
    __tablename__ = "reminders"

    id:              Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    owner_id:        Mapped[str] = mapped_column("user_id", String, index=True)
    title:           Mapped[str] = mapped_column(String)
    description:     Mapped[str | None] = mapped_column(Text)
    remind_at:       Mapped[datetime] = mapped_column(Timestamp)
    repeat:          Mapped[str | None] = mapped_column(String(16), default="none")
    sent:            Mapped[bool] = mapped_column(default=False)
    sent_at:         Mapped[datetime | None] = mapped_column(Timestamp)
    recipient_email: Mapped[str | None] = mapped_column(String)
    caregiver_id:    Mapped[str | None] = mapped_column(String(36))
    created_at:      Mapped[datetime] = mapped_column(Timestamp, default=_now, server_default=func.now())

    __table_args__ = (Index("ix_reminders_sent_remind_at", "sent", "remind_at"),)


class CaregiverRow(Base):
    __tablename__ = "caregivers"

    id:                Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    patient_id:        Mapped[str] = mapped_column(String, index=True)
    name:              Mapped[str | None] = mapped_column(String)
    email:             Mapped[str | None] = mapped_column(String)
    phone:             Mapped[str | None] = mapped_column(String)
    caregiver_user_id: Mapped[str | None] = mapped_column(String)
    created_at:        Mapped[datetime] = mapped_column(Timestamp, default=_now, server_default=func.now())


class GoalRow(Base):
    __tablename__ = "health_goals"

    id:         Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    owner_id:   Mapped[str] = mapped_column("user_id", String, index=True)
    name:       Mapped[str] = mapped_column(String)
    metric:     Mapped[str] = mapped_column(String(32))
    target:     Mapped[float] = mapped_column("goal_value", Float)
    period:     Mapped[str | None] = mapped_column(String(16), default="daily")
    active:     Mapped[bool] = mapped_column(default=True)
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=_now, server_default=func.now())


class NotificationRow(Base):
    __tablename__ = "notifications"

    id:           Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    owner_id:     Mapped[str] = mapped_column("user_id", String, index=True)
    caregiver_id: Mapped[str | None] = mapped_column("caregiver_user_id", String)
    channel:      Mapped[str] = mapped_column(String(16), default="email")
    title:        Mapped[str] = mapped_column(String)
    body:         Mapped[str] = mapped_column(Text)
    status:       Mapped[str] = mapped_column(String(16), default="pending")
    meta:         Mapped[dict[str, Any]] = mapped_column("meta", JSON, default=dict)
    created_at:   Mapped[datetime] = mapped_column(Timestamp, default=_now, server_default=func.now())


# ──────────────────────────────────────────────────────────────────────
# 4. DDL helper (run once at startup or from Alembic)
# ──────────────────────────────────────────────────────────────────────
async def create_all():
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine():
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_maker = None


async def run_and_dispose(coro):
    """Await *coro*, then drop the pool so the next ``asyncio.run`` starts clean."""
    try:
        return await coro
    finally:
        await dispose_engine()
