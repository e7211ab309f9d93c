"""
Narrow per-entity repositories over the ORM rows in ``db.db``.

Batch jobs and the write path only ever see these methods and the pydantic
contract types, never SQLAlchemy rows. Tests swap in in-memory doubles with
the same method names via :class:`Store`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import delete, distinct, func, select, update

from app.types.health_contract import (
    METRIC_FIELDS,
    Caregiver,
    CaregiverIn,
    Goal,
    Insight,
    InsightIn,
    Notification,
    NotificationIn,
    NotificationStatus,
    Reminder,
    ReminderIn,
    SymptomEntry,
    SymptomEntryIn,
    VitalsReading,
    VitalsReadingIn,
)
from db.db import (
    CaregiverRow,
    GoalRow,
    InsightRow,
    NotificationRow,
    ReminderRow,
    SymptomRow,
    VitalsRow,
    get_session,
)


def _new_id() -> str:
    return str(uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ──────────────────────────────────────────────────────────────────────
# Readings
# ──────────────────────────────────────────────────────────────────────

class VitalsRepository:
    async def insert(self, reading: VitalsReadingIn) -> VitalsReading:
        row = VitalsRow(id=_new_id(), created_at=_now(), **reading.model_dump())
        async for s in get_session():
            s.add(row)
            await s.commit()
        return VitalsReading.model_validate(row)

    async def latest_value(self, owner_id: str, metric: str) -> float | None:
        """Most recent non-null value of *metric* for the owner."""
        if metric not in METRIC_FIELDS:
            return None
        column = getattr(VitalsRow, metric)
        async for s in get_session():
            stmt = (
                select(column)
                .where(VitalsRow.owner_id == owner_id, column.is_not(None))
                .order_by(VitalsRow.created_at.desc())
                .limit(1)
            )
            value = (await s.execute(stmt)).scalar_one_or_none()
            return float(value) if value is not None else None

    async def sum_since(self, owner_id: str, metric: str, since: datetime) -> float | None:
        """Sum of *metric* over readings logged at or after *since* (0 when none)."""
        if metric not in METRIC_FIELDS:
            return None
        column = getattr(VitalsRow, metric)
        async for s in get_session():
            stmt = select(func.coalesce(func.sum(column), 0)).where(
                VitalsRow.owner_id == owner_id,
                VitalsRow.created_at >= since,
            )
            return float((await s.execute(stmt)).scalar_one())

    async def list_since(self, owner_id: str, since: datetime) -> list[VitalsReading]:
        async for s in get_session():
            stmt = (
                select(VitalsRow)
                .where(VitalsRow.owner_id == owner_id, VitalsRow.created_at >= since)
                .order_by(VitalsRow.created_at.desc())
            )
            res = await s.execute(stmt)
            return [VitalsReading.model_validate(r) for r in res.scalars()]

    async def owners_since(self, since: datetime) -> list[str]:
        async for s in get_session():
            stmt = (
                select(distinct(VitalsRow.owner_id))
                .where(VitalsRow.created_at >= since)
                .order_by(VitalsRow.owner_id)
            )
            res = await s.execute(stmt)
            return list(res.scalars())


class SymptomRepository:
    async def insert(self, entry: SymptomEntryIn) -> SymptomEntry:
        data = entry.model_dump()
        row = SymptomRow(id=_new_id(), created_at=_now(), **data)
        async for s in get_session():
            s.add(row)
            await s.commit()
        return SymptomEntry.model_validate(row)


class InsightRepository:
    async def insert(self, insight: InsightIn) -> Insight:
        data = insight.model_dump()
        row = InsightRow(
            id=_new_id(),
            created_at=_now(),
            meta=data.pop("metadata"),
            **data,
        )
        async for s in get_session():
            s.add(row)
            await s.commit()
        return Insight.model_validate(row)


# ──────────────────────────────────────────────────────────────────────
# Reminders
# ──────────────────────────────────────────────────────────────────────

class ReminderRepository:
    async def fetch_due(self, now: datetime, limit: int | None = None) -> list[Reminder]:
        async for s in get_session():
            stmt = (
                select(ReminderRow)
                .where(ReminderRow.sent.is_(False), ReminderRow.remind_at <= now)
                .order_by(ReminderRow.remind_at, ReminderRow.id)
            )
            if limit:
                stmt = stmt.limit(limit)
            res = await s.execute(stmt)
            return [Reminder.model_validate(r) for r in res.scalars()]

    async def insert(self, reminder: ReminderIn) -> Reminder:
        row = ReminderRow(id=_new_id(), created_at=_now(), **reminder.model_dump())
        async for s in get_session():
            s.add(row)
            await s.commit()
        return Reminder.model_validate(row)

    async def reschedule(self, reminder_id: str, remind_at: datetime) -> None:
        async for s in get_session():
            await s.execute(
                update(ReminderRow)
                .where(ReminderRow.id == reminder_id)
                .values(remind_at=remind_at)
            )
            await s.commit()

    async def mark_sent(self, reminder_id: str, sent_at: datetime) -> None:
        async for s in get_session():
            await s.execute(
                update(ReminderRow)
                .where(ReminderRow.id == reminder_id)
                .values(sent=True, sent_at=sent_at)
            )
            await s.commit()

    async def upcoming(self, owner_id: str, limit: int | None = None) -> list[Reminder]:
        """Unsent reminders of one owner, soonest first."""
        async for s in get_session():
            stmt = (
                select(ReminderRow)
                .where(ReminderRow.owner_id == owner_id, ReminderRow.sent.is_(False))
                .order_by(ReminderRow.remind_at, ReminderRow.id)
            )
            if limit:
                stmt = stmt.limit(limit)
            res = await s.execute(stmt)
            return [Reminder.model_validate(r) for r in res.scalars()]

    async def set_sent(self, reminder_id: str, owner_id: str, sent: bool) -> bool:
        async for s in get_session():
            res = await s.execute(
                update(ReminderRow)
                .where(ReminderRow.id == reminder_id, ReminderRow.owner_id == owner_id)
                .values(sent=sent, sent_at=_now() if sent else None)
            )
            await s.commit()
            return res.rowcount > 0

    async def delete(self, reminder_id: str, owner_id: str) -> bool:
        async for s in get_session():
            res = await s.execute(
                delete(ReminderRow).where(
                    ReminderRow.id == reminder_id, ReminderRow.owner_id == owner_id
                )
            )
            await s.commit()
            return res.rowcount > 0


class CaregiverRepository:
    async def for_patient(self, patient_id: str) -> list[Caregiver]:
        async for s in get_session():
            stmt = (
                select(CaregiverRow)
                .where(CaregiverRow.patient_id == patient_id)
                .order_by(CaregiverRow.created_at)
            )
            res = await s.execute(stmt)
            return [Caregiver.model_validate(r) for r in res.scalars()]

    async def insert(self, caregiver: CaregiverIn) -> Caregiver:
        row = CaregiverRow(id=_new_id(), created_at=_now(), **caregiver.model_dump())
        async for s in get_session():
            s.add(row)
            await s.commit()
        return Caregiver.model_validate(row)

    async def delete(self, caregiver_id: str, patient_id: str) -> bool:
        async for s in get_session():
            res = await s.execute(
                delete(CaregiverRow).where(
                    CaregiverRow.id == caregiver_id, CaregiverRow.patient_id == patient_id
                )
            )
            await s.commit()
            return res.rowcount > 0


class GoalRepository:
    async def active(self) -> list[Goal]:
        async for s in get_session():
            stmt = select(GoalRow).where(GoalRow.active.is_(True)).order_by(GoalRow.id)
            res = await s.execute(stmt)
            return [Goal.model_validate(r) for r in res.scalars()]


class NotificationRepository:
    async def insert(self, notification: NotificationIn) -> Notification:
        data = notification.model_dump()
        row = NotificationRow(
            id=_new_id(),
            created_at=_now(),
            meta=data.pop("metadata"),
            **data,
        )
        async for s in get_session():
            s.add(row)
            await s.commit()
        return Notification.model_validate(row)

    async def set_status(self, notification_id: str, status: NotificationStatus) -> None:
        async for s in get_session():
            await s.execute(
                update(NotificationRow)
                .where(NotificationRow.id == notification_id)
                .values(status=status)
            )
            await s.commit()


# ──────────────────────────────────────────────────────────────────────
# Bundle
# ──────────────────────────────────────────────────────────────────────

@dataclass
class Store:
    """Every repository a job or request handler may touch."""

    vitals: Any = field(default_factory=VitalsRepository)
    symptoms: Any = field(default_factory=SymptomRepository)
    insights: Any = field(default_factory=InsightRepository)
    reminders: Any = field(default_factory=ReminderRepository)
    caregivers: Any = field(default_factory=CaregiverRepository)
    goals: Any = field(default_factory=GoalRepository)
    notifications: Any = field(default_factory=NotificationRepository)


def sql_store() -> Store:
    return Store()
