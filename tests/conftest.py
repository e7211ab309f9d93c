"""In-memory repositories with the same surface as ``db.repositories``."""

from __future__ import annotations

from datetime import datetime, timezone
from itertools import count

import pytest

from app.types.health_contract import (
    METRIC_FIELDS,
    Caregiver,
    Goal,
    Insight,
    Notification,
    Reminder,
    SymptomEntry,
    VitalsReading,
)
from app.utils.mailer import MailResult
from config import settings
from db.repositories import Store

_ids = count(1)


def _id(prefix: str) -> str:
    return f"{prefix}-{next(_ids)}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class FakeVitals:
    def __init__(self):
        self.rows: list[VitalsReading] = []

    def add(self, owner_id: str, created_at: datetime, **fields) -> VitalsReading:
        row = VitalsReading(id=_id("v"), owner_id=owner_id, created_at=created_at, **fields)
        self.rows.append(row)
        return row

    async def insert(self, reading):
        return self.add(created_at=_now(), **reading.model_dump())

    def _for(self, owner_id):
        return [r for r in self.rows if r.owner_id == owner_id]

    async def latest_value(self, owner_id, metric):
        if metric not in METRIC_FIELDS:
            return None
        rows = [r for r in self._for(owner_id) if getattr(r, metric) is not None]
        rows.sort(key=lambda r: r.created_at)
        return getattr(rows[-1], metric) if rows else None

    async def sum_since(self, owner_id, metric, since):
        if metric not in METRIC_FIELDS:
            return None
        return float(sum(
            getattr(r, metric) or 0 for r in self._for(owner_id) if r.created_at >= since
        ))

    async def list_since(self, owner_id, since):
        return [r for r in self._for(owner_id) if r.created_at >= since]

    async def owners_since(self, since):
        return sorted({r.owner_id for r in self.rows if r.created_at >= since})


class FakeSymptoms:
    def __init__(self):
        self.rows: list[SymptomEntry] = []

    async def insert(self, entry):
        row = SymptomEntry(id=_id("s"), created_at=_now(), **entry.model_dump())
        self.rows.append(row)
        return row


class FakeInsights:
    def __init__(self):
        self.rows: list[Insight] = []

    async def insert(self, insight):
        row = Insight(id=_id("i"), created_at=_now(), **insight.model_dump())
        self.rows.append(row)
        return row


class FakeReminders:
    def __init__(self):
        self.rows: dict[str, Reminder] = {}

    def add(self, **fields) -> Reminder:
        fields.setdefault("id", _id("r"))
        fields.setdefault("title", "Take medication")
        row = Reminder(**fields)
        self.rows[row.id] = row
        return row

    async def fetch_due(self, now, limit=None):
        due = [r for r in self.rows.values() if not r.sent and r.remind_at <= now]
        due.sort(key=lambda r: (r.remind_at, r.id))
        return due[:limit] if limit else due

    async def insert(self, reminder):
        row = Reminder(id=_id("r"), created_at=_now(), **reminder.model_dump())
        self.rows[row.id] = row
        return row

    async def reschedule(self, reminder_id, remind_at):
        self.rows[reminder_id] = self.rows[reminder_id].model_copy(update={"remind_at": remind_at})

    async def mark_sent(self, reminder_id, sent_at):
        self.rows[reminder_id] = self.rows[reminder_id].model_copy(
            update={"sent": True, "sent_at": sent_at}
        )

    async def upcoming(self, owner_id, limit=None):
        rows = [r for r in self.rows.values() if r.owner_id == owner_id and not r.sent]
        rows.sort(key=lambda r: (r.remind_at, r.id))
        return rows[:limit] if limit else rows

    async def set_sent(self, reminder_id, owner_id, sent):
        row = self.rows.get(reminder_id)
        if row is None or row.owner_id != owner_id:
            return False
        self.rows[reminder_id] = row.model_copy(
            update={"sent": sent, "sent_at": _now() if sent else None}
        )
        return True

    async def delete(self, reminder_id, owner_id):
        row = self.rows.get(reminder_id)
        if row is None or row.owner_id != owner_id:
            return False
        del self.rows[reminder_id]
        return True


class FakeCaregivers:
    def __init__(self):
        self.rows: list[Caregiver] = []

    def add(self, patient_id: str, **fields) -> Caregiver:
        row = Caregiver(id=_id("c"), patient_id=patient_id, **fields)
        self.rows.append(row)
        return row

    async def for_patient(self, patient_id):
        return [c for c in self.rows if c.patient_id == patient_id]

    async def insert(self, caregiver):
        row = Caregiver(id=_id("c"), created_at=_now(), **caregiver.model_dump())
        self.rows.append(row)
        return row

    async def delete(self, caregiver_id, patient_id):
        for row in self.rows:
            if row.id == caregiver_id and row.patient_id == patient_id:
                self.rows.remove(row)
                return True
        return False


class FakeGoals:
    def __init__(self):
        self.rows: list[Goal] = []

    def add(self, **fields) -> Goal:
        fields.setdefault("id", _id("g"))
        row = Goal(**fields)
        self.rows.append(row)
        return row

    async def active(self):
        return [g for g in self.rows if g.active]


class FakeNotifications:
    def __init__(self):
        self.rows: dict[str, Notification] = {}

    async def insert(self, notification):
        row = Notification(id=_id("n"), created_at=_now(), **notification.model_dump())
        self.rows[row.id] = row
        return row

    async def set_status(self, notification_id, status):
        self.rows[notification_id] = self.rows[notification_id].model_copy(
            update={"status": status}
        )


class RecordingMailer:
    """Stands in for ``send_mail``; records every call."""

    def __init__(self, ok: bool = True):
        self.ok = ok
        self.calls: list[dict] = []

    def __call__(self, to, subject, text, html=None):
        self.calls.append({"to": to, "subject": subject, "text": text, "html": html})
        return MailResult(ok=self.ok, status=200 if self.ok else 502)


@pytest.fixture
def store() -> Store:
    return Store(
        vitals=FakeVitals(),
        symptoms=FakeSymptoms(),
        insights=FakeInsights(),
        reminders=FakeReminders(),
        caregivers=FakeCaregivers(),
        goals=FakeGoals(),
        notifications=FakeNotifications(),
    )


@pytest.fixture
def mail() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    monkeypatch.setattr(settings, "DEFAULT_TIMEZONE", "UTC")
    monkeypatch.setattr(settings, "MAILER_URL", None)
    monkeypatch.setattr(settings, "MAILER_API_KEY", None)
    monkeypatch.setattr(settings, "TELNYX_API_KEY", None)
    monkeypatch.setattr(settings, "TELNYX_FROM_NUMBER", None)
