from datetime import datetime, timedelta, timezone

import pytest

from app.utils import mailer
from app.workers import goals as goals_worker
from app.workers import reminder as reminder_worker
from config import ConfigurationError, settings


@pytest.fixture
def wired(monkeypatch, store, mail):
    monkeypatch.setattr(settings, "DATABASE_URL", "postgresql+asyncpg://test/db")
    monkeypatch.setattr(reminder_worker, "sql_store", lambda: store)
    monkeypatch.setattr(goals_worker, "sql_store", lambda: store)
    monkeypatch.setattr(mailer, "send_mail", mail)
    return store


def test_dispatch_and_handle(wired, mail):
    wired.caregivers.add("+10000000000", email="carer@example.com")
    wired.reminders.add(
        owner_id="+10000000000",
        title="test msg",
        remind_at=datetime.now(tz=timezone.utc) - timedelta(minutes=1),
    )

    # Run dispatch synchronously
    result = reminder_worker.dispatch_due.apply(args=()).get()

    assert result["processed"] == 1
    assert mail.calls, "E-mail should have been sent"
    assert mail.calls[0]["subject"] == "Reminder: test msg"


def test_goal_and_summary_tasks(wired):
    wired.goals.add(owner_id="u1", name="Walk", metric="steps", target=10000)
    wired.vitals.add("u1", datetime.now(tz=timezone.utc) - timedelta(hours=1), steps=500)

    goals = goals_worker.check_goals.apply(args=()).get()
    weekly = goals_worker.weekly_summary.apply(args=()).get()

    assert goals["results"][0]["missed"] is True
    assert weekly["processed"] == 1


def test_task_fails_fast_without_store_configuration(monkeypatch):
    monkeypatch.setattr(settings, "DATABASE_URL", None)
    monkeypatch.setattr(settings, "DATABASE_PUBLIC_URL", None)

    with pytest.raises(ConfigurationError):
        reminder_worker.dispatch_due.apply(args=()).get()
