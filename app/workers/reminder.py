"""Celery task wrapping the due-reminder dispatcher."""

from __future__ import annotations

import asyncio

from app.celery_app import celery_app
from app.services.reminder_dispatcher import dispatch_due_reminders
from config import settings
from db.db import run_and_dispose
from db.repositories import sql_store


# ---------------------------------------------------------------------------
# Celery Tasks
# ---------------------------------------------------------------------------

@celery_app.task(name="app.workers.reminder.dispatch_due", bind=True)
def dispatch_due(self) -> dict:  # noqa: D401
    """Send every due reminder once; no retry, the next beat tick is the retry."""
    settings.database_url()
    summary = asyncio.run(run_and_dispose(dispatch_due_reminders(sql_store())))
    return summary.model_dump(mode="json")
