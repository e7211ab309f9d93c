"""Celery application instance shared across the backend.

Start a worker and the beat scheduler with:
    celery -A app.celery_app worker -Q jobs -l info --concurrency=1
    celery -A app.celery_app beat -l info

Each batch job is one task; runs must not overlap, so the worker serving the
``jobs`` queue runs with a concurrency of 1.
"""

from celery import Celery
from celery.schedules import crontab

from config import settings

celery_app = Celery("health_guardian", broker=settings.REDIS_URL, backend=settings.REDIS_URL)

# Global task settings
celery_app.conf.task_acks_late = True
celery_app.conf.task_reject_on_worker_lost = True
celery_app.conf.timezone = settings.DEFAULT_TIMEZONE

celery_app.conf.task_routes = {
    "app.workers.reminder.dispatch_due": {"queue": "jobs"},
    "app.workers.goals.check_goals": {"queue": "jobs"},
    "app.workers.goals.weekly_summary": {"queue": "jobs"},
}

celery_app.conf.beat_schedule = {
    "dispatch-due-reminders": {
        "task": "app.workers.reminder.dispatch_due",
        "schedule": settings.REMINDER_SCAN_INTERVAL,
    },
    "check-goals": {
        "task": "app.workers.goals.check_goals",
        "schedule": crontab(hour=settings.GOAL_CHECK_HOUR, minute=0),
    },
    "weekly-summary": {
        "task": "app.workers.goals.weekly_summary",
        "schedule": crontab(hour=8, minute=0, day_of_week="mon"),
    },
}

# --- Ensure tasks are registered ---
import app.workers.reminder  # noqa: E402,F401
import app.workers.goals  # noqa: E402,F401
