"""Celery tasks for the goal checker and the weekly summary."""

from __future__ import annotations

import asyncio

from app.celery_app import celery_app
from app.services.goal_checker import check_goals as run_goal_check
from app.services.weekly_summary import build_weekly_summaries
from config import settings
from db.db import run_and_dispose
from db.repositories import sql_store


@celery_app.task(name="app.workers.goals.check_goals", bind=True)
def check_goals(self) -> dict:  # noqa: D401
    settings.database_url()
    return asyncio.run(run_and_dispose(run_goal_check(sql_store()))).model_dump(mode="json")


@celery_app.task(name="app.workers.goals.weekly_summary", bind=True)
def weekly_summary(self) -> dict:  # noqa: D401
    settings.database_url()
    return asyncio.run(run_and_dispose(build_weekly_summaries(sql_store()))).model_dump(mode="json")
