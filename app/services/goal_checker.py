"""Goal-compliance checker.

For every active goal, derive the tracked metric over the goal's current
period window and insert an immediate "goal missed" reminder when the goal
is not met. Weight goals are upper bounds checked against the latest
reading; every other metric is a minimum checked against the period sum.

Runs do not de-duplicate: two runs inside the same period insert two
reminders for the same missed goal.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from app.types.health_contract import Goal, GoalResult, ReminderIn, RunSummary
from app.utils.periods import ensure_aware, period_start

_LOGGER = logging.getLogger(__name__)

LATEST_VALUE_METRICS = frozenset({"weight"})


async def metric_value(store, goal: Goal, since: datetime) -> Optional[float]:
    """Latest or summed metric value; ``None`` when it cannot be determined."""
    try:
        if goal.metric in LATEST_VALUE_METRICS:
            return await store.vitals.latest_value(goal.owner_id, goal.metric)
        return await store.vitals.sum_since(goal.owner_id, goal.metric, since)
    except Exception as e:  # noqa: BLE001
        _LOGGER.warning("Failed to fetch %s for goal %s: %s", goal.metric, goal.id, e)
        return None


def is_missed(goal: Goal, value: Optional[float]) -> bool:
    if value is None:
        return True
    if goal.metric in LATEST_VALUE_METRICS:
        return value > goal.target
    return value < goal.target


def _fmt(value: Optional[float]) -> str:
    return f"{(value or 0):g}"


def missed_reminder(goal: Goal, value: Optional[float], since: datetime, now: datetime) -> ReminderIn:
    return ReminderIn(
        owner_id=goal.owner_id,
        title=f"Goal missed: {goal.name}",
        description=(
            f"You set a {goal.period} goal of {_fmt(goal.target)} {goal.metric}. "
            f"You logged {_fmt(value)} so far since {since.isoformat()}. Keep going!"
        ),
        remind_at=now,
        repeat="none",
    )


async def _check(store, goal: Goal, now: datetime) -> GoalResult:
    since = period_start(goal.period, now)
    value = await metric_value(store, goal, since)
    missed = is_missed(goal, value)
    result = GoalResult(
        goal_id=goal.id,
        owner_id=goal.owner_id,
        metric=goal.metric,
        target=goal.target,
        value=value,
        period_start=since,
        missed=missed,
    )
    if not missed:
        _LOGGER.info("Goal met for user %s (%s)", goal.owner_id, goal.name)
        return result

    try:
        reminder = await store.reminders.insert(missed_reminder(goal, value, since, now))
        result.reminder_id = reminder.id
        _LOGGER.info("Inserted reminder for %s: Goal missed: %s", goal.owner_id, goal.name)
    except Exception as e:  # noqa: BLE001
        _LOGGER.error("Failed to insert reminder for goal %s: %s", goal.id, e)
        result.error = str(e)
    return result


async def check_goals(store, now: Optional[datetime] = None) -> RunSummary:
    """Evaluate every active goal once. Raises only if the goal fetch fails."""
    now = ensure_aware(now or datetime.now(timezone.utc))
    goals = await store.goals.active()
    _LOGGER.info("Active goals count: %d", len(goals))

    results: List[GoalResult] = []
    for goal in goals:
        if not goal.owner_id:
            continue
        try:
            results.append(await _check(store, goal, now))
        except Exception as e:  # noqa: BLE001
            _LOGGER.exception("Unexpected failure checking goal %s", goal.id)
            results.append(GoalResult(
                goal_id=goal.id,
                owner_id=goal.owner_id,
                metric=goal.metric,
                target=goal.target,
                period_start=now,
                missed=True,
                error=str(e),
            ))
    return RunSummary.of(results)
