"""Calendar helpers shared by the batch jobs.

All arithmetic happens on timezone-aware datetimes. Period windows are
computed in the reference timezone (``settings.DEFAULT_TIMEZONE``) so runs on
different hosts agree on where "today" starts.
"""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from config import settings

UTC = timezone.utc


def reference_tz() -> ZoneInfo:
    return ZoneInfo(settings.DEFAULT_TIMEZONE or "UTC")


def ensure_aware(dt: datetime) -> datetime:
    """Treat naive datetimes coming back from the store as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def add_months(dt: datetime, months: int) -> datetime:
    """Shift by whole calendar months, clamping the day to the target month's end."""
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def next_occurrence(remind_at: datetime, repeat: str | None) -> datetime | None:
    """Advance a due timestamp by one repeat interval; ``None`` for one-off reminders."""
    if not repeat or repeat == "none":
        return None
    remind_at = ensure_aware(remind_at)
    if repeat == "daily":
        return remind_at + timedelta(days=1)
    if repeat == "weekly":
        return remind_at + timedelta(days=7)
    if repeat == "monthly":
        return add_months(remind_at, 1)
    raise ValueError(f"unknown repeat policy '{repeat}'")


def period_start(period: str | None, now: datetime, tz: ZoneInfo | None = None) -> datetime:
    """Start of the daily / weekly (Monday) / monthly window containing *now*.

    Unknown periods fall back to daily.
    """
    tz = tz or reference_tz()
    local = ensure_aware(now).astimezone(tz)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "weekly":
        midnight -= timedelta(days=midnight.weekday())
    elif period == "monthly":
        midnight = midnight.replace(day=1)
    # Re-anchor in case the subtraction crossed a DST boundary.
    return datetime(midnight.year, midnight.month, midnight.day, tzinfo=tz)
