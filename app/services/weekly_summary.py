"""Weekly summary: one Insight per owner who logged vitals in the last 7 days."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from app.services import risk
from app.services.insights import record_insight
from app.types.health_contract import RunSummary, SummaryResult
from app.utils.periods import ensure_aware

_LOGGER = logging.getLogger(__name__)

WINDOW = timedelta(days=7)


def _v(value) -> str:
    return "-" if value is None else f"{value:g}"


async def _summarise(store, owner_id: str, since: datetime) -> SummaryResult:
    rows = await store.vitals.list_since(owner_id, since)
    if not rows:
        return SummaryResult(owner_id=owner_id, readings=0)
    latest = max(rows, key=lambda r: ensure_aware(r.created_at))
    risks = risk.compute_risks(latest)
    body = (
        f"Weekly summary: {len(rows)} readings. Latest vitals: "
        f"HR:{_v(latest.heart_rate)}; BP:{_v(latest.systolic_bp)} / {_v(latest.diastolic_bp)}; "
        f"Sugar:{_v(latest.blood_sugar)}."
    )
    outcome = await record_insight(
        store,
        owner_id,
        "Weekly Health Summary",
        body,
        metadata={"count": len(rows), "risks": risks, "tips": risk.pick_tips(risks)},
        source="weekly-summary",
    )
    return SummaryResult(
        owner_id=owner_id,
        readings=len(rows),
        insight_id=outcome.data.get("insight_id"),
        error=outcome.error,
    )


async def build_weekly_summaries(store, now: Optional[datetime] = None) -> RunSummary:
    now = ensure_aware(now or datetime.now(timezone.utc))
    since = now - WINDOW
    owners = await store.vitals.owners_since(since)

    results: List[SummaryResult] = []
    for owner_id in owners:
        try:
            results.append(await _summarise(store, owner_id, since))
        except Exception as e:  # noqa: BLE001
            _LOGGER.warning("Weekly summary failed for %s: %s", owner_id, e)
            results.append(SummaryResult(owner_id=owner_id, readings=0, error=str(e)))
    return RunSummary.of(results)
