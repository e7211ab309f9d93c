"""Synchronous write path for vitals and symptom entries.

Flow for a reading:
1. Store the reading (primary write, errors propagate to the caller).
2. Score it with :mod:`app.services.risk` and record an Insight.
3. Record an in-app notification.
4. Alert caregivers when the alert predicate holds, otherwise schedule a
   follow-up reminder for moderate risk.

Steps 2-4 are side effects: each returns a ``SideEffectResult`` and none of
them can undo or fail the primary write.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from app.services import risk
from app.services.alerts import alert_caregivers
from app.services.insights import record_insight
from app.types.health_contract import (
    NotificationIn,
    Profile,
    ReadingOutcome,
    ReminderIn,
    SideEffectResult,
    SymptomEntryIn,
    VitalsReadingIn,
)
from config import settings

_LOGGER = logging.getLogger(__name__)

MODERATE_RISK = 50


def _dash(value) -> str:
    return "-" if value is None else f"{value:g}"


async def _in_app_notice(store, owner_id: str, title: str, body: str, meta: dict) -> SideEffectResult:
    try:
        row = await store.notifications.insert(NotificationIn(
            owner_id=owner_id,
            channel="in_app",
            title=title,
            body=body,
            status="sent",
            metadata=meta,
        ))
    except Exception as e:  # noqa: BLE001
        _LOGGER.warning("Failed to create in-app notification for %s: %s", owner_id, e)
        return SideEffectResult.failed(e)
    return SideEffectResult(ok=True, data={"notification_id": row.id})


async def _schedule_followup(store, owner_id: str, reading_id: str, now: datetime) -> SideEffectResult:
    try:
        row = await store.reminders.insert(ReminderIn(
            owner_id=owner_id,
            title="Follow-up: re-check health readings",
            description="Please re-enter your vitals so we can check trends.",
            remind_at=now + timedelta(days=settings.FOLLOWUP_DAYS),
            repeat="none",
        ))
    except Exception as e:  # noqa: BLE001
        _LOGGER.warning("Failed to schedule follow-up for %s: %s", owner_id, e)
        return SideEffectResult.failed(e)
    return SideEffectResult(ok=True, data={"reminder_id": row.id, "triggered_by": reading_id})


async def record_vitals(
    store,
    reading: VitalsReadingIn,
    profile: Optional[Profile] = None,
    now: Optional[datetime] = None,
) -> ReadingOutcome:
    now = now or datetime.now(timezone.utc)
    saved = await store.vitals.insert(reading)

    risks = risk.compute_risks(saved, profile)
    tips = risk.pick_tips(risks)
    alert = risk.should_alert(risks)
    effects: Dict[str, SideEffectResult] = {}

    effects["insight"] = await record_insight(
        store,
        saved.owner_id,
        "Reading recorded",
        risk.format_insight_text("Reading recorded", risks, saved),
        metadata={"risks": risks, "tips": tips, "reading_id": saved.id},
        source="vitals",
    )
    effects["notification"] = await _in_app_notice(
        store,
        saved.owner_id,
        "New health reading recorded",
        (
            f"A new reading was saved. Key vitals: HR {_dash(saved.heart_rate)}, "
            f"BP {_dash(saved.systolic_bp)}/{_dash(saved.diastolic_bp)}, "
            f"Sugar {_dash(saved.blood_sugar)}."
        ),
        {"reading_id": saved.id, "risks": risks},
    )

    if alert:
        effects["alert"] = await alert_caregivers(
            store,
            saved.owner_id,
            risks,
            patient_email=profile.email if profile else None,
            patient_name=profile.full_name if profile else None,
            source="vitals",
            reference_id=saved.id,
        )
    elif risk.max_risk(risks) >= MODERATE_RISK:
        effects["followup"] = await _schedule_followup(store, saved.owner_id, saved.id, now)

    return ReadingOutcome(id=saved.id, risks=risks, tips=tips, alert=alert, side_effects=effects)


async def record_symptoms(
    store,
    entry: SymptomEntryIn,
    profile: Optional[Profile] = None,
) -> ReadingOutcome:
    saved = await store.symptoms.insert(entry)

    risks = risk.compute_risks(risk.symptom_snapshot(saved), profile)
    tips = risk.pick_tips(risks)
    alert = risk.should_alert(risks) or risk.has_severe_symptom(saved)
    effects: Dict[str, SideEffectResult] = {}

    labels = ", ".join(f"{s.label} ({s.severity})" for s in saved.symptoms) or "none"
    effects["insight"] = await record_insight(
        store,
        saved.owner_id,
        "Symptoms logged",
        f"Symptoms logged: {labels}.\nNotes: {saved.notes or '-'}",
        metadata={"risks": risks, "tips": tips, "symptom_entry_id": saved.id},
        source="symptoms",
    )

    if alert:
        effects["alert"] = await alert_caregivers(
            store,
            saved.owner_id,
            risks,
            patient_email=profile.email if profile else None,
            patient_name=profile.full_name if profile else None,
            source="symptoms",
            reference_id=saved.id,
        )

    return ReadingOutcome(id=saved.id, risks=risks, tips=tips, alert=alert, side_effects=effects)
