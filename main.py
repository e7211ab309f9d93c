import logging
import re
from typing import Any, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, field_validator

import db
from app.services import risk
from app.services.goal_checker import check_goals
from app.services.readings import record_symptoms, record_vitals
from app.services.reminder_dispatcher import dispatch_due_reminders
from app.services.weekly_summary import build_weekly_summaries
from app.types.health_contract import (
    Caregiver,
    CaregiverIn,
    Profile,
    ReadingOutcome,
    Reminder,
    ReminderIn,
    SymptomEntryIn,
    VitalsReadingIn,
)
from app.utils import mailer
from app.utils.periods import ensure_aware
from config import ConfigurationError, settings

_LOGGER = logging.getLogger(__name__)

app = FastAPI(title="Early Health Guardian")


@app.on_event("shutdown")
async def shutdown_event():
    await db.dispose_engine()


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    _LOGGER.error("Configuration error on %s: %s", request.url.path, exc)
    return JSONResponse({"ok": False, "error": str(exc)}, status_code=500)


def get_store() -> db.Store:
    # Fail before any work when the store is not configured
    settings.database_url()
    return db.sql_store()


class VitalsRequest(VitalsReadingIn):
    profile: Optional[Profile] = None


class SymptomsRequest(SymptomEntryIn):
    profile: Optional[Profile] = None


_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ReminderRequest(ReminderIn):
    @field_validator("owner_id")
    def _owner_required(cls, v: str):  # noqa: N805
        if not v or not v.strip():
            raise ValueError("owner_id must be a non-empty string")
        return v

    @field_validator("title")
    def _title_required(cls, v: str):  # noqa: N805
        if not v or not v.strip():
            raise ValueError("title must be a non-empty string")
        return v.strip()

    @field_validator("recipient_email")
    def _valid_email(cls, v: Optional[str]):  # noqa: N805
        if v is None or not v.strip():
            return None
        if not _EMAIL_RE.match(v.strip()):
            raise ValueError("recipient_email is not a valid e-mail address")
        return v.strip()

    @field_validator("remind_at")
    def _aware_due(cls, v):  # noqa: N805
        return ensure_aware(v)


class MarkSentRequest(BaseModel):
    owner_id: str
    sent: bool = True


class CaregiverRequest(CaregiverIn):
    @field_validator("patient_id")
    def _patient_required(cls, v: str):  # noqa: N805
        if not v or not v.strip():
            raise ValueError("patient_id must be a non-empty string")
        return v


# --------------------------------------------
# Write path
# --------------------------------------------

@app.post("/v1/vitals", response_model=ReadingOutcome)
async def add_vitals(body: VitalsRequest, store: db.Store = Depends(get_store)):
    reading = VitalsReadingIn.model_validate(body.model_dump(exclude={"profile"}))
    try:
        return await record_vitals(store, reading, body.profile)
    except ConfigurationError:
        raise
    except Exception as e:
        _LOGGER.error("Vitals insert failed for %s: %s", reading.owner_id, e)
        raise HTTPException(500, "DB error")


@app.post("/v1/symptoms", response_model=ReadingOutcome)
async def add_symptoms(body: SymptomsRequest, store: db.Store = Depends(get_store)):
    entry = SymptomEntryIn.model_validate(body.model_dump(exclude={"profile"}))
    if not entry.symptoms and not entry.notes:
        raise HTTPException(400, "Select at least one symptom or add notes")
    try:
        return await record_symptoms(store, entry, body.profile)
    except ConfigurationError:
        raise
    except Exception as e:
        _LOGGER.error("Symptom insert failed for %s: %s", entry.owner_id, e)
        raise HTTPException(500, "DB error")


@app.post("/v1/risks")
async def evaluate_risks(payload: Dict[str, Any] = Body(default_factory=dict)):
    """Score a snapshot without storing anything."""
    risks = risk.compute_risks(payload, payload.get("profile"))
    return {"risks": risks, "tips": risk.pick_tips(risks), "alert": risk.should_alert(risks)}


# --------------------------------------------
# Reminders and caregivers
# --------------------------------------------

@app.post("/v1/reminders", response_model=Reminder, status_code=201)
async def create_reminder(body: ReminderRequest, store: db.Store = Depends(get_store)):
    reminder = ReminderIn.model_validate(body.model_dump())
    try:
        return await store.reminders.insert(reminder)
    except Exception as e:
        _LOGGER.error("Reminder insert failed for %s: %s", reminder.owner_id, e)
        raise HTTPException(500, "DB error")


@app.get("/v1/reminders", response_model=List[Reminder])
async def upcoming_reminders(
    owner_id: str,
    limit: int = Query(10, ge=1, le=100),
    store: db.Store = Depends(get_store),
):
    try:
        return await store.reminders.upcoming(owner_id, limit)
    except Exception as e:
        _LOGGER.error("Reminder listing failed for %s: %s", owner_id, e)
        raise HTTPException(500, "DB error")


@app.patch("/v1/reminders/{reminder_id}/sent")
async def set_reminder_sent(
    reminder_id: str, body: MarkSentRequest, store: db.Store = Depends(get_store)
):
    try:
        found = await store.reminders.set_sent(reminder_id, body.owner_id, body.sent)
    except Exception as e:
        _LOGGER.error("Reminder %s update failed: %s", reminder_id, e)
        raise HTTPException(500, "DB error")
    if not found:
        raise HTTPException(404, "Reminder not found")
    return {"ok": True, "sent": body.sent}


@app.delete("/v1/reminders/{reminder_id}")
async def delete_reminder(reminder_id: str, owner_id: str, store: db.Store = Depends(get_store)):
    try:
        found = await store.reminders.delete(reminder_id, owner_id)
    except Exception as e:
        _LOGGER.error("Reminder %s delete failed: %s", reminder_id, e)
        raise HTTPException(500, "DB error")
    if not found:
        raise HTTPException(404, "Reminder not found")
    return {"ok": True}


@app.post("/v1/caregivers", response_model=Caregiver, status_code=201)
async def add_caregiver(body: CaregiverRequest, store: db.Store = Depends(get_store)):
    caregiver = CaregiverIn.model_validate(body.model_dump())
    if not any((v or "").strip() for v in (caregiver.name, caregiver.email, caregiver.phone)):
        raise HTTPException(400, "Provide a name, e-mail or phone")
    try:
        return await store.caregivers.insert(caregiver)
    except Exception as e:
        _LOGGER.error("Caregiver insert failed for %s: %s", caregiver.patient_id, e)
        raise HTTPException(500, "DB error")


@app.get("/v1/caregivers", response_model=List[Caregiver])
async def list_caregivers(patient_id: str, store: db.Store = Depends(get_store)):
    try:
        return await store.caregivers.for_patient(patient_id)
    except Exception as e:
        _LOGGER.error("Caregiver listing failed for %s: %s", patient_id, e)
        raise HTTPException(500, "DB error")


@app.delete("/v1/caregivers/{caregiver_id}")
async def remove_caregiver(caregiver_id: str, patient_id: str, store: db.Store = Depends(get_store)):
    try:
        found = await store.caregivers.delete(caregiver_id, patient_id)
    except Exception as e:
        _LOGGER.error("Caregiver %s delete failed: %s", caregiver_id, e)
        raise HTTPException(500, "DB error")
    if not found:
        raise HTTPException(404, "Caregiver not found")
    return {"ok": True}


# --------------------------------------------
# Batch triggers
# --------------------------------------------

async def _run_job(name: str, job, store: db.Store) -> JSONResponse:
    try:
        summary = await job(store)
    except Exception as e:  # noqa: BLE001
        _LOGGER.exception("%s error", name)
        return JSONResponse({"ok": False, "error": str(e)}, status_code=500)
    return JSONResponse(summary.model_dump(mode="json"))


@app.api_route("/api/cron/reminders", methods=["GET", "POST"])
async def cron_reminders(store: db.Store = Depends(get_store)):
    return await _run_job("cron-reminders", dispatch_due_reminders, store)


@app.api_route("/api/cron/goals", methods=["GET", "POST"])
async def cron_goals(store: db.Store = Depends(get_store)):
    return await _run_job("goal-checker", check_goals, store)


@app.api_route("/api/cron/weekly-summary", methods=["GET", "POST"])
async def cron_weekly_summary(store: db.Store = Depends(get_store)):
    return await _run_job("weekly-summary", build_weekly_summaries, store)


# --------------------------------------------
# Mail relay proxy
# --------------------------------------------

@app.post("/api/notify")
async def notify(request: Request):
    if not settings.MAILER_URL:
        return JSONResponse({"error": "Mailer not configured (set MAILER_URL)"}, status_code=500)
    try:
        payload = await request.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict) or not payload.get("to") or not payload.get("subject"):
        return JSONResponse({"error": "Missing 'to' or 'subject' in payload"}, status_code=400)

    result = await run_in_threadpool(
        mailer.send_mail,
        payload["to"],
        payload["subject"],
        payload.get("text") or "",
        payload.get("html") or None,
    )
    if not result.ok:
        return JSONResponse(
            {"error": "Mailer webhook failed", "details": result.body or result.message},
            status_code=500,
        )
    return {"ok": True, "result": result.body}
