"""Pydantic models that define the data contract between the HTTP surface,
the batch jobs and the store.

Input models (``*In``) describe what callers submit; the plain models add the
store-generated ``id`` and ``created_at``. The ORM rows in ``db/db.py`` use
the same attribute names so repositories can validate rows with
``from_attributes=True``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

Repeat = Literal["none", "daily", "weekly", "monthly"]
Period = Literal["daily", "weekly", "monthly"]
Severity = Literal["mild", "moderate", "severe"]
BloodSugarType = Literal["fasting", "random"]
Channel = Literal["email", "sms", "in_app"]
NotificationStatus = Literal["pending", "sent", "failed"]

# Numeric VitalsReading fields a Goal may track.
METRIC_FIELDS = (
    "heart_rate",
    "systolic_bp",
    "diastolic_bp",
    "blood_sugar",
    "weight",
    "temperature",
    "sleep_hours",
    "exercise_minutes",
    "steps",
)


class _Row(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ──────────────────────────────
# Readings
# ──────────────────────────────


class VitalsReadingIn(_Row):
    owner_id: str
    heart_rate: Optional[float] = None
    systolic_bp: Optional[float] = None
    diastolic_bp: Optional[float] = None
    blood_sugar: Optional[float] = None
    blood_sugar_type: Optional[BloodSugarType] = None
    weight: Optional[float] = None
    temperature: Optional[float] = None
    sleep_hours: Optional[float] = None
    exercise_minutes: Optional[float] = None
    steps: Optional[float] = None
    mood: Optional[str] = None
    symptoms: Optional[str] = None
    medications: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("owner_id")
    def _owner_required(cls, v: str):  # noqa: N805
        if not v or not v.strip():
            raise ValueError("owner_id must be a non-empty string")
        return v


class VitalsReading(VitalsReadingIn):
    id: str
    created_at: datetime


class SymptomItem(BaseModel):
    id: str
    label: str
    severity: Severity = "mild"


class SymptomEntryIn(_Row):
    owner_id: str
    symptoms: List[SymptomItem] = Field(default_factory=list)
    notes: Optional[str] = None

    @field_validator("owner_id")
    def _owner_required(cls, v: str):  # noqa: N805
        if not v or not v.strip():
            raise ValueError("owner_id must be a non-empty string")
        return v


class SymptomEntry(SymptomEntryIn):
    id: str
    created_at: datetime


class Profile(BaseModel):
    """Optional patient context for risk scoring and alert routing."""

    age: Optional[float] = None
    email: Optional[str] = None
    full_name: Optional[str] = None


# ──────────────────────────────
# Derived records
# ──────────────────────────────


class InsightIn(_Row):
    owner_id: str
    title: str
    body: str
    metadata: Dict[str, Any] = Field(
        default_factory=dict, validation_alias=AliasChoices("meta", "metadata")
    )
    source: str = "server"


class Insight(InsightIn):
    id: str
    created_at: datetime


class ReminderIn(_Row):
    owner_id: str
    title: str
    description: Optional[str] = None
    remind_at: datetime
    repeat: Repeat = "none"
    sent: bool = False
    recipient_email: Optional[str] = None
    caregiver_id: Optional[str] = None

    @field_validator("repeat", mode="before")
    def _null_repeat(cls, v):  # noqa: N805
        return v or "none"


class Reminder(ReminderIn):
    id: str
    # Stored rows may hold values this service does not schedule; the
    # dispatcher rejects those per reminder instead of failing the fetch.
    repeat: str = "none"
    sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class CaregiverIn(_Row):
    patient_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    caregiver_user_id: Optional[str] = None


class Caregiver(CaregiverIn):
    id: str
    created_at: Optional[datetime] = None


class Goal(_Row):
    id: str
    owner_id: str
    name: str
    metric: str
    target: float
    period: Period = "daily"
    active: bool = True

    @field_validator("period", mode="before")
    def _default_period(cls, v):  # noqa: N805
        return v if v in ("daily", "weekly", "monthly") else "daily"


class NotificationIn(_Row):
    owner_id: str
    caregiver_id: Optional[str] = None
    channel: Channel = "email"
    title: str
    body: str
    status: NotificationStatus = "pending"
    metadata: Dict[str, Any] = Field(
        default_factory=dict, validation_alias=AliasChoices("meta", "metadata")
    )


class Notification(NotificationIn):
    id: str
    created_at: Optional[datetime] = None


# ──────────────────────────────
# Results
# ──────────────────────────────


class SideEffectResult(BaseModel):
    """Outcome of a best-effort side effect; failures never abort the caller."""

    ok: bool
    error: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def failed(cls, exc: BaseException | str) -> "SideEffectResult":
        return cls(ok=False, error=str(exc))


class DispatchResult(BaseModel):
    id: str
    action: Literal["rescheduled", "marked_sent", "error"]
    next: Optional[datetime] = None
    recipients: int = 0
    mail: Literal["sent", "failed", "skipped"] = "skipped"
    notification_id: Optional[str] = None
    errors: List[str] = Field(default_factory=list)


class GoalResult(BaseModel):
    goal_id: str
    owner_id: str
    metric: str
    target: float
    value: Optional[float] = None
    period_start: datetime
    missed: bool
    reminder_id: Optional[str] = None
    error: Optional[str] = None


class SummaryResult(BaseModel):
    owner_id: str
    readings: int
    insight_id: Optional[str] = None
    error: Optional[str] = None


class RunSummary(BaseModel):
    """JSON body returned by every batch trigger."""

    ok: bool = True
    processed: int = 0
    results: List[Any] = Field(default_factory=list)

    @classmethod
    def of(cls, results: list) -> "RunSummary":
        return cls(ok=True, processed=len(results), results=results)


class ReadingOutcome(BaseModel):
    """Response of the vitals / symptoms write path."""

    id: str
    risks: Dict[str, int]
    tips: List[str]
    alert: bool
    side_effects: Dict[str, SideEffectResult] = Field(default_factory=dict)
