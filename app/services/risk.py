"""
Heuristic disease-risk scoring for a single vitals / symptoms snapshot.

Not medical advice: every score is a fixed threshold mapping, tuned for
dashboard hints and for deciding when caregivers should be alerted.

The module is pure. Thresholds live in a :class:`RiskConstants` table so the
write path, the dashboard endpoint and the weekly summary all read the same
numbers; pass a different table to reproduce another scoring variant.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

# (threshold, score) pairs, highest threshold first.
Bands = Tuple[Tuple[float, int], ...]

RISK_KEYS = (
    "diabetes",
    "hypertension",
    "heart_disease",
    "stroke",
    "alzheimer",
    "copd",
    "kidney_disease",
    "obesity",
)


@dataclass(frozen=True)
class RiskConstants:
    # Diabetes (glucose-driven), values are >= thresholds
    sugar_random: Bands = ((200, 95), (140, 70), (120, 40))
    sugar_fasting: Bands = ((126, 95), (100, 70), (90, 30))
    sugar_baseline: int = 10

    # Hypertension: (systolic, diastolic, score); either limit triggers
    bp_bands: Tuple[Tuple[float, float, int], ...] = (
        (180, 120, 98),
        (160, 100, 88),
        (140, 90, 65),
        (130, 80, 32),
    )
    bp_baseline: int = 8

    # Heart disease (additive)
    hr_low: float = 50
    hr_high: float = 100
    heart_abnormal_hr: int = 18
    heart_hypertension_min: int = 65
    heart_hypertension: int = 26
    heart_weight_over: float = 90
    heart_weight: int = 12
    heart_age_over: float = 60
    heart_age: int = 16
    heart_keywords: Tuple[str, ...] = ("chest", "palpit", "irregular")
    heart_symptoms: int = 20

    # Stroke (additive)
    stroke_hypertension_min: int = 85
    stroke_hypertension: int = 52
    stroke_age_over: float = 65
    stroke_age: int = 22
    stroke_diabetes_min: int = 70
    stroke_diabetes: int = 14
    stroke_keywords: Tuple[str, ...] = ("numb", "weak", "slurred")
    stroke_symptoms: int = 18

    # Alzheimer
    alzheimer_age: Bands = ((80, 42), (70, 28), (60, 12))
    alzheimer_keywords: Tuple[str, ...] = ("confusion", "memory", "forget")
    alzheimer_symptoms: int = 30

    # COPD
    copd_keywords: Tuple[str, ...] = ("shortness", "breath", "cough")
    copd_symptoms: int = 35
    copd_wheeze_keywords: Tuple[str, ...] = ("wheeze",)
    copd_wheeze: int = 25

    # Kidney disease (additive)
    kidney_hypertension_min: int = 70
    kidney_hypertension: int = 30
    kidney_diabetes_min: int = 60
    kidney_diabetes: int = 34
    kidney_age_over: float = 60
    kidney_age: int = 12
    kidney_keywords: Tuple[str, ...] = ("swelling", "edema", "urine")
    kidney_symptoms: int = 22

    # Obesity (weight only; values are strict > thresholds)
    weight_bands: Bands = ((110, 88), (100, 72), (85, 46), (70, 22))
    weight_baseline: int = 8
    sleep_low: float = 4
    sleep_high: float = 10
    sleep_penalty: int = 4

    # Alert predicate
    alert_diabetes: int = 80
    alert_hypertension: int = 90
    alert_heart_disease: int = 85


BASIC = RiskConstants()

# Client-side dashboard variant: finer glucose bands, no fasting distinction.
DASHBOARD = RiskConstants(
    # whole mg/dL readings, so 101 is the first value above 100
    sugar_random=((200, 96), (160, 85), (140, 70), (110, 35), (101, 12)),
    sugar_fasting=((200, 96), (160, 85), (140, 70), (110, 35), (101, 12)),
    sugar_baseline=5,
)


# ---------------------------------------------------------------------------
# Input coercion
# ---------------------------------------------------------------------------

def _get(snapshot: Any, key: str) -> Any:
    if snapshot is None:
        return None
    if isinstance(snapshot, Mapping):
        return snapshot.get(key)
    return getattr(snapshot, key, None)


def _num(value: Any) -> float:
    """Numeric view of *value*; anything missing or unparsable reads as 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        out = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    if math.isnan(out) or math.isinf(out):
        return 0.0
    return out


def _text(value: Any) -> str:
    if isinstance(value, str):
        return value.lower()
    if isinstance(value, (list, tuple)):
        parts = []
        for item in value:
            label = _get(item, "label") if not isinstance(item, str) else item
            if label:
                parts.append(str(label))
        return " ".join(parts).lower()
    return ""


def _round(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp(value: float, low: int = 0, high: int = 100) -> int:
    return max(low, min(high, _round(value)))


def _band(value: float, bands: Bands, baseline: int, strict: bool = False) -> int:
    for threshold, score in bands:
        if (value > threshold) if strict else (value >= threshold):
            return score
    return baseline


def _has_any(text: str, keywords: Iterable[str]) -> bool:
    return any(k in text for k in keywords)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def compute_risks(
    snapshot: Any,
    profile: Any = None,
    constants: RiskConstants = BASIC,
) -> Dict[str, int]:
    """Map a vitals/symptoms snapshot to ``{disease: percent}``.

    *snapshot* may be a dict or any object exposing VitalsReading attributes.
    The result always holds every key of ``RISK_KEYS`` with an int in [0, 100].
    """
    c = constants
    hr = _num(_get(snapshot, "heart_rate"))
    sbp = _num(_get(snapshot, "systolic_bp"))
    dbp = _num(_get(snapshot, "diastolic_bp"))
    raw_sugar = _get(snapshot, "blood_sugar")
    sugar = _num(raw_sugar)
    weight = _num(_get(snapshot, "weight"))
    sleep = _num(_get(snapshot, "sleep_hours"))
    age = _num(_get(profile, "age")) or _num(_get(snapshot, "age"))

    symptoms = _text(_get(snapshot, "symptoms")) or _text(_get(snapshot, "notes"))

    risks: Dict[str, float] = {}

    if raw_sugar is None or sugar <= 0:
        risks["diabetes"] = c.sugar_baseline
    elif _get(snapshot, "blood_sugar_type") == "fasting":
        risks["diabetes"] = _band(sugar, c.sugar_fasting, c.sugar_baseline)
    else:
        risks["diabetes"] = _band(sugar, c.sugar_random, c.sugar_baseline)

    hypertension = c.bp_baseline
    for sys_limit, dia_limit, score in c.bp_bands:
        if sbp >= sys_limit or dbp >= dia_limit:
            hypertension = score
            break
    risks["hypertension"] = hypertension

    heart = 0
    if hr and (hr < c.hr_low or hr > c.hr_high):
        heart += c.heart_abnormal_hr
    if hypertension >= c.heart_hypertension_min:
        heart += c.heart_hypertension
    if weight > c.heart_weight_over:
        heart += c.heart_weight
    if age > c.heart_age_over:
        heart += c.heart_age
    if _has_any(symptoms, c.heart_keywords):
        heart += c.heart_symptoms
    risks["heart_disease"] = heart

    stroke = 0
    if hypertension >= c.stroke_hypertension_min:
        stroke += c.stroke_hypertension
    if age > c.stroke_age_over:
        stroke += c.stroke_age
    if risks["diabetes"] >= c.stroke_diabetes_min:
        stroke += c.stroke_diabetes
    if _has_any(symptoms, c.stroke_keywords):
        stroke += c.stroke_symptoms
    risks["stroke"] = stroke

    alzheimer = _band(age, c.alzheimer_age, 0)
    if _has_any(symptoms, c.alzheimer_keywords):
        alzheimer += c.alzheimer_symptoms
    risks["alzheimer"] = alzheimer

    copd = 0
    if _has_any(symptoms, c.copd_keywords):
        copd += c.copd_symptoms
    if _has_any(symptoms, c.copd_wheeze_keywords):
        copd += c.copd_wheeze
    risks["copd"] = copd

    kidney = 0
    if hypertension >= c.kidney_hypertension_min:
        kidney += c.kidney_hypertension
    if risks["diabetes"] >= c.kidney_diabetes_min:
        kidney += c.kidney_diabetes
    if age > c.kidney_age_over:
        kidney += c.kidney_age
    if _has_any(symptoms, c.kidney_keywords):
        kidney += c.kidney_symptoms
    risks["kidney_disease"] = kidney

    obesity = _band(weight, c.weight_bands, c.weight_baseline, strict=True)
    if sleep and (sleep < c.sleep_low or sleep > c.sleep_high):
        obesity += c.sleep_penalty
    risks["obesity"] = obesity

    return {key: _clamp(risks[key]) for key in RISK_KEYS}


_BAND_TIPS = (
    # (risk key, minimum, tip) checked in order; first match per group wins
    (("diabetes", 80, "Very high blood sugar: contact a clinician urgently."),
     ("diabetes", 50, "Elevated blood sugar: consider a fasting test and review diet.")),
    (("hypertension", 85, "Dangerously high blood pressure: seek immediate medical help."),
     ("hypertension", 50, "Blood pressure elevated: reduce salt intake and monitor daily.")),
    (("heart_disease", 70, "High heart disease risk: avoid heavy exertion and consult your doctor."),),
    (("stroke", 60, "High stroke risk: urgent review is recommended."),),
    (("copd", 50, "Breathing issues noted: consider a respiratory assessment."),),
    (("kidney_disease", 50, "Kidney function may be at risk: discuss renal tests with your physician."),),
    (("obesity", 70, "Weight may be a risk factor: consider a nutrition consultation."),),
)

LIFESTYLE_TIPS = (
    "Drink water throughout the day to stay hydrated.",
    "Aim for a short daily walk (15-30 minutes) if possible.",
    "Keep a regular sleep schedule and avoid large meals before bedtime.",
)

MAX_TIPS = 6


def pick_tips(risks: Mapping[str, int] | None) -> List[str]:
    """Canned advice for the bands *risks* falls into, lifestyle tips last."""
    risks = risks or {}
    tips: List[str] = []
    for group in _BAND_TIPS:
        for key, minimum, tip in group:
            if _num(risks.get(key)) >= minimum:
                tips.append(tip)
                break
    tips.extend(LIFESTYLE_TIPS)
    return list(dict.fromkeys(tips))[:MAX_TIPS]


def should_alert(risks: Mapping[str, int] | None, constants: RiskConstants = BASIC) -> bool:
    if not risks:
        return False
    return (
        _num(risks.get("diabetes")) >= constants.alert_diabetes
        or _num(risks.get("hypertension")) >= constants.alert_hypertension
        or _num(risks.get("heart_disease")) >= constants.alert_heart_disease
    )


def max_risk(risks: Mapping[str, int] | None) -> int:
    return max((int(v) for v in (risks or {}).values()), default=0)


def _fmt(value: Any) -> str:
    number = _num(value)
    return str(int(number)) if number == int(number) else f"{number:g}"


def format_insight_text(title: str, risks: Mapping[str, int], vitals: Any) -> str:
    """Readable four-line summary stored as the Insight body."""
    risk_summary = ", ".join(f"{k}: {v}%" for k, v in risks.items())
    parts = []
    if _get(vitals, "heart_rate") is not None:
        parts.append(f"HR {_fmt(_get(vitals, 'heart_rate'))} bpm")
    if _get(vitals, "systolic_bp") is not None and _get(vitals, "diastolic_bp") is not None:
        parts.append(
            f"BP {_fmt(_get(vitals, 'systolic_bp'))}/{_fmt(_get(vitals, 'diastolic_bp'))} mmHg"
        )
    if _get(vitals, "blood_sugar") is not None:
        parts.append(f"Sugar {_fmt(_get(vitals, 'blood_sugar'))} mg/dL")
    if _get(vitals, "weight") is not None:
        parts.append(f"Weight {_fmt(_get(vitals, 'weight'))} kg")
    vitals_text = "; ".join(parts) or "No vitals provided"
    notes = _get(vitals, "notes") or _get(vitals, "symptoms") or "-"
    if not isinstance(notes, str):
        notes = _text(notes) or "-"
    return "\n".join([
        title or "Health reading",
        f"Risks: {risk_summary}.",
        f"Vitals: {vitals_text}.",
        f"Notes: {notes}",
    ])


def symptom_snapshot(entry: Any) -> Dict[str, Optional[str]]:
    """Evaluator input for a SymptomEntry: labels become the symptom text."""
    return {
        "symptoms": _text(_get(entry, "symptoms")) or None,
        "notes": _get(entry, "notes"),
    }


def has_severe_symptom(entry: Any) -> bool:
    return any(_get(item, "severity") == "severe" for item in (_get(entry, "symptoms") or []))
