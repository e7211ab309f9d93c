"""Caregiver alerting for concerning readings.

Sends one e-mail through the mail relay to the patient (when an address is
known) and every caregiver with an e-mail, plus one SMS per caregiver phone
when Telnyx is configured. Each channel gets its own Notification row whose
status reflects the delivery outcome.
"""

from __future__ import annotations

import json
import logging
from typing import Dict, List, Mapping, Optional

from fastapi.concurrency import run_in_threadpool

from app.types.health_contract import Caregiver, NotificationIn, SideEffectResult
from app.utils import mailer, sms
from config import settings

_LOGGER = logging.getLogger(__name__)


def unique_emails(*groups) -> List[str]:
    """Non-blank addresses in first-seen order."""
    seen: Dict[str, None] = {}
    for group in groups:
        for email in group:
            email = (email or "").strip()
            if email:
                seen.setdefault(email, None)
    return list(seen)


def alert_message(risks: Mapping[str, int], patient_name: Optional[str] = None) -> tuple[str, str]:
    who = patient_name or "the patient"
    subject = "Urgent Health Alert: Early Health Guardian"
    text = (
        f"An urgent health reading was detected for {who}.\n\n"
        f"Summary:\n{json.dumps(dict(risks), indent=2)}\n\n"
        "Please check the dashboard or contact the patient. If the patient is in "
        f"immediate danger, call local emergency services: {settings.ALERT_EMERGENCY_NUMBER}."
    )
    return subject, text


async def _record(store, notification: NotificationIn) -> Optional[str]:
    try:
        row = await store.notifications.insert(notification)
        return row.id
    except Exception as e:  # noqa: BLE001
        _LOGGER.warning("Failed to record %s notification for %s: %s",
                        notification.channel, notification.owner_id, e)
        return None


async def alert_caregivers(
    store,
    owner_id: str,
    risks: Mapping[str, int],
    patient_email: Optional[str] = None,
    patient_name: Optional[str] = None,
    source: str = "vitals",
    reference_id: Optional[str] = None,
) -> SideEffectResult:
    """Notify the patient and linked caregivers about an urgent reading."""
    try:
        caregivers: List[Caregiver] = await store.caregivers.for_patient(owner_id)
    except Exception as e:  # noqa: BLE001
        _LOGGER.warning("Failed to resolve caregivers for %s: %s", owner_id, e)
        caregivers = []

    subject, text = alert_message(risks, patient_name)
    meta = {"source": source, "reference_id": reference_id, "risks": dict(risks)}
    recipients = unique_emails([patient_email], (c.email for c in caregivers))

    mail_status = "skipped"
    if recipients:
        result = await run_in_threadpool(mailer.send_mail, recipients, subject, text)
        mail_status = "sent" if result.ok else "failed"
        await _record(store, NotificationIn(
            owner_id=owner_id,
            channel="email",
            title=subject,
            body=text,
            status="sent" if result.ok else "failed",
            metadata={**meta, "recipients": recipients},
        ))
    else:
        _LOGGER.info("No e-mail recipients for urgent alert of %s", owner_id)

    sms_sent = 0
    sms_failed = 0
    if sms.sms_configured():
        for caregiver in caregivers:
            if not caregiver.phone:
                continue
            try:
                await run_in_threadpool(
                    sms.send_sms, caregiver.phone, f"{subject}. Check the dashboard for details."
                )
                status = "sent"
                sms_sent += 1
            except Exception as e:  # noqa: BLE001
                _LOGGER.warning("SMS to caregiver %s failed: %s", caregiver.id, e)
                status = "failed"
                sms_failed += 1
            await _record(store, NotificationIn(
                owner_id=owner_id,
                caregiver_id=caregiver.id,
                channel="sms",
                title=subject,
                body=text,
                status=status,
                metadata=meta,
            ))

    ok = mail_status != "failed" and sms_failed == 0
    return SideEffectResult(
        ok=ok,
        error=None if ok else "one or more alert deliveries failed",
        data={
            "recipients": recipients,
            "mail": mail_status,
            "sms_sent": sms_sent,
            "sms_failed": sms_failed,
        },
    )
