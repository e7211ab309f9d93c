"""Due-reminder dispatcher.

One run:
1. Fetch every reminder with ``sent = false`` and ``remind_at <= now``.
2. For each, in order: resolve caregiver e-mails, record a pending
   e-mail Notification, call the mail relay once, promote the notification
   to ``sent`` (or ``failed``), then reschedule a repeating reminder or mark a
   one-off reminder sent.

Per-reminder failures are logged and reported in the result list; they never
stop the run. Only the initial fetch is allowed to fail the whole run. There
are no retries: a reminder whose mail failed is still advanced, so the next
run never re-sends it. A reminder whose repeat policy is unknown is marked
sent without any mail.
"""

from __future__ import annotations

import html
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from fastapi.concurrency import run_in_threadpool

from app.services.alerts import unique_emails
from app.types.health_contract import DispatchResult, NotificationIn, Reminder, RunSummary
from app.utils import mailer
from app.utils.periods import ensure_aware, next_occurrence, reference_tz

_LOGGER = logging.getLogger(__name__)

Mailer = Callable[..., mailer.MailResult]


def format_reminder(reminder: Reminder) -> tuple[str, str, str]:
    """Return ``(subject, text, html)`` for a reminder e-mail."""
    when = ensure_aware(reminder.remind_at).astimezone(reference_tz())
    scheduled = when.strftime("%Y-%m-%d %H:%M %Z")
    description = reminder.description or ""
    subject = f"Reminder: {reminder.title}"
    text = f"Reminder: {reminder.title}\n\n{description}\n\nScheduled: {scheduled}"
    body_html = (
        f"<p><strong>Reminder:</strong> {html.escape(reminder.title)}</p>"
        f"<p>{html.escape(description)}</p>"
        f"<p><em>Scheduled:</em> {scheduled}</p>"
    )
    return subject, text, body_html


async def resolve_recipients(store, reminder: Reminder) -> List[str]:
    """Caregiver e-mails for the reminder owner plus the reminder's own address."""
    try:
        caregivers = await store.caregivers.for_patient(reminder.owner_id)
    except Exception as e:  # noqa: BLE001
        _LOGGER.warning("Failed to fetch caregivers for reminder %s: %s", reminder.id, e)
        caregivers = []
    return unique_emails((c.email for c in caregivers), [reminder.recipient_email])


async def _advance(
    store, reminder: Reminder, next_at: Optional[datetime], now: datetime, result: DispatchResult
) -> None:
    try:
        if next_at is not None:
            await store.reminders.reschedule(reminder.id, next_at)
            result.action = "rescheduled"
            result.next = next_at
        else:
            await store.reminders.mark_sent(reminder.id, now)
            result.action = "marked_sent"
    except Exception as e:  # noqa: BLE001
        _LOGGER.error("Failed to advance reminder %s: %s", reminder.id, e)
        result.action = "error"
        result.errors.append(f"reminder: {e}")


async def _process(store, reminder: Reminder, now: datetime, send: Mailer) -> DispatchResult:
    result = DispatchResult(id=reminder.id, action="error")

    try:
        next_at = next_occurrence(reminder.remind_at, reminder.repeat)
    except ValueError as e:
        # Unknown repeat policy: retire the row unsent.
        _LOGGER.error("Reminder %s has %s; retiring it unsent", reminder.id, e)
        result.errors.append(f"reminder: {e}")
        try:
            await store.reminders.mark_sent(reminder.id, now)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Failed to retire reminder %s: %s", reminder.id, exc)
            result.errors.append(f"reminder: {exc}")
        return result

    recipients = await resolve_recipients(store, reminder)
    result.recipients = len(recipients)
    subject, text, body_html = format_reminder(reminder)

    try:
        notification = await store.notifications.insert(NotificationIn(
            owner_id=reminder.owner_id,
            caregiver_id=reminder.caregiver_id,
            channel="email",
            title=subject,
            body=text,
            status="pending",
            metadata={"reminder_id": reminder.id, "recipients": recipients},
        ))
        result.notification_id = notification.id
    except Exception as e:  # noqa: BLE001
        _LOGGER.warning("Failed to insert notification for reminder %s: %s", reminder.id, e)
        result.errors.append(f"notification: {e}")

    if recipients:
        try:
            sent = await run_in_threadpool(send, recipients, subject, text, body_html)
            result.mail = "sent" if sent.ok else "failed"
            if not sent.ok:
                result.errors.append(f"mail: {sent.message or sent.status}")
        except Exception as e:  # noqa: BLE001
            _LOGGER.warning("Mail relay failed for reminder %s: %s", reminder.id, e)
            result.mail = "failed"
            result.errors.append(f"mail: {e}")
    else:
        _LOGGER.info("No caregiver recipients for reminder %s", reminder.id)

    if result.notification_id and result.mail != "skipped":
        try:
            await store.notifications.set_status(
                result.notification_id, "sent" if result.mail == "sent" else "failed"
            )
        except Exception as e:  # noqa: BLE001
            _LOGGER.warning("Failed to update notification %s: %s", result.notification_id, e)
            result.errors.append(f"notification status: {e}")

    await _advance(store, reminder, next_at, now, result)
    return result


async def dispatch_due_reminders(
    store,
    now: Optional[datetime] = None,
    send: Optional[Mailer] = None,
    limit: Optional[int] = None,
) -> RunSummary:
    """Process every due reminder once. Raises only if the due fetch fails."""
    now = ensure_aware(now or datetime.now(timezone.utc))
    send = send or mailer.send_mail

    due = await store.reminders.fetch_due(now, limit=limit)
    _LOGGER.info("[cron-reminders] found %d due reminders", len(due))

    results: List[DispatchResult] = []
    for reminder in due:
        try:
            results.append(await _process(store, reminder, now, send))
        except Exception as e:  # noqa: BLE001
            _LOGGER.exception("Unexpected failure processing reminder %s", reminder.id)
            results.append(DispatchResult(id=reminder.id, action="error", errors=[str(e)]))
    return RunSummary.of(results)
