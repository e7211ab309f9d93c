"""Mail relay client: POSTs ``{to, subject, text, html}`` as JSON to MAILER_URL."""

from __future__ import annotations

import html as html_lib
import logging
from dataclasses import dataclass
from typing import Any, Sequence, Union

import requests

from config import settings

_LOGGER = logging.getLogger(__name__)


@dataclass
class MailResult:
    ok: bool
    status: int | None = None
    body: Any = None
    message: str | None = None


def send_mail(
    to: Union[str, Sequence[str]],
    subject: str,
    text: str,
    html: str | None = None,
) -> MailResult:
    """Send one message through the relay. Never raises; check ``result.ok``."""
    if not settings.MAILER_URL:
        _LOGGER.info("[Mail] MAILER_URL not configured; skipping send to %s: %s", to, subject)
        return MailResult(ok=False, message="mailer not configured")

    headers = {"Content-Type": "application/json"}
    if settings.MAILER_API_KEY:
        headers["Authorization"] = f"Bearer {settings.MAILER_API_KEY}"
    payload = {
        "to": to if isinstance(to, str) else list(to),
        "subject": subject,
        "text": text,
        "html": html or text_to_html(text),
    }
    try:
        resp = requests.post(
            settings.MAILER_URL,
            json=payload,
            headers=headers,
            timeout=settings.MAILER_TIMEOUT,
        )
    except requests.RequestException as e:
        _LOGGER.warning("[Mail] relay call failed: %s", e)
        return MailResult(ok=False, message=str(e))

    try:
        body = resp.json()
    except ValueError:
        body = resp.text
    if not resp.ok:
        _LOGGER.warning("[Mail] relay returned %s: %s", resp.status_code, body)
    return MailResult(ok=resp.ok, status=resp.status_code, body=body)


def text_to_html(text: str) -> str:
    paragraphs = [p for p in text.split("\n\n") if p.strip()]
    return "".join(
        f"<p>{html_lib.escape(p).replace(chr(10), '<br>')}</p>" for p in paragraphs
    )
