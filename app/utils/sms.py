import logging

import telnyx

from config import settings

_LOGGER = logging.getLogger(__name__)

if settings.TELNYX_API_KEY:
    telnyx.api_key = settings.TELNYX_API_KEY


def sms_configured() -> bool:
    return bool(settings.TELNYX_API_KEY and settings.TELNYX_FROM_NUMBER)


def send_sms(to: str, body: str) -> None:
    """Send one SMS through Telnyx; raises on provider errors."""
    if not sms_configured():
        _LOGGER.info("[SMS] DEV mode: would send to %s: %s", to, body)
        return
    telnyx.Message.create(from_=settings.TELNYX_FROM_NUMBER, to=to, text=body)
