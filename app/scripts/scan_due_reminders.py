"""Periodic scanner to send due reminders.
Run from any external scheduler (cron, Railway schedule, GitHub Actions):
    python -m app.scripts.scan_due_reminders

Exits 1 on missing configuration or when the due-reminder fetch fails;
per-reminder failures only show up in the printed summary.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys

from app.services.reminder_dispatcher import dispatch_due_reminders
from config import settings
from db.db import run_and_dispose
from db.repositories import sql_store


async def main() -> dict:
    settings.database_url()
    summary = await run_and_dispose(dispatch_due_reminders(sql_store()))
    return summary.model_dump(mode="json")


if __name__ == "__main__":  # pragma: no cover
    logging.basicConfig(level=logging.INFO)
    print("[CRON] scan_due_reminders: job started")
    try:
        result = asyncio.run(main())
    except Exception as e:  # noqa: BLE001
        print(f"[CRON] scan_due_reminders: job failed: {e}")
        sys.exit(1)
    print(json.dumps(result, indent=2))
    print("[CRON] scan_due_reminders: job completed successfully")
