"""Goal-compliance check, run once per scheduled tick:
    python -m app.scripts.check_goals
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys

from app.services.goal_checker import check_goals
from config import settings
from db.db import run_and_dispose
from db.repositories import sql_store


async def main() -> dict:
    settings.database_url()
    summary = await run_and_dispose(check_goals(sql_store()))
    return summary.model_dump(mode="json")


if __name__ == "__main__":  # pragma: no cover
    logging.basicConfig(level=logging.INFO)
    print("[CRON] check_goals: job started")
    try:
        result = asyncio.run(main())
    except Exception as e:  # noqa: BLE001
        print(f"[CRON] check_goals: job failed: {e}")
        sys.exit(1)
    print(json.dumps(result, indent=2))
    print("[CRON] check_goals: job completed successfully")
