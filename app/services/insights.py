"""Insight recorder: best-effort append of a human-readable risk summary."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from app.types.health_contract import InsightIn, SideEffectResult

_LOGGER = logging.getLogger(__name__)


async def record_insight(
    store,
    owner_id: str,
    title: str,
    body: str,
    metadata: Optional[Dict[str, Any]] = None,
    source: str = "server",
) -> SideEffectResult:
    """Append one Insight row. Failures are logged and returned, never raised."""
    try:
        insight = await store.insights.insert(
            InsightIn(
                owner_id=owner_id,
                title=title,
                body=body,
                metadata=metadata or {},
                source=source,
            )
        )
    except Exception as e:  # noqa: BLE001
        _LOGGER.warning("Failed to record insight for %s: %s", owner_id, e)
        return SideEffectResult.failed(e)
    return SideEffectResult(ok=True, data={"insight_id": insight.id})
