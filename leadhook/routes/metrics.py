from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Query, Request

from leadhook.core.exceptions import ServiceUnavailableError
from leadhook.core.logging import get_structlog_logger
from leadhook.services.metrics import TIMEFRAMES, resolve_timeframe, summarize_leads

logger = get_structlog_logger(__name__)

router = APIRouter(tags=["metrics"])


@router.get("/metrics")
async def lead_metrics(
    request: Request,
    timeframe: Optional[str] = Query(default="24h", description=f"One of {', '.join(TIMEFRAMES)}"),
):
    """Lead volume for a recent window, broken down by source, status and hour."""
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise ServiceUnavailableError(message="Lead store not initialised")

    timeframe, window = resolve_timeframe(timeframe)
    end_time = datetime.now(timezone.utc)
    start_time = end_time - window

    # StorageError propagates to the API exception handler as a 500
    leads = await store.query(since=start_time)

    logger.debug("metrics.computed", timeframe=timeframe, total=len(leads))
    return summarize_leads(leads, timeframe, start_time, end_time)
