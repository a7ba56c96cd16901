from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

TIMEFRAMES: Dict[str, timedelta] = {
    "1h": timedelta(hours=1),
    "6h": timedelta(hours=6),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}
DEFAULT_TIMEFRAME = "24h"


def resolve_timeframe(timeframe: Optional[str]) -> Tuple[str, timedelta]:
    """Unknown or missing timeframes fall back to 24h."""
    if timeframe in TIMEFRAMES:
        return timeframe, TIMEFRAMES[timeframe]
    return DEFAULT_TIMEFRAME, TIMEFRAMES[DEFAULT_TIMEFRAME]


def _hour_bucket(created_at: Any) -> str:
    if isinstance(created_at, str):
        created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return created_at.astimezone(timezone.utc).strftime("%Y-%m-%dT%H")


def summarize_leads(
    leads: Iterable[Mapping[str, Any]],
    timeframe: str,
    start_time: datetime,
    end_time: datetime,
) -> Dict[str, Any]:
    """Counts by source, status and hour bucket for the given window."""
    by_source: Counter = Counter()
    by_status: Counter = Counter()
    by_hour: Counter = Counter()
    total = 0

    for lead in leads:
        total += 1
        by_source[lead.get("source") or "unknown"] += 1
        by_status[lead.get("status") or "unknown"] += 1
        if lead.get("created_at") is not None:
            by_hour[_hour_bucket(lead["created_at"])] += 1

    hours = len(by_hour) or 1

    return {
        "timeframe": timeframe,
        "startTime": start_time.isoformat(),
        "endTime": end_time.isoformat(),
        "summary": {
            "totalLeads": total,
            "avgPerHour": round(total / hours, 2),
        },
        "breakdown": {
            "bySource": dict(by_source),
            "byStatus": dict(by_status),
            "byHour": dict(by_hour),
        },
    }
