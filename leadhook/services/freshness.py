from __future__ import annotations

import re
import time
from typing import Optional

DEFAULT_TOLERANCE_MS = 5 * 60 * 1000

_TIMESTAMP_PATTERN = re.compile(r"^-?\d{1,16}$")


def now_ms() -> int:
    return int(time.time() * 1000)


def parse_timestamp(value: Optional[str]) -> Optional[int]:
    """Parse an X-Timestamp header (decimal epoch milliseconds). None if unparseable."""
    if value is None:
        return None
    value = value.strip()
    if not _TIMESTAMP_PATTERN.match(value):
        return None
    return int(value)


def is_fresh(
    timestamp_ms: Optional[int],
    now: Optional[int] = None,
    tolerance_ms: int = DEFAULT_TOLERANCE_MS,
) -> bool:
    """True iff the timestamp is strictly within tolerance of now, in either direction."""
    if timestamp_ms is None:
        return False
    current = now_ms() if now is None else now
    return abs(current - timestamp_ms) < tolerance_ms
