"""
Fixed-window request counters keyed by caller identifier.

A window opens on the first hit from an identifier and lasts ``window_ms``.
Bursts straddling a window boundary can reach up to twice the nominal
limit; this approximation is accepted.
"""
from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional, Protocol

import redis.asyncio as redis

from leadhook.core.exceptions import ServiceUnavailableError
from leadhook.core.logging import get_structlog_logger
from leadhook.services.freshness import now_ms

logger = get_structlog_logger(__name__)

UNKNOWN_CLIENT = "unknown"


class RateLimiter(Protocol):
    limit: int
    window_ms: int

    async def allow(self, identifier: str) -> bool:
        ...

    async def retry_after(self, identifier: str) -> int:
        """Seconds until the identifier's current window resets."""
        ...


@dataclass
class CounterEntry:
    count: int
    reset_at: int


class InMemoryRateLimiter:
    """Process-local limiter. Entries live for the lifetime of the process."""

    def __init__(
        self,
        limit: int = 20,
        window_ms: int = 60_000,
        clock: Callable[[], int] = now_ms,
    ):
        self.limit = limit
        self.window_ms = window_ms
        self._clock = clock
        self._entries: Dict[str, CounterEntry] = {}
        self._lock = threading.Lock()

    def hit(self, identifier: str, limit: Optional[int] = None, window_ms: Optional[int] = None) -> bool:
        limit = self.limit if limit is None else limit
        window_ms = self.window_ms if window_ms is None else window_ms

        with self._lock:
            now = self._clock()
            entry = self._entries.get(identifier)

            if entry is None or now > entry.reset_at:
                self._entries[identifier] = CounterEntry(count=1, reset_at=now + window_ms)
                return True

            if entry.count >= limit:
                return False

            entry.count += 1
            return True

    async def allow(self, identifier: str) -> bool:
        return self.hit(identifier)

    async def retry_after(self, identifier: str) -> int:
        with self._lock:
            entry = self._entries.get(identifier)
            if entry is None:
                return 0
            remaining = entry.reset_at - self._clock()
        return max(0, math.ceil(remaining / 1000))

    def __len__(self) -> int:
        return len(self._entries)


class RedisRateLimiter:
    """Same fixed-window semantics backed by Redis INCR, shareable across processes."""

    def __init__(
        self,
        client: redis.Redis,
        limit: int = 20,
        window_ms: int = 60_000,
        prefix: str = "ratelimit",
    ):
        self.redis = client
        self.limit = limit
        self.window_ms = window_ms
        self.prefix = prefix

    def _key(self, identifier: str) -> str:
        return f"{self.prefix}:{identifier}"

    async def allow(self, identifier: str) -> bool:
        key = self._key(identifier)
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                pipe.pexpire(key, self.window_ms, nx=True)
                results = await pipe.execute()
        except redis.RedisError as e:
            logger.error("rate_limit.backend_error", error=str(e))
            raise ServiceUnavailableError(
                message="Rate limiter unavailable",
                status_code=500,
                code="rate_limiter_unavailable",
                details={"error": str(e)},
            ) from e

        current_count = int(results[0])
        return current_count <= self.limit

    async def retry_after(self, identifier: str) -> int:
        try:
            ttl_ms = await self.redis.pttl(self._key(identifier))
        except redis.RedisError as e:
            logger.error("rate_limit.ttl_error", error=str(e))
            return math.ceil(self.window_ms / 1000)
        if ttl_ms is None or ttl_ms < 0:
            return 0
        return math.ceil(ttl_ms / 1000)


def resolve_client_ip(headers: Mapping[str, str]) -> str:
    """First X-Forwarded-For hop, else X-Real-IP, else the shared 'unknown' bucket."""
    forwarded_for = headers.get("x-forwarded-for")
    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return UNKNOWN_CLIENT
