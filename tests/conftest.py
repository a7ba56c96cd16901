from __future__ import annotations

import asyncio
import json
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

import pytest
from fastapi.testclient import TestClient

from leadhook.core.config import Settings
from leadhook.main import create_app
from leadhook.services.rate_limiter import InMemoryRateLimiter
from leadhook.services.signing import sign

SECRET = "test-webhook-secret-0123456789abcdef"
API_KEY = "key-live-1"
ORIGIN = "https://app.example.com"
START_MS = 1_760_000_000_000


class FakeClock:
    """Millisecond clock the tests move by hand."""

    def __init__(self, start: int = START_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class MemoryLeadStore:
    """In-process LeadStore double."""

    def __init__(self, fail_with: Optional[Exception] = None, delay: float = 0.0):
        self.records: List[Dict[str, Any]] = []
        self.fail_with = fail_with
        self.delay = delay
        self.insert_calls = 0

    async def insert(self, record: Mapping[str, Any]) -> str:
        self.insert_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        lead_id = str(uuid.uuid4())
        self.records.append({"id": lead_id, "created_at": datetime.now(timezone.utc), **record})
        return lead_id

    async def query(self, since=None, limit=None) -> List[Dict[str, Any]]:
        if self.fail_with is not None:
            raise self.fail_with
        rows = [r for r in self.records if since is None or r["created_at"] >= since]
        rows.sort(key=lambda r: r["created_at"], reverse=True)
        return rows[:limit] if limit is not None else rows

    async def ping(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with


def make_settings(**overrides) -> Settings:
    values = dict(
        environment="testing",
        webhook_secret=SECRET,
        allowed_origins="example.com,partner.io",
        api_keys=f"{API_KEY},key-live-2",
        database_url="postgresql+asyncpg://leads@localhost/leads",
        rate_limit_requests=20,
        rate_limit_window_ms=60_000,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


def lead_body(**fields) -> bytes:
    payload = {"name": "Alice", "email": "alice@acme.io", "city": "Austin"}
    payload.update(fields)
    return json.dumps(payload).encode("utf-8")


def signed_headers(
    body: bytes,
    timestamp: int,
    origin: Optional[str] = ORIGIN,
    api_key: Optional[str] = API_KEY,
    secret: str = SECRET,
    ip: Optional[str] = "203.0.113.7",
) -> Dict[str, str]:
    headers = {
        "Content-Type": "application/json",
        "X-Signature": sign(body, secret),
        "X-Timestamp": str(timestamp),
    }
    if origin is not None:
        headers["Origin"] = origin
    if api_key is not None:
        headers["X-API-Key"] = api_key
    if ip is not None:
        headers["X-Forwarded-For"] = ip
    return headers


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryLeadStore:
    return MemoryLeadStore()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def rate_limiter(clock, settings) -> InMemoryRateLimiter:
    return InMemoryRateLimiter(
        limit=settings.rate_limit_requests,
        window_ms=settings.rate_limit_window_ms,
        clock=clock,
    )


@pytest.fixture
def app(settings, store, rate_limiter, clock):
    return create_app(settings=settings, store=store, rate_limiter=rate_limiter, clock=clock)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
