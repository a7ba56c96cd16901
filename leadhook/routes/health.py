# leadhook/routes/health.py
from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from leadhook.core.config import Settings
from leadhook.core.logging import get_structlog_logger
from leadhook.db.store import LeadStore
from leadhook.services.redis import health_check as redis_health_check

logger = get_structlog_logger(__name__)

router = APIRouter(tags=["health"])

RECENT_ACTIVITY_WINDOW = timedelta(minutes=5)


class CheckResult(BaseModel):
    status: str
    message: Optional[str] = None
    latency_ms: Optional[float] = None


class HealthCheckResponse(BaseModel):
    status: str
    timestamp: str
    uptime: float
    checks: Dict[str, CheckResult]


async def check_store(store: Optional[LeadStore]) -> CheckResult:
    if store is None:
        return CheckResult(status="unhealthy", message="Lead store not initialised")

    start = time.perf_counter()
    try:
        await store.ping()
    except Exception as e:
        return CheckResult(
            status="unhealthy",
            message=str(e),
            latency_ms=(time.perf_counter() - start) * 1000,
        )
    return CheckResult(status="healthy", latency_ms=(time.perf_counter() - start) * 1000)


def check_environment(settings: Settings) -> CheckResult:
    missing = settings.missing_required()
    if missing:
        return CheckResult(status="unhealthy", message=f"Missing: {', '.join(missing)}")
    return CheckResult(status="healthy")


async def check_recent_activity(store: Optional[LeadStore]) -> CheckResult:
    if store is None:
        return CheckResult(status="warning", message="Lead store not initialised")
    since = datetime.now(timezone.utc) - RECENT_ACTIVITY_WINDOW
    try:
        leads = await store.query(since=since)
    except Exception as e:
        return CheckResult(status="warning", message=str(e))
    return CheckResult(status="healthy", message=f"{len(leads)} leads in last 5 minutes")


async def check_redis(client) -> CheckResult:
    result = await redis_health_check(client)
    return CheckResult(
        status=result["status"],
        message=result.get("error"),
        latency_ms=result.get("response_time_ms"),
    )


def overall_status(checks: Dict[str, CheckResult]) -> str:
    if checks["environment"].status != "healthy":
        return "unhealthy"
    if checks["store"].status != "healthy":
        return "degraded"
    if "redis" in checks and checks["redis"].status != "healthy":
        return "degraded"
    return "healthy"


STATUS_CODES: Dict[str, int] = {
    "healthy": status.HTTP_200_OK,
    "degraded": status.HTTP_207_MULTI_STATUS,
    "unhealthy": status.HTTP_503_SERVICE_UNAVAILABLE,
}


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(request: Request) -> JSONResponse:
    """Store reachability, required configuration and recent ingestion activity."""
    settings: Settings = request.app.state.settings
    store: Optional[LeadStore] = getattr(request.app.state, "store", None)

    checks = {
        "store": await check_store(store),
        "environment": check_environment(settings),
        "recent_activity": await check_recent_activity(store),
    }
    # Only present when the rate limiter is backed by Redis
    redis_client = getattr(request.app.state, "redis", None)
    if redis_client is not None:
        checks["redis"] = await check_redis(redis_client)
    state = overall_status(checks)

    response = HealthCheckResponse(
        status=state,
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime=time.monotonic() - request.app.state.started_at,
        checks=checks,
    )

    log_data: Dict[str, Any] = {"status": state, "checks": {k: v.status for k, v in checks.items()}}
    if state == "healthy":
        logger.info("health.check", **log_data)
    else:
        logger.warning("health.check", **log_data)

    return JSONResponse(content=response.model_dump(), status_code=STATUS_CODES[state])


@router.get("/health/live", status_code=status.HTTP_200_OK)
async def liveness_probe():
    """Simple liveness probe for containers."""
    return {
        "status": "alive",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
