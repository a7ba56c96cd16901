# leadhook/main.py
from __future__ import annotations

import time
import uuid
from contextlib import asynccontextmanager
from typing import Callable, Optional

import sentry_sdk
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from leadhook.core.config import Settings, settings as default_settings
from leadhook.core.exceptions import BaseAPIException
from leadhook.core.logging import configure_structlog, get_structlog_logger
from leadhook.db.session import create_database_engine, create_session_factory
from leadhook.db.store import LeadStore, SqlLeadStore
from leadhook.middleware.logging import LoggingMiddleware, quiet_paths
from leadhook.middleware.request_id import RequestIdMiddleware
from leadhook.routes import health, metrics, webhooks
from leadhook.services.freshness import now_ms
from leadhook.services.lead_ingest import IngestionPipeline
from leadhook.services.rate_limiter import InMemoryRateLimiter, RateLimiter, RedisRateLimiter
from leadhook.services.redis import close_redis_client, create_redis_client

logger = get_structlog_logger(__name__)


def _build_rate_limiter(settings: Settings):
    if settings.rate_limit_backend == "redis":
        client = create_redis_client(settings)
        limiter = RedisRateLimiter(
            client,
            limit=settings.rate_limit_requests,
            window_ms=settings.rate_limit_window_ms,
        )
        return limiter, client
    limiter = InMemoryRateLimiter(
        limit=settings.rate_limit_requests,
        window_ms=settings.rate_limit_window_ms,
    )
    return limiter, None


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[LeadStore] = None,
    rate_limiter: Optional[RateLimiter] = None,
    clock: Callable[[], int] = now_ms,
) -> FastAPI:
    """
    Build the webhook application.

    ``store`` and ``rate_limiter`` are created from configuration at startup
    unless injected. Missing required configuration aborts startup with
    ``ConfigurationError``.
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("application.starting", environment=settings.environment)

        settings.ensure_ingestion_ready(require_store=store is None)

        engine = None
        lead_store = store
        if lead_store is None:
            engine = create_database_engine(settings)
            lead_store = SqlLeadStore(create_session_factory(engine))

        redis_client = None
        limiter = rate_limiter
        if limiter is None:
            limiter, redis_client = _build_rate_limiter(settings)

        app.state.store = lead_store
        app.state.rate_limiter = limiter
        app.state.redis = redis_client
        app.state.pipeline = IngestionPipeline.from_settings(settings, lead_store, limiter, clock=clock)

        if settings.sentry_dsn:
            sentry_sdk.init(
                dsn=settings.sentry_dsn,
                environment=settings.environment,
                integrations=[FastApiIntegration(), StarletteIntegration()],
                traces_sample_rate=1.0 if settings.is_development else 0.1,
                send_default_pii=False,
            )
            logger.info("sentry.initialized")

        logger.info(
            "application.started",
            rate_limit_backend=settings.rate_limit_backend if rate_limiter is None else type(limiter).__name__,
            allowed_origins=len(settings.origins()),
        )
        yield

        logger.info("application.shutting_down")
        if redis_client is not None:
            await close_redis_client(redis_client)
        if engine is not None:
            await engine.dispose()
            logger.info("database.connection_closed")
        logger.info("application.shutdown_complete")

    app = FastAPI(
        title="Leadhook",
        version="1.0.0",
        description="Signed lead-ingestion webhook",
        docs_url="/docs" if settings.is_development else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.is_development else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.started_at = time.monotonic()

    # Last added runs first: request id is bound before logging sees the request
    app.add_middleware(LoggingMiddleware, skip_paths=quiet_paths(settings.api_prefix))
    app.add_middleware(RequestIdMiddleware)

    @app.exception_handler(BaseAPIException)
    async def api_exception_handler(request: Request, exc: BaseAPIException):
        logger.warning(
            "api.exception",
            status_code=exc.status_code,
            code=exc.code,
            path=request.url.path,
            method=request.method,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(part) for part in error.get("loc", [])),
                "message": error.get("msg", "Validation error"),
            }
            for error in exc.errors()
        ]
        logger.warning("validation.error", path=request.url.path, errors=errors)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "code": "validation_failed",
                "message": "Request validation failed",
                "details": {"errors": errors},
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        error_id = f"err_{uuid.uuid4().hex[:12]}"
        logger.error(
            "unhandled.exception",
            error_id=error_id,
            error_type=type(exc).__name__,
            error=str(exc),
            path=request.url.path,
            method=request.method,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "code": "internal_error",
                "message": "Internal server error",
                "details": {"error_id": error_id},
            },
            headers={"X-Error-ID": error_id},
        )

    app.include_router(webhooks.router, prefix=settings.api_prefix)
    app.include_router(health.router, prefix=settings.api_prefix)
    app.include_router(metrics.router, prefix=settings.api_prefix)

    if not settings.is_testing:
        Instrumentator().instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

    return app


configure_structlog()
app = create_app()
