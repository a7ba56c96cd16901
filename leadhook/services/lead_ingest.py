# leadhook/services/lead_ingest.py
from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

from leadhook.core.config import Settings
from leadhook.core.exceptions import (
    BaseAPIException,
    EmptyBody,
    InvalidSignature,
    MalformedJSON,
    MissingSecurityHeaders,
    RateLimitError,
    RequestExpired,
    SchemaViolation,
    StorageError,
)
from leadhook.core.logging import get_structlog_logger
from leadhook.db.store import LeadStore
from leadhook.schemas.lead import DEFAULT_SOURCE, LeadCreatedResponse, LeadIn, LeadMetadata, StoredLead
from leadhook.services.access import AccessGate
from leadhook.services.freshness import is_fresh, now_ms, parse_timestamp
from leadhook.services.rate_limiter import UNKNOWN_CLIENT, RateLimiter
from leadhook.services.signing import get_signing_secret, verify
from leadhook.services.validation import validate_lead_payload

logger = get_structlog_logger(__name__)


class IngestionStage(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    ORIGIN_OK = "origin_ok"
    KEY_OK = "key_ok"
    RATE_OK = "rate_ok"
    BODY_PRESENT = "body_present"
    HEADERS_PRESENT = "headers_present"
    FRESH = "fresh"
    SIGNATURE_VALID = "signature_valid"
    JSON_PARSED = "json_parsed"
    SCHEMA_VALID = "schema_valid"
    PERSISTED = "persisted"


@dataclass(frozen=True)
class IncomingRequest:
    body: bytes
    origin: Optional[str] = None
    api_key: Optional[str] = None
    signature: Optional[str] = None
    timestamp: Optional[str] = None
    client_ip: str = UNKNOWN_CLIENT
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class IngestionResult:
    status_code: int
    body: Dict[str, Any]
    stage: IngestionStage
    origin_allowed: bool = False
    code: Optional[str] = None
    lead_id: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def accepted(self) -> bool:
        return self.stage is IngestionStage.PERSISTED


def build_stored_lead(
    lead: LeadIn,
    request: IncomingRequest,
    header_timestamp: int,
    received_at: datetime,
) -> StoredLead:
    """Project a validated lead plus request context into the stored shape."""
    return StoredLead(
        name=lead.name,
        email=lead.email,
        phone=lead.phone,
        city=lead.city,
        street=lead.street,
        notes=lead.notes if lead.notes else lead.message,
        source=lead.source or request.origin or DEFAULT_SOURCE,
        metadata=LeadMetadata(
            utm_source=lead.utm_source,
            utm_medium=lead.utm_medium,
            utm_campaign=lead.utm_campaign,
            utm_term=lead.utm_term,
            utm_content=lead.utm_content,
            ip_address=request.client_ip,
            user_agent=request.user_agent,
            form_timestamp=lead.timestamp if lead.timestamp is not None else header_timestamp,
            received_at=received_at.isoformat(),
        ),
    )


class IngestionPipeline:
    """
    Ordered gate chain for the lead webhook.

    Each gate either advances the request to the next stage or raises one
    of the API exceptions, which ``ingest`` turns into a rejection result.
    Nothing raised inside the chain escapes to the caller.
    """

    def __init__(
        self,
        gate: AccessGate,
        rate_limiter: RateLimiter,
        store: LeadStore,
        secret: bytes,
        tolerance_ms: int = 300_000,
        store_timeout: float = 10.0,
        clock: Callable[[], int] = now_ms,
    ):
        self.gate = gate
        self.rate_limiter = rate_limiter
        self.store = store
        self.secret = secret
        self.tolerance_ms = tolerance_ms
        self.store_timeout = store_timeout
        self.clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: LeadStore,
        rate_limiter: RateLimiter,
        clock: Callable[[], int] = now_ms,
    ) -> "IngestionPipeline":
        return cls(
            gate=AccessGate(settings.origins(), settings.keys()),
            rate_limiter=rate_limiter,
            store=store,
            secret=get_signing_secret(settings),
            tolerance_ms=settings.timestamp_tolerance_ms,
            store_timeout=settings.store_timeout_seconds,
            clock=clock,
        )

    async def ingest(self, request: IncomingRequest) -> IngestionResult:
        log = logger.bind(client_ip=request.client_ip, origin=request.origin)
        stage = IngestionStage.UNAUTHENTICATED
        origin_allowed = False

        try:
            self.gate.require_origin(request.origin)
            origin_allowed = True
            stage = IngestionStage.ORIGIN_OK

            self.gate.require_api_key(request.api_key)
            stage = IngestionStage.KEY_OK

            if not await self.rate_limiter.allow(request.client_ip):
                retry_after = await self.rate_limiter.retry_after(request.client_ip)
                log.warning("rate_limit.exceeded", limit=self.rate_limiter.limit, retry_after=retry_after)
                raise RateLimitError(
                    retry_after=retry_after,
                    details={
                        "limit": self.rate_limiter.limit,
                        "window_ms": self.rate_limiter.window_ms,
                        "retry_after": retry_after,
                    },
                )
            stage = IngestionStage.RATE_OK

            if not request.body:
                raise EmptyBody()
            stage = IngestionStage.BODY_PRESENT

            if not request.signature or not request.timestamp:
                raise MissingSecurityHeaders()
            stage = IngestionStage.HEADERS_PRESENT

            now = self.clock()
            header_timestamp = parse_timestamp(request.timestamp)
            if header_timestamp is None or not is_fresh(header_timestamp, now=now, tolerance_ms=self.tolerance_ms):
                raise RequestExpired()
            stage = IngestionStage.FRESH

            if not verify(request.body, request.signature, self.secret):
                raise InvalidSignature()
            stage = IngestionStage.SIGNATURE_VALID

            try:
                payload = json.loads(request.body)
            except ValueError as e:
                raise MalformedJSON(details={"error": str(e)}) from e
            stage = IngestionStage.JSON_PARSED

            validation = validate_lead_payload(payload)
            if not validation.is_valid:
                raise SchemaViolation([v.to_dict() for v in validation.violations])
            stage = IngestionStage.SCHEMA_VALID

            received_at = datetime.fromtimestamp(now / 1000, tz=timezone.utc)
            stored = build_stored_lead(validation.lead, request, header_timestamp, received_at)
            lead_id = await self._persist(stored)
            stage = IngestionStage.PERSISTED

        except BaseAPIException as exc:
            log_method = log.error if exc.status_code >= 500 else log.warning
            log_method(
                "webhook.rejected",
                code=exc.code,
                status_code=exc.status_code,
                stage=stage.value,
            )
            return IngestionResult(
                status_code=exc.status_code,
                body=exc.to_dict(),
                stage=stage,
                origin_allowed=origin_allowed,
                code=exc.code,
                headers=exc.headers,
            )
        except Exception as exc:
            log.error(
                "webhook.unexpected_error",
                error_type=type(exc).__name__,
                error=str(exc),
                stage=stage.value,
                exc_info=True,
            )
            return IngestionResult(
                status_code=500,
                body={
                    "success": False,
                    "code": "internal_error",
                    "message": "Internal server error",
                },
                stage=stage,
                origin_allowed=origin_allowed,
                code="internal_error",
            )

        log.info("lead.created", lead_id=lead_id, source=stored.source)
        return IngestionResult(
            status_code=201,
            body=LeadCreatedResponse(lead_id=lead_id).model_dump(by_alias=True),
            stage=stage,
            origin_allowed=origin_allowed,
            lead_id=lead_id,
        )

    async def _persist(self, stored: StoredLead) -> str:
        try:
            return await asyncio.wait_for(self.store.insert(stored.to_record()), timeout=self.store_timeout)
        except asyncio.TimeoutError as e:
            raise StorageError(
                message="Lead store did not respond in time",
                details={"error": f"insert timed out after {self.store_timeout}s"},
            ) from e
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(details={"error": str(e)}) from e
