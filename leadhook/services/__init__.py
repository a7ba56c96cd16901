# leadhook/services/__init__.py
"""
Webhook security primitives and the ingestion pipeline built on them.
"""

from leadhook.services.access import AccessGate, check_api_key, check_origin
from leadhook.services.freshness import is_fresh, parse_timestamp
from leadhook.services.lead_ingest import (
    IncomingRequest,
    IngestionPipeline,
    IngestionResult,
    IngestionStage,
    build_stored_lead,
)
from leadhook.services.rate_limiter import InMemoryRateLimiter, RateLimiter, RedisRateLimiter, resolve_client_ip
from leadhook.services.signing import sign, verify
from leadhook.services.validation import LeadValidation, Violation, validate_lead_payload

__all__ = [
    # Access gate
    "AccessGate",
    "check_api_key",
    "check_origin",
    # Freshness
    "is_fresh",
    "parse_timestamp",
    # Ingestion
    "IncomingRequest",
    "IngestionPipeline",
    "IngestionResult",
    "IngestionStage",
    "build_stored_lead",
    # Rate limiting
    "InMemoryRateLimiter",
    "RateLimiter",
    "RedisRateLimiter",
    "resolve_client_ip",
    # Signing
    "sign",
    "verify",
    # Validation
    "LeadValidation",
    "Violation",
    "validate_lead_payload",
]
