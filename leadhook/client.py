"""
Client for submitting leads to the webhook.

Builds the JSON body once, signs those exact bytes and sends them with the
API key, signature and timestamp headers.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional
from urllib.parse import parse_qs, urlparse

import httpx

from leadhook.core.logging import get_structlog_logger
from leadhook.services.freshness import now_ms
from leadhook.services.signing import sign

logger = get_structlog_logger(__name__)

WEBHOOK_PATH = "/api/leads/webhook"
UTM_PARAMS = {
    "utm_source": "utmSource",
    "utm_medium": "utmMedium",
    "utm_campaign": "utmCampaign",
    "utm_term": "utmTerm",
    "utm_content": "utmContent",
}


@dataclass(frozen=True)
class LeadResponse:
    success: bool
    status_code: Optional[int] = None
    lead_id: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None


def utm_params_from_url(url: str) -> Dict[str, str]:
    """Extract UTM query parameters, keyed by their lead payload names."""
    query = parse_qs(urlparse(url).query)
    params = {}
    for query_name, field_name in UTM_PARAMS.items():
        values = query.get(query_name)
        if values and values[0]:
            params[field_name] = values[0]
    return params


def build_signed_request(
    lead: Mapping[str, Any],
    api_key: str,
    secret: str,
    origin: Optional[str] = None,
    timestamp_ms: Optional[int] = None,
) -> tuple[bytes, Dict[str, str]]:
    """Serialize the lead with a timestamp and return (body, headers)."""
    timestamp = now_ms() if timestamp_ms is None else timestamp_ms
    body = json.dumps({**lead, "timestamp": timestamp}, separators=(",", ":")).encode("utf-8")

    headers = {
        "Content-Type": "application/json",
        "X-API-Key": api_key,
        "X-Signature": sign(body, secret),
        "X-Timestamp": str(timestamp),
    }
    if origin:
        headers["Origin"] = origin
    return body, headers


class LeadClient:
    def __init__(
        self,
        api_url: str,
        api_key: str,
        webhook_secret: str,
        origin: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.origin = origin
        self.timeout = timeout
        self.transport = transport
        self.clock = clock

    async def send_lead(self, lead: Mapping[str, Any]) -> LeadResponse:
        body, headers = build_signed_request(
            lead,
            api_key=self.api_key,
            secret=self.webhook_secret,
            origin=self.origin,
            timestamp_ms=self.clock(),
        )

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(f"{self.api_url}{WEBHOOK_PATH}", content=body, headers=headers)
        except httpx.RequestError as e:
            logger.error("client.request_failed", url=self.api_url, error=str(e))
            return LeadResponse(success=False, error=str(e) or "Connection error")

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if not response.is_success:
            return LeadResponse(
                success=False,
                status_code=response.status_code,
                error=data.get("code") or f"HTTP {response.status_code}",
                message=data.get("message"),
            )

        return LeadResponse(
            success=True,
            status_code=response.status_code,
            lead_id=data.get("leadId"),
            message=data.get("message") or "Lead sent",
        )
