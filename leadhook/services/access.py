from __future__ import annotations

from typing import Collection, Dict, Iterable, Optional

from leadhook.core.exceptions import InvalidApiKey, OriginRejected

CORS_ALLOW_METHODS = "POST, OPTIONS"
CORS_ALLOW_HEADERS = "Content-Type, X-API-Key, X-Signature, X-Timestamp"
CORS_MAX_AGE = "86400"


def check_origin(origin: Optional[str], allowlist: Iterable[str]) -> bool:
    """Allow when the origin contains any configured fragment (e.g. a bare domain)."""
    if not origin:
        return False
    return any(allowed and allowed in origin for allowed in allowlist)


def check_api_key(key: Optional[str], valid_keys: Collection[str]) -> bool:
    # Plain membership test; not constant time.
    if not key:
        return False
    return key in valid_keys


def cors_headers(origin: Optional[str], allowed: bool) -> Dict[str, str]:
    headers = {
        "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
        "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
        "Access-Control-Max-Age": CORS_MAX_AGE,
        "Vary": "Origin",
    }
    if allowed and origin:
        headers["Access-Control-Allow-Origin"] = origin
    return headers


def preflight_headers(origin: Optional[str]) -> Dict[str, str]:
    """Preflight carries no credentials, so it is answered without the gate."""
    headers = cors_headers(origin, allowed=True)
    headers.setdefault("Access-Control-Allow-Origin", "*")
    return headers


class AccessGate:
    """Origin allow-list and API-key check, independent of payload content."""

    def __init__(self, allowed_origins: Iterable[str], api_keys: Iterable[str]):
        self.allowed_origins = tuple(o for o in allowed_origins if o)
        self.api_keys = frozenset(k for k in api_keys if k)

    def origin_allowed(self, origin: Optional[str]) -> bool:
        return check_origin(origin, self.allowed_origins)

    def require_origin(self, origin: Optional[str]) -> None:
        if not self.origin_allowed(origin):
            raise OriginRejected(details={"origin": origin} if origin else None)

    def require_api_key(self, api_key: Optional[str]) -> None:
        if not check_api_key(api_key, self.api_keys):
            raise InvalidApiKey()

    def authorize(self, origin: Optional[str], api_key: Optional[str]) -> None:
        self.require_origin(origin)
        self.require_api_key(api_key)
