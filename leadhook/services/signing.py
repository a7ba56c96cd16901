"""HMAC-SHA256 request signing over raw body bytes."""
from __future__ import annotations

import hashlib
import hmac
import re
from typing import Optional, Union

from leadhook.core.config import Settings
from leadhook.core.exceptions import ConfigurationError

SIGNATURE_PREFIX = "sha256="

# 32-byte digest, hex encoded; no separators or whitespace
_SIGNATURE_PATTERN = re.compile(r"[0-9a-fA-F]{64}")

Secret = Union[bytes, str]


def _key(secret: Secret) -> bytes:
    return secret.encode("utf-8") if isinstance(secret, str) else bytes(secret)


def get_signing_secret(settings: Settings) -> bytes:
    """Return the shared webhook secret, failing fast when it is not configured."""
    if not settings.webhook_secret:
        raise ConfigurationError("WEBHOOK_SECRET environment variable is not set", missing=["WEBHOOK_SECRET"])
    return settings.webhook_secret.encode("utf-8")


def sign(payload: bytes, secret: Secret) -> str:
    """Hex HMAC-SHA256 of the exact payload bytes."""
    if not secret:
        raise ConfigurationError("Signing secret is empty", missing=["WEBHOOK_SECRET"])
    return hmac.new(_key(secret), payload, hashlib.sha256).hexdigest()


def verify(payload: bytes, signature: Optional[str], secret: Secret) -> bool:
    """
    Check a hex signature against the payload in constant time.

    Never raises: malformed hex, wrong length, an empty secret or a
    non-string candidate all verify as False.
    """
    if not signature or not isinstance(signature, str) or not secret:
        return False
    if signature.startswith(SIGNATURE_PREFIX):
        signature = signature[len(SIGNATURE_PREFIX):]
    if not _SIGNATURE_PATTERN.fullmatch(signature):
        return False

    try:
        candidate = bytes.fromhex(signature)
        expected = hmac.new(_key(secret), payload, hashlib.sha256).digest()
    except (ValueError, TypeError):
        return False

    return hmac.compare_digest(candidate, expected)
