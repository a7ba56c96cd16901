from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence


class ConfigurationError(Exception):
    """Required configuration is missing or invalid. Fatal at startup."""

    def __init__(self, message: str, missing: Optional[Sequence[str]] = None):
        self.message = message
        self.missing = list(missing or [])
        super().__init__(message)


class BaseAPIException(Exception):
    """Base exception for all API errors."""

    default_message = "An error occurred"
    default_code = "error"
    status_code = 500

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "success": False,
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            body["details"] = self.details
        return body

    @property
    def headers(self) -> Dict[str, str]:
        return {}


class AuthorizationError(BaseAPIException):
    """Caller is not permitted to use the endpoint."""
    default_message = "Authorization failed"
    default_code = "authorization_failed"
    status_code = 403


class OriginRejected(AuthorizationError):
    default_message = "Origin not allowed"
    default_code = "origin_not_allowed"


class AuthenticationError(BaseAPIException):
    """Caller credentials or request authenticity could not be established."""
    default_message = "Authentication failed"
    default_code = "authentication_failed"
    status_code = 401


class InvalidApiKey(AuthenticationError):
    default_message = "Invalid API key"
    default_code = "invalid_api_key"


class MissingSecurityHeaders(AuthenticationError):
    default_message = "Missing security headers"
    default_code = "missing_security_headers"


class RequestExpired(AuthenticationError):
    default_message = "Request expired"
    default_code = "request_expired"


class InvalidSignature(AuthenticationError):
    default_message = "Invalid signature"
    default_code = "invalid_signature"


class ClientInputError(BaseAPIException):
    """Request body could not be accepted."""
    default_message = "Invalid request"
    default_code = "invalid_request"
    status_code = 400


class EmptyBody(ClientInputError):
    default_message = "Empty body"
    default_code = "empty_body"


class MalformedJSON(ClientInputError):
    default_message = "Invalid JSON"
    default_code = "invalid_json"


class SchemaViolation(ClientInputError):
    default_message = "Validation failed"
    default_code = "validation_failed"

    def __init__(self, violations: List[Dict[str, str]], message: Optional[str] = None):
        self.violations = violations
        super().__init__(message, details={"errors": violations})


class RateLimitError(BaseAPIException):
    default_message = "Rate limit exceeded"
    default_code = "rate_limit_exceeded"
    status_code = 429

    def __init__(self, message: Optional[str] = None, retry_after: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after

    @property
    def headers(self) -> Dict[str, str]:
        if self.retry_after is None:
            return {}
        return {"Retry-After": str(self.retry_after)}


class StorageError(BaseAPIException):
    """The lead store failed or did not confirm the write."""
    default_message = "Database error"
    default_code = "storage_error"
    status_code = 500


class ServiceUnavailableError(BaseAPIException):
    default_message = "Service unavailable"
    default_code = "service_unavailable"
    status_code = 503
