from leadhook.middleware.logging import LoggingMiddleware
from leadhook.middleware.request_id import RequestIdMiddleware

__all__ = [
    "LoggingMiddleware",
    "RequestIdMiddleware",
]
