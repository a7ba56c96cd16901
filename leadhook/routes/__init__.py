# leadhook/routes/__init__.py
"""
API route handlers organized by domain.
"""

from leadhook.routes.health import router as health_router
from leadhook.routes.metrics import router as metrics_router
from leadhook.routes.webhooks import router as webhooks_router

__all__ = [
    "health_router",
    "metrics_router",
    "webhooks_router",
]
