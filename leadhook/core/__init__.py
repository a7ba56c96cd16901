# leadhook/core/__init__.py
"""
Core package for configuration, logging, and shared exceptions.
"""

from leadhook.core.config import Settings, settings
from leadhook.core.exceptions import ConfigurationError
from leadhook.core.logging import configure_structlog, get_structlog_logger

__all__ = [
    "ConfigurationError",
    "Settings",
    "settings",
    "configure_structlog",
    "get_structlog_logger",
]
