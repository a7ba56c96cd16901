# leadhook/models/__init__.py
"""
SQLAlchemy ORM models for database entities.
"""

from leadhook.models.lead import Lead

__all__ = [
    "Lead",
]
