# leadhook/db/__init__.py
"""
Database package for SQLAlchemy setup and session management.

The lead store adapter lives in ``leadhook.db.store``.
"""

from leadhook.db.base import Base
from leadhook.db.session import create_database_engine, create_session_factory, create_tables

__all__ = [
    "Base",
    "create_database_engine",
    "create_session_factory",
    "create_tables",
]
