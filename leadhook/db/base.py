from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import MetaData, inspect
from sqlalchemy.orm import DeclarativeBase

# Use naming convention for constraints
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    metadata = MetaData(naming_convention=convention)

    def to_dict(self, exclude: Optional[List[str]] = None) -> Dict[str, Any]:
        """Convert model instance to a dictionary keyed by column name."""
        exclude = exclude or []
        result = {}

        for attr in inspect(self).mapper.column_attrs:
            column_name = attr.columns[0].name
            if column_name in exclude:
                continue
            result[column_name] = getattr(self, attr.key)

        return result

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={getattr(self, 'id', None)!r})>"
