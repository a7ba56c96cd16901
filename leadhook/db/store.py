"""
Lead store collaborator.

The ingestion pipeline only needs ``insert``; health and metrics reporting
use ``query`` and ``ping``. Any append-only backend satisfying
``LeadStore`` can be swapped in.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leadhook.core.exceptions import StorageError
from leadhook.core.logging import get_structlog_logger
from leadhook.models.lead import Lead

logger = get_structlog_logger(__name__)


class LeadStore(Protocol):
    async def insert(self, record: Mapping[str, Any]) -> str:
        """Persist one lead record and return its generated identifier."""
        ...

    async def query(
        self,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Leads created at or after ``since``, newest first."""
        ...

    async def ping(self) -> None:
        ...


class SqlLeadStore:
    """LeadStore over an SQLAlchemy async session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def insert(self, record: Mapping[str, Any]) -> str:
        lead = Lead(
            id=uuid.uuid4(),
            name=record["name"],
            email=record.get("email"),
            phone=record.get("phone"),
            city=record.get("city"),
            street=record.get("street"),
            notes=record.get("notes"),
            status=record["status"],
            priority=record["priority"],
            source=record["source"],
            lead_metadata=dict(record.get("metadata") or {}),
        )

        async with self.session_factory() as session:
            try:
                session.add(lead)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("store.insert_failed", error=str(e))
                raise StorageError(details={"error": str(e)}) from e

        return str(lead.id)

    async def query(
        self,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        stmt = select(Lead).order_by(Lead.created_at.desc())
        if since is not None:
            stmt = stmt.where(Lead.created_at >= since)
        if limit is not None:
            stmt = stmt.limit(limit)

        async with self.session_factory() as session:
            try:
                result = await session.execute(stmt)
            except SQLAlchemyError as e:
                logger.error("store.query_failed", error=str(e))
                raise StorageError(details={"error": str(e)}) from e
            leads = result.scalars().all()

        return [
            {
                "id": str(lead.id),
                "source": lead.source,
                "status": lead.status,
                "created_at": lead.created_at,
                "metadata": lead.lead_metadata or {},
            }
            for lead in leads
        ]

    async def ping(self) -> None:
        async with self.session_factory() as session:
            try:
                await session.execute(select(1))
            except SQLAlchemyError as e:
                raise StorageError(details={"error": str(e)}) from e
