# leadhook/models/lead.py
from __future__ import annotations

import uuid

from sqlalchemy import JSON, Column, DateTime, Index, String, Text, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB

from leadhook.db.base import Base


class Lead(Base):
    __tablename__ = "leads"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    name = Column(Text, nullable=False)
    email = Column(Text, nullable=True)
    phone = Column(Text, nullable=True)
    city = Column(Text, nullable=True)
    street = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    status = Column(String(32), nullable=False, server_default="received")
    priority = Column(String(32), nullable=False, server_default="medium")
    source = Column(Text, nullable=False, server_default="api-webhook")

    # UTM attribution, caller ip/user agent, form and receipt timestamps
    lead_metadata = Column("metadata", JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict)

    __table_args__ = (
        Index("idx_leads_created_at", "created_at"),
        Index("idx_leads_source_created_at", "source", "created_at"),
        Index("idx_leads_status", "status"),
    )
