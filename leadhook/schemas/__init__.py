# leadhook/schemas/__init__.py
"""
Pydantic schemas for request/response validation and serialization.
"""

from leadhook.schemas.lead import (
    ErrorResponse,
    LeadCreatedResponse,
    LeadIn,
    LeadMetadata,
    StoredLead,
)

__all__ = [
    "ErrorResponse",
    "LeadCreatedResponse",
    "LeadIn",
    "LeadMetadata",
    "StoredLead",
]
