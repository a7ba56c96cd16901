from __future__ import annotations

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic_core import PydanticCustomError

LEAD_STATUS_RECEIVED = "received"
LEAD_PRIORITY_DEFAULT = "medium"
DEFAULT_SOURCE = "api-webhook"


class LeadIn(BaseModel):
    """Lead record as submitted by a form integration."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(min_length=2)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, min_length=9)

    city: Optional[str] = None
    street: Optional[str] = None

    message: Optional[str] = None
    notes: Optional[str] = None

    source: Optional[str] = None
    utm_source: Optional[str] = Field(default=None, alias="utmSource")
    utm_medium: Optional[str] = Field(default=None, alias="utmMedium")
    utm_campaign: Optional[str] = Field(default=None, alias="utmCampaign")
    utm_term: Optional[str] = Field(default=None, alias="utmTerm")
    utm_content: Optional[str] = Field(default=None, alias="utmContent")

    # Client-side form timestamp, epoch milliseconds; JSON numbers only
    timestamp: Optional[Union[int, float]] = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def timestamp_is_json_number(cls, value: Any) -> Any:
        if value is None:
            return value
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise PydanticCustomError("number_type", "Input should be a number")
        return value

    @model_validator(mode="after")
    def require_contact_channel(self) -> "LeadIn":
        if not self.email and not self.phone:
            raise PydanticCustomError(
                "contact_required",
                "Either email or phone must be provided",
            )
        return self


class LeadMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_term: Optional[str] = None
    utm_content: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    form_timestamp: Optional[Union[int, float]] = None
    received_at: str


class StoredLead(BaseModel):
    """Projection handed to the lead store. Never mutated after construction."""

    model_config = ConfigDict(frozen=True)

    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    street: Optional[str] = None
    notes: Optional[str] = None
    status: str = LEAD_STATUS_RECEIVED
    priority: str = LEAD_PRIORITY_DEFAULT
    source: str = DEFAULT_SOURCE
    metadata: LeadMetadata

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump()


class LeadCreatedResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    lead_id: str = Field(alias="leadId")
    message: str = "Lead received successfully"


class ErrorResponse(BaseModel):
    success: bool = False
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None
