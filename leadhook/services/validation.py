"""Structural and semantic validation of decoded lead payloads."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from leadhook.schemas.lead import LeadIn

CONTACT_ERROR_TYPE = "contact_required"
CONTACT_ERROR_FIELD = "email"
CONTACT_ERROR_MESSAGE = "Either email or phone must be provided"


@dataclass(frozen=True)
class Violation:
    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}


@dataclass(frozen=True)
class LeadValidation:
    lead: Optional[LeadIn] = None
    violations: Tuple[Violation, ...] = field(default_factory=tuple)

    @property
    def is_valid(self) -> bool:
        return self.lead is not None and not self.violations


def _field_path(loc: Tuple[Any, ...], error_type: str) -> str:
    if not loc:
        return CONTACT_ERROR_FIELD if error_type == CONTACT_ERROR_TYPE else "body"
    return ".".join(str(part) for part in loc)


def _lacks_contact(data: Any) -> bool:
    if not isinstance(data, dict):
        return False
    return not data.get("email") and not data.get("phone")


def validate_lead_payload(data: Any) -> LeadValidation:
    """
    Validate a decoded JSON value against the lead schema.

    Every violation is collected, in the order pydantic reports them, with
    the contact-channel rule appended when field errors kept the model-level
    check from running.
    """
    try:
        lead = LeadIn.model_validate(data)
    except ValidationError as exc:
        violations: List[Violation] = []
        for error in exc.errors(include_url=False):
            violations.append(
                Violation(
                    field=_field_path(tuple(error.get("loc", ())), error.get("type", "")),
                    message=error.get("msg", "Invalid value"),
                )
            )

        reported_contact = any(
            error.get("type") == CONTACT_ERROR_TYPE for error in exc.errors(include_url=False)
        )
        if _lacks_contact(data) and not reported_contact:
            violations.append(Violation(field=CONTACT_ERROR_FIELD, message=CONTACT_ERROR_MESSAGE))

        return LeadValidation(violations=tuple(violations))

    return LeadValidation(lead=lead)
