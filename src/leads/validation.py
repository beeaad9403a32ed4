"""
Lead validation.

Schema checks on normalized core values, mirroring the column constraints
of the leads table. Attribution values are free-form and not validated.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import LeadValidationError
from .normalizer import EMAIL_RE

CONTACT_FIELDS = ("full_name", "phone", "email")


class LeadInput(BaseModel):
    """Validated core fields of a submission."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    full_name: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = Field(None, min_length=3)
    email: Optional[str] = None
    age: Optional[int] = Field(None, ge=0, le=120)
    account_id: Optional[UUID] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not EMAIL_RE.match(v):
            raise ValueError("Invalid email address")
        return v


def _issues(exc: ValidationError) -> List[Dict[str, Any]]:
    return [
        {
            "field": ".".join(str(loc) for loc in err["loc"]),
            "message": err["msg"],
            "code": err["type"],
        }
        for err in exc.errors()
    ]


def validate_core(
    values: Mapping[str, str],
    received_keys: Optional[List[str]] = None,
    require_contact: bool = True,
) -> Dict[str, Any]:
    """
    Validate normalized core fields.

    Args:
        values: Canonical core values (strings).
        received_keys: Raw keys of the request, echoed back on failure.
        require_contact: Reject when full_name, phone and email are all missing.

    Returns:
        The values with typed fields coerced (age -> int, account_id -> str).

    Raises:
        LeadValidationError: A value is out of range or malformed.
    """
    try:
        model = LeadInput.model_validate(dict(values))
    except ValidationError as e:
        raise LeadValidationError(_issues(e), received_keys) from e

    if require_contact and not any(getattr(model, name) for name in CONTACT_FIELDS):
        raise LeadValidationError(
            [{
                "field": "full_name|phone|email",
                "message": "At least one contact field is required",
                "code": "no_contact",
            }],
            received_keys,
        )

    cleaned = dict(values)
    for name, value in model.model_dump(exclude_none=True).items():
        cleaned[name] = str(value) if isinstance(value, UUID) else value
    return cleaned
