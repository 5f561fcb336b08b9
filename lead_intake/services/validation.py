"""Lead submission validation and honeypot detection."""
from __future__ import annotations

from typing import Any, Dict, List

from pydantic import ValidationError

from lead_intake.core.exceptions import LeadValidationError
from lead_intake.schemas.lead import LeadSubmission


def _field_errors(exc: ValidationError) -> List[Dict[str, str]]:
    errors = []
    for error in exc.errors():
        loc = error.get("loc", ())
        field = ".".join(str(part) for part in loc) or "body"
        errors.append({"field": field, "message": error.get("msg", "Invalid value")})
    return errors


def validate_submission(payload: Any) -> LeadSubmission:
    """
    Validate an untyped JSON payload into a LeadSubmission.

    Raises LeadValidationError listing every failing field.
    """
    if not isinstance(payload, dict):
        raise LeadValidationError(
            details=[{"field": "body", "message": "Request body must be a JSON object"}]
        )
    try:
        return LeadSubmission.model_validate(payload)
    except ValidationError as exc:
        raise LeadValidationError(details=_field_errors(exc)) from exc


def is_bot_submission(lead: LeadSubmission) -> bool:
    """True when the hidden honeypot field was filled in."""
    return bool(lead.website and lead.website.strip())
