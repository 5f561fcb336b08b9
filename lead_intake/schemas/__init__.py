# lead_intake/schemas/__init__.py
"""
Pydantic schemas for request/response validation and serialization.
"""

from lead_intake.schemas.lead import (
    ErrorResponse,
    FieldError,
    LeadSubmission,
    LeadSubmitResponse,
)

__all__ = [
    "ErrorResponse",
    "FieldError",
    "LeadSubmission",
    "LeadSubmitResponse",
]
