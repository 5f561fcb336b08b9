# lead_intake/core/exceptions.py
from __future__ import annotations

from typing import Any, Dict, List, Optional


class ConfigurationError(Exception):
    """Mandatory configuration is missing. Fatal at startup."""


class BaseAPIException(Exception):
    """Base exception for errors surfaced to the HTTP caller."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: Optional[str] = None,
        details: Optional[List[Dict[str, Any]]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code or self.__class__.__name__
        self.details = details
        super().__init__(self.message)

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class LeadValidationError(BaseAPIException):
    """Submission failed validation. Carries one entry per failing field."""
    def __init__(self, message: str = "Validation failed", **kwargs):
        super().__init__(message, status_code=400, code="validation_error", **kwargs)


class DatabaseError(BaseAPIException):
    """Database error."""
    def __init__(self, message: str = "Database error", **kwargs):
        super().__init__(message, status_code=500, code="database_error", **kwargs)
