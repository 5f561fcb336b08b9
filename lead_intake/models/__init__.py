# lead_intake/models/__init__.py
"""
SQLAlchemy ORM models for database entities.
"""

from lead_intake.models.lead import Lead

__all__ = [
    "Lead",
]
