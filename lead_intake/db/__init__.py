# lead_intake/db/__init__.py
"""
Database package for SQLAlchemy setup and session management.
"""

from lead_intake.db.base import Base
from lead_intake.db.session import create_database_engine, get_session_factory

__all__ = [
    "Base",
    "create_database_engine",
    "get_session_factory",
]
