# lead_intake/services/lead_store.py
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from lead_intake.core.exceptions import DatabaseError
from lead_intake.core.logging import get_structlog_logger
from lead_intake.db.base import Base
from lead_intake.models.lead import Lead
from lead_intake.schemas.lead import LeadSubmission

logger = get_structlog_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def insert_lead(
    session: AsyncSession,
    lead: LeadSubmission,
    attribution: Optional[Mapping[str, str]],
) -> Lead:
    """
    Insert one validated lead and commit.

    The attribution blob is stored as NULL when empty, never as {}.
    """
    record = Lead(
        first_name=lead.first_name,
        last_name=lead.last_name,
        email=lead.email,
        phone=lead.phone,
        sms_consent=lead.sms_consent,
        address=lead.address,
        is_listed=lead.is_listed,
        condition=lead.condition,
        timeline=lead.timeline,
        asking_price=lead.asking_price,
        attribution=dict(attribution) if attribution else None,
    )
    session.add(record)

    try:
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error("lead.insert_failed", error=str(e))
        raise DatabaseError("Failed to store lead data") from e

    return record


async def _update_columns(
    session_factory: async_sessionmaker[AsyncSession],
    lead_id: uuid.UUID,
    values: Dict[str, Any],
) -> None:
    # Single UPDATE touching only the given columns; concurrent writers of
    # other columns on the same row are unaffected.
    async with session_factory() as session:
        await session.execute(update(Lead).where(Lead.id == lead_id).values(**values))
        await session.commit()


async def mark_webhook_sent(
    session_factory: async_sessionmaker[AsyncSession],
    lead_id: uuid.UUID,
) -> None:
    await _update_columns(
        session_factory,
        lead_id,
        {"webhook_sent": True, "webhook_sent_at": _utcnow()},
    )


async def record_crm_outcome(
    session_factory: async_sessionmaker[AsyncSession],
    lead_id: uuid.UUID,
    *,
    sent: bool,
    response: Optional[str] = None,
    error: Optional[str] = None,
) -> None:
    await _update_columns(
        session_factory,
        lead_id,
        {
            "ghl_sent": sent,
            "ghl_sent_at": _utcnow(),
            "ghl_response": response,
            "ghl_error": error,
        },
    )


async def create_schema(engine: AsyncEngine) -> None:
    """Create the leads table if it does not exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
