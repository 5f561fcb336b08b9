# lead_intake/services/tasks.py
"""
Post-response integration work.

The submit route schedules ``dispatch_integrations`` on FastAPI's
BackgroundTasks. In-flight tasks are tracked so that shutdown can wait for
them up to ``BACKGROUND_GRACE_SECONDS``.
"""
from __future__ import annotations

import asyncio
import uuid
from typing import Any, Awaitable, Mapping, Optional, Set

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lead_intake.core.config import PipelineConfig, settings
from lead_intake.core.logging import get_structlog_logger
from lead_intake.schemas.lead import LeadSubmission
from lead_intake.services.crm_sync import CRMClientFactory, sync_lead_to_crm
from lead_intake.services.delivery_engine import (
    format_webhook_payload,
    forward_lead_to_webhook,
)

logger = get_structlog_logger(__name__)

_in_flight: Set["asyncio.Task[Any]"] = set()


async def run_background_task(coro: Awaitable[Any], name: str) -> Any:
    """Await one integration task; errors are logged, never raised."""
    try:
        return await coro
    except Exception as e:
        logger.error("background_task.failed", task=name, error=str(e), exc_info=True)
        return None


def _spawn(coro: Awaitable[Any], name: str) -> "asyncio.Task[Any]":
    task = asyncio.ensure_future(run_background_task(coro, name))
    _in_flight.add(task)
    task.add_done_callback(_in_flight.discard)
    return task


async def dispatch_integrations(
    *,
    config: PipelineConfig,
    session_factory: async_sessionmaker[AsyncSession],
    client_factory: CRMClientFactory,
    lead_id: uuid.UUID,
    lead: LeadSubmission,
    attribution: Mapping[str, str],
) -> None:
    """Run the webhook forward and the CRM sync concurrently for one stored lead."""
    tasks = []

    webhook = config.integrations.webhook
    if webhook is not None:
        payload = format_webhook_payload(lead_id=lead_id, lead=lead, attribution=attribution)
        tasks.append(
            _spawn(
                forward_lead_to_webhook(
                    session_factory=session_factory,
                    webhook=webhook,
                    lead_id=lead_id,
                    payload=payload,
                ),
                "webhook",
            )
        )
    else:
        logger.info("webhook.skipped", lead_id=str(lead_id), reason="not_configured")

    tasks.append(
        _spawn(
            sync_lead_to_crm(
                session_factory=session_factory,
                crm=config.integrations.crm,
                client_factory=client_factory,
                lead_id=lead_id,
                lead=lead,
                attribution=attribution,
            ),
            "crm_sync",
        )
    )

    await asyncio.gather(*tasks)


async def drain_background_tasks(timeout: Optional[float] = None) -> int:
    """Wait for in-flight integration tasks. Returns how many were still pending."""
    if not _in_flight:
        return 0
    grace = settings.background_grace_seconds if timeout is None else timeout
    _, pending = await asyncio.wait(set(_in_flight), timeout=grace)
    if pending:
        logger.warning("background_tasks.abandoned", count=len(pending))
    return len(pending)
