# lead_intake/services/delivery_engine.py
from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

import aiohttp
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lead_intake.core.config import WebhookConfig, settings
from lead_intake.core.logging import get_structlog_logger
from lead_intake.schemas.lead import LeadSubmission
from lead_intake.services.lead_store import mark_webhook_sent

logger = get_structlog_logger(__name__)

LEAD_SOURCE = "website_form"


def format_webhook_payload(
    *,
    lead_id: uuid.UUID,
    lead: LeadSubmission,
    attribution: Optional[Mapping[str, str]],
) -> Dict[str, Any]:
    """
    Format a stored lead into the automation webhook payload.
    """
    payload: Dict[str, Any] = {
        "lead_id": str(lead_id),
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "property": {
            "address": lead.address,
            "condition": lead.condition,
            "timeline": lead.timeline,
            "asking_price": lead.asking_price,
            "is_listed": lead.is_listed == "yes",
        },
        "contact": {
            "first_name": lead.first_name,
            "last_name": lead.last_name,
            "full_name": lead.full_name,
            "email": lead.email,
            "phone": lead.phone,
            "sms_consent": lead.sms_consent,
        },
        "source": LEAD_SOURCE,
    }

    if attribution:
        payload["attribution"] = dict(attribution)

    return payload


async def deliver_via_webhook(
    *,
    url: str,
    payload: Dict[str, Any],
    timeout: int = 10,
) -> tuple[bool, Optional[int], Optional[str]]:
    """
    Deliver lead via webhook POST.
    Returns (success, http_status, error_message).
    """
    headers = {
        "Content-Type": "application/json",
        "User-Agent": "LeadIntake-Webhook/1.0",
    }

    try:
        async with aiohttp.ClientSession() as session:
            async with session.post(
                url,
                json=payload,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as response:
                status = response.status
                if 200 <= status < 300:
                    return (True, status, None)
                error_text = await response.text()
                return (False, status, f"HTTP {status}: {error_text[:200]}")
    except asyncio.TimeoutError:
        return (False, None, "Request timeout")
    except aiohttp.ClientError as e:
        return (False, None, f"Client error: {str(e)[:200]}")
    except Exception as e:
        return (False, None, f"Unexpected error: {str(e)[:200]}")


async def forward_lead_to_webhook(
    *,
    session_factory: async_sessionmaker[AsyncSession],
    webhook: WebhookConfig,
    lead_id: uuid.UUID,
    payload: Dict[str, Any],
    timeout: Optional[int] = None,
) -> bool:
    """
    Forward one lead to the automation webhook.

    Single attempt, no retry. Only a 2xx marks the row as sent; any other
    result is logged and leaves the row untouched.
    """
    success, http_status, error_msg = await deliver_via_webhook(
        url=webhook.url,
        payload=payload,
        timeout=timeout or settings.webhook_timeout_seconds,
    )

    if not success:
        logger.warning(
            "webhook.failed",
            lead_id=str(lead_id),
            http_status=http_status,
            error=error_msg,
        )
        return False

    await mark_webhook_sent(session_factory, lead_id)
    logger.info("webhook.delivered", lead_id=str(lead_id), http_status=http_status)
    return True
