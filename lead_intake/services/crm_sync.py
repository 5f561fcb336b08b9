# lead_intake/services/crm_sync.py
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lead_intake.core.config import CRMConfig
from lead_intake.core.logging import get_structlog_logger, mask
from lead_intake.integrations.gohighlevel import CRMClient
from lead_intake.schemas.lead import LeadSubmission
from lead_intake.services.attribution import (
    ATTRIBUTION_FIELD_SPECS,
    PROPERTY_FIELD_SPECS,
    CustomFieldSpec,
)
from lead_intake.services.field_mapping import CustomFieldIndex, parse_custom_fields
from lead_intake.services.lead_store import record_crm_outcome
from lead_intake.services.normalization import normalize_phone_e164

logger = get_structlog_logger(__name__)

CONTACT_TAGS = ["website-lead", "cash-buyer"]
CONTACT_SOURCE = "website_form"
BODY_EXCERPT_MAX = 500

CRMClientFactory = Callable[[CRMConfig], CRMClient]


@dataclass(frozen=True)
class CRMSyncOutcome:
    sent: bool
    response: Optional[str] = None
    error: Optional[str] = None


def check_preconditions(crm: Optional[CRMConfig]) -> Optional[str]:
    """Return a configuration error message, or None when sync may proceed."""
    if crm is None:
        return "Configuration Error: Missing GHL_API_KEY"
    if not crm.is_private_integration_token:
        return (
            "Configuration Error: Unsupported GHL token type. "
            'Provide a private integration token (starts with "pit-").'
        )
    if not crm.location_id:
        return "Configuration Error: Missing GHL_LOCATION_ID for PIT token"
    if crm.location_looks_like_token:
        return (
            "Configuration Error: GHL_LOCATION_ID appears to be a PIT token, "
            "not a Location ID"
        )
    return None


async def discover_custom_fields(client: CRMClient, location_id: str) -> CustomFieldIndex:
    """
    Fetch the tenant's contact custom fields.

    Discovery is best effort: any failure yields an empty index and the sync
    carries on with operator overrides and the notes fallback.
    """
    try:
        response = await client.request(
            "GET",
            f"/locations/{location_id}/customFields",
            params={"model": "contact"},
        )
    except Exception as e:
        logger.warning("crm.discovery.error", error=str(e))
        return CustomFieldIndex()

    if not response.ok:
        logger.warning(
            "crm.discovery.failed",
            http_status=response.status,
            body=response.text[:BODY_EXCERPT_MAX],
        )
        return CustomFieldIndex()

    index = CustomFieldIndex(parse_custom_fields(response.json()))
    logger.info("crm.discovery.completed", field_count=len(index))
    return index


def _property_values(lead: LeadSubmission) -> Dict[str, Optional[str]]:
    listed = None
    if lead.is_listed is not None:
        listed = "Yes" if lead.is_listed == "yes" else "No"
    return {
        "askingPrice": lead.asking_price,
        "timeline": lead.timeline,
        "propertyListed": listed,
        "condition": lead.condition,
    }


def _candidates(
    lead: LeadSubmission,
    attribution: Mapping[str, str],
) -> List[Tuple[CustomFieldSpec, str]]:
    values = _property_values(lead)
    candidates: List[Tuple[CustomFieldSpec, str]] = []
    for field_spec in PROPERTY_FIELD_SPECS:
        value = (values.get(field_spec.name) or "").strip()
        if value:
            candidates.append((field_spec, value))
    for field_spec in ATTRIBUTION_FIELD_SPECS:
        value = (attribution.get(field_spec.storage_key) or "").strip()
        if value:
            candidates.append((field_spec, value))
    return candidates


def resolve_custom_fields(
    index: CustomFieldIndex,
    lead: LeadSubmission,
    attribution: Mapping[str, str],
    overrides: Optional[Mapping[str, str]] = None,
) -> Tuple[List[Dict[str, str]], List[str]]:
    """
    Map candidate values onto custom field ids.

    Returns ``(custom_fields, note_lines)``. Unresolved attribution values
    become ``key: value`` note lines; unresolved property values are dropped.
    """
    custom_fields: List[Dict[str, str]] = []
    note_lines: List[str] = []

    for field_spec, value in _candidates(lead, attribution):
        field_id = index.resolve(field_spec, overrides)
        if field_id:
            custom_fields.append({"id": field_id, "field_value": value})
        elif field_spec.is_attribution:
            note_lines.append(f"{field_spec.storage_key}: {value}")
        else:
            logger.debug("crm.field.unresolved", field=field_spec.name)

    return custom_fields, note_lines


def build_upsert_payload(
    *,
    location_id: str,
    lead: LeadSubmission,
    custom_fields: List[Dict[str, str]],
    note_lines: List[str],
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "locationId": location_id,
        "firstName": lead.first_name,
        "lastName": lead.last_name,
        "name": lead.full_name,
        "email": lead.email,
        "phone": normalize_phone_e164(lead.phone),
        "address1": lead.address,
        "tags": list(CONTACT_TAGS),
        "source": CONTACT_SOURCE,
    }
    if custom_fields:
        payload["customFields"] = custom_fields
    if note_lines:
        payload["notes"] = "Attribution:\n" + "\n".join(note_lines)
    return payload


def classify_failure(status: int, body: str) -> str:
    excerpt = (body or "")[:BODY_EXCERPT_MAX]
    if status == 401:
        return (
            "Unauthorized (401): the API key is invalid, expired or missing the "
            f"contacts.write scope. Body: {excerpt}"
        )
    if status == 403:
        return (
            "Forbidden (403): the token has no access to this location or to one "
            f"of the custom fields. Body: {excerpt}"
        )
    if status == 422:
        return (
            "Unprocessable (422): the payload or a custom field value does not match "
            f"the field type. Body: {excerpt}"
        )
    return f"API Error - Status: {status}, Body: {excerpt}"


def extract_contact_id(body: Any) -> str:
    if isinstance(body, dict):
        contact = body.get("contact")
        if isinstance(contact, dict) and contact.get("id"):
            return str(contact["id"])
        if body.get("id"):
            return str(body["id"])
    return "unknown"


async def _run_sync(
    *,
    crm: CRMConfig,
    client_factory: CRMClientFactory,
    lead_id: uuid.UUID,
    lead: LeadSubmission,
    attribution: Mapping[str, str],
) -> CRMSyncOutcome:
    client = client_factory(crm)
    try:
        await client.load()
        index = await discover_custom_fields(client, crm.location_id)
        custom_fields, note_lines = resolve_custom_fields(
            index, lead, attribution, crm.custom_field_ids
        )
        payload = build_upsert_payload(
            location_id=crm.location_id,
            lead=lead,
            custom_fields=custom_fields,
            note_lines=note_lines,
        )
        logger.info(
            "crm.upsert.start",
            lead_id=str(lead_id),
            email=mask(lead.email),
            custom_field_count=len(custom_fields),
            note_line_count=len(note_lines),
        )
        response = await client.request("POST", "/contacts/upsert", json=payload)
    finally:
        await client.close()

    if response.ok:
        contact_id = extract_contact_id(response.json())
        return CRMSyncOutcome(sent=True, response=f"Success - Contact ID: {contact_id}")

    logger.warning(
        "crm.upsert.failed",
        lead_id=str(lead_id),
        http_status=response.status,
        body=response.text[:BODY_EXCERPT_MAX],
    )
    return CRMSyncOutcome(sent=False, error=classify_failure(response.status, response.text))


async def sync_lead_to_crm(
    *,
    session_factory: async_sessionmaker[AsyncSession],
    crm: Optional[CRMConfig],
    client_factory: CRMClientFactory,
    lead_id: uuid.UUID,
    lead: LeadSubmission,
    attribution: Mapping[str, str],
) -> CRMSyncOutcome:
    """
    Push one stored lead into the CRM and record the terminal state on its row.

    Never raises: configuration problems, HTTP failures and exceptions all
    end up as ``ghl_sent=false`` with a diagnostic message.
    """
    config_error = check_preconditions(crm)
    if config_error:
        logger.warning("crm.sync.skipped", lead_id=str(lead_id), reason=config_error)
        outcome = CRMSyncOutcome(sent=False, error=config_error)
    else:
        try:
            outcome = await _run_sync(
                crm=crm,
                client_factory=client_factory,
                lead_id=lead_id,
                lead=lead,
                attribution=attribution,
            )
        except Exception as e:
            logger.error("crm.sync.exception", lead_id=str(lead_id), error=str(e), exc_info=True)
            outcome = CRMSyncOutcome(sent=False, error=f"Exception: {e}")

    try:
        await record_crm_outcome(
            session_factory,
            lead_id,
            sent=outcome.sent,
            response=outcome.response,
            error=outcome.error,
        )
    except SQLAlchemyError as e:
        logger.error("crm.sync.record_failed", lead_id=str(lead_id), error=str(e))

    logger.info(
        "crm.sync.completed",
        lead_id=str(lead_id),
        sent=outcome.sent,
        response=outcome.response,
        error=outcome.error,
    )
    return outcome
