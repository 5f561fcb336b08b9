# lead_intake/services/diagnostics.py
"""
Read-only CRM connectivity probes.

Used by ``POST /ghl-diagnose`` and the ``lead-intake ghl-diagnose`` command
to tell an operator which credential or tenant setting is wrong. Only the
presence, length and short prefixes of secrets are ever reported.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from lead_intake.core.config import PRIVATE_TOKEN_PREFIX, CRMConfig, settings
from lead_intake.core.logging import get_structlog_logger
from lead_intake.integrations.gohighlevel import CRMClient, CRMResponse

logger = get_structlog_logger(__name__)

PROBE_BODY_MAX = 300


def _probe_body(response: CRMResponse) -> Any:
    parsed = response.json()
    if parsed is not None:
        return parsed
    return response.text[:PROBE_BODY_MAX]


async def _probe(
    client: CRMClient,
    base_url: str,
    path: str,
    headers: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    response = await client.request("GET", path, headers=headers)
    logger.info("crm.diagnose.probe", path=path, http_status=response.status)
    return {
        "url": f"{base_url}{path}",
        "status": response.status,
        "ok": response.ok,
        "body": _probe_body(response),
    }


def _diagnose(
    location_id: Optional[str],
    tests: Dict[str, Optional[Dict[str, Any]]],
) -> str:
    no_v1 = tests["contacts_no_v1"]
    v1 = tests["contacts_v1"]
    statuses = (no_v1["status"], v1["status"])

    if location_id and location_id.startswith(PRIVATE_TOKEN_PREFIX):
        return (
            "CRITICAL: Location ID appears to be a PIT token, not a Location ID. "
            "Please set GHL_LOCATION_ID to your actual Sub-Account (Location) ID."
        )
    if no_v1["ok"]:
        return "Contacts endpoint works WITHOUT /v1 (use services.leadconnectorhq.com/contacts)"
    if v1["ok"]:
        return (
            "Contacts endpoint only works WITH /v1. For PIT-based tokens, prefer "
            "/contacts. Verify your token type and scopes."
        )
    if 401 in statuses:
        return "Unauthorized. Verify the API key (PIT pit-...) and required scopes (contacts.write)."
    if 403 in statuses and not location_id:
        return (
            "Forbidden. Missing Location-Id. Set the GHL_LOCATION_ID secret to your "
            "Sub-Account (Location) ID."
        )
    if 403 in statuses:
        if tests["locations_list"]["ok"]:
            return (
                "Token works for /locations but 403 for /contacts with Location-Id. "
                "Verify the Location ID, the contacts.write scope and that the PIT "
                "has access to this location."
            )
        return (
            "Forbidden for both /contacts and /locations. Verify API key validity "
            "and scopes (contacts.write, locations.read)."
        )
    if statuses == (404, 404):
        return (
            "Both /contacts and /v1/contacts return 404. Likely incorrect base path "
            "or missing headers (Version, Location-Id)."
        )
    return "Contacts endpoint failed. Check API key, Location-Id, and headers."


async def diagnose_crm(crm: CRMConfig, client: CRMClient) -> Dict[str, Any]:
    base_url = getattr(client, "base_url", settings.crm_base_url)
    location_id = crm.location_id
    location_headers = {"Location-Id": location_id} if location_id else None

    logger.info(
        "crm.diagnose.start",
        api_key_length=len(crm.api_key),
        token_type="private_integration" if crm.is_private_integration_token else "unknown",
        location_id_present=bool(location_id),
    )

    tests: Dict[str, Optional[Dict[str, Any]]] = {}
    tests["contacts_no_v1"] = await _probe(client, base_url, "/contacts/?limit=1", location_headers)
    tests["contacts_v1"] = await _probe(client, base_url, "/v1/contacts/?limit=1", location_headers)
    tests["locations_list"] = await _probe(client, base_url, "/locations/")
    if location_id:
        tests["location_details"] = await _probe(client, base_url, f"/locations/{location_id}")
        tests["custom_fields"] = await _probe(
            client, base_url, f"/locations/{location_id}/customFields?model=contact"
        )
    else:
        tests["location_details"] = None
        tests["custom_fields"] = None
    tests["users_me"] = await _probe(client, base_url, "/users/me")

    diagnosis = _diagnose(location_id, tests)
    ok = bool(tests["contacts_no_v1"]["ok"] or tests["contacts_v1"]["ok"])
    logger.info("crm.diagnose.completed", ok=ok)

    return {
        "ok": ok,
        "diagnosis": diagnosis,
        "recommended_endpoint": f"{base_url}/contacts",
        "api_key_present": bool(crm.api_key),
        "api_key_prefix": crm.api_key[:3],
        "api_key_length": len(crm.api_key),
        "location_id_present": bool(location_id),
        "location_id_first8": location_id[:8] if location_id else None,
        "location_id_looks_like_pit": crm.location_looks_like_token,
        "tests": tests,
    }
