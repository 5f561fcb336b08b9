import pytest

from conftest import CUSTOM_FIELDS_PATH, LOCATION_ID, FakeCRMClient, make_lead, secrets
from lead_intake.core.config import CRMConfig, load_config
from lead_intake.services.attribution import extract_attribution
from lead_intake.services.crm_sync import (
    CONTACT_TAGS,
    check_preconditions,
    classify_failure,
    extract_contact_id,
    sync_lead_to_crm,
)
from lead_intake.services.lead_store import insert_lead

UPSERT = ("POST", "/contacts/upsert")


async def _store(session_factory, lead):
    async with session_factory() as session:
        return await insert_lead(session, lead, extract_attribution(lead))


async def _sync(session_factory, crm_client, lead, crm=None):
    record = await _store(session_factory, lead)
    crm = crm if crm is not None else load_config(secrets()).integrations.crm
    outcome = await sync_lead_to_crm(
        session_factory=session_factory,
        crm=crm,
        client_factory=lambda config: crm_client,
        lead_id=record.id,
        lead=lead,
        attribution=extract_attribution(lead),
    )
    return record, outcome


def _upsert_body(crm_client):
    calls = crm_client.calls(*UPSERT)
    assert len(calls) == 1
    return calls[0]["json"]


@pytest.mark.parametrize(
    "crm, fragment",
    [
        (None, "Missing GHL_API_KEY"),
        (CRMConfig(api_key="eyJhbGciOi.jwt.token", location_id=LOCATION_ID), "Unsupported GHL token type"),
        (CRMConfig(api_key="pit-abc", location_id=None), "Missing GHL_LOCATION_ID"),
        (CRMConfig(api_key="pit-abc", location_id="pit-abc"), "appears to be a PIT token"),
    ],
)
def test_check_preconditions(crm, fragment):
    message = check_preconditions(crm)

    assert message.startswith("Configuration Error")
    assert fragment in message


def test_check_preconditions_pass():
    assert check_preconditions(CRMConfig(api_key="pit-abc", location_id=LOCATION_ID)) is None


@pytest.mark.parametrize(
    "crm",
    [
        CRMConfig(api_key="not-a-pit", location_id=LOCATION_ID),
        CRMConfig(api_key="pit-abc", location_id=None),
        CRMConfig(api_key="pit-abc", location_id="pit-swapped"),
    ],
)
async def test_config_gating_makes_no_network_calls(session_factory, fetch_lead, crm):
    factory_calls = []

    def client_factory(config):
        factory_calls.append(config)
        return FakeCRMClient()

    lead = make_lead()
    record = await _store(session_factory, lead)
    outcome = await sync_lead_to_crm(
        session_factory=session_factory,
        crm=crm,
        client_factory=client_factory,
        lead_id=record.id,
        lead=lead,
        attribution={},
    )

    assert factory_calls == []
    assert outcome.sent is False
    assert outcome.error.startswith("Configuration Error")
    row = fetch_lead(record.id)
    assert row.ghl_sent is False
    assert row.ghl_error == outcome.error
    assert row.ghl_sent_at is not None


async def test_missing_crm_config_is_recorded(session_factory, fetch_lead):
    lead = make_lead()
    record = await _store(session_factory, lead)
    outcome = await sync_lead_to_crm(
        session_factory=session_factory,
        crm=None,
        client_factory=lambda config: FakeCRMClient(),
        lead_id=record.id,
        lead=lead,
        attribution={},
    )

    assert outcome.error == "Configuration Error: Missing GHL_API_KEY"
    assert fetch_lead(record.id).ghl_error == "Configuration Error: Missing GHL_API_KEY"


async def test_successful_upsert_payload_and_outcome(session_factory, fetch_lead, fake_crm):
    fake_crm.reply(
        "GET",
        CUSTOM_FIELDS_PATH,
        200,
        {
            "customFields": [
                {"id": "cf-price", "name": "Asking Price", "fieldKey": "contact.asking_price"},
                {"id": "cf-listed", "name": "Is the property listed", "fieldKey": "contact.field_9"},
                {"id": "cf-source", "name": "Source", "fieldKey": "contact.utm_source"},
            ]
        },
    )
    lead = make_lead(utmSource="google", isListed="yes")

    record, outcome = await _sync(session_factory, fake_crm, lead)

    assert outcome.sent is True
    assert outcome.response == "Success - Contact ID: contact-1"
    assert fake_crm.calls("GET", CUSTOM_FIELDS_PATH)[0]["params"] == {"model": "contact"}
    assert fake_crm.closed

    body = _upsert_body(fake_crm)
    assert body["locationId"] == LOCATION_ID
    assert body["firstName"] == "Jane"
    assert body["lastName"] == "Doe"
    assert body["name"] == "Jane Doe"
    assert body["email"] == "jane@example.com"
    assert body["phone"] == "+15125550123"
    assert body["address1"] == "123 Main St, Austin, TX"
    assert body["tags"] == CONTACT_TAGS
    assert body["source"] == "website_form"
    assert body["customFields"] == [
        {"id": "cf-price", "field_value": "250000"},
        {"id": "cf-listed", "field_value": "Yes"},
        {"id": "cf-source", "field_value": "google"},
    ]
    assert "notes" not in body

    row = fetch_lead(record.id)
    assert row.ghl_sent is True
    assert row.ghl_response == "Success - Contact ID: contact-1"
    assert row.ghl_error is None


async def test_unmatched_attribution_goes_to_notes(session_factory, fake_crm):
    lead = make_lead(gclid="Cj0KCQ", utmCampaign="spring", condition=None, timeline=None)

    _, outcome = await _sync(session_factory, fake_crm, lead)

    assert outcome.sent is True
    body = _upsert_body(fake_crm)
    assert "customFields" not in body
    assert "gclid: Cj0KCQ" in body["notes"]
    assert "utm_campaign: spring" in body["notes"]
    # unresolved property values are dropped, never noted
    assert "250000" not in body["notes"]


async def test_overrides_resolve_when_catalog_is_empty(session_factory, fake_crm):
    crm = load_config(
        secrets(
            GHL_CUSTOM_FIELD_GCLID_ID="cf-gclid",
            GHL_CUSTOM_FIELD_TIMELINE_ID="cf-timeline",
        )
    ).integrations.crm
    lead = make_lead(gclid="abc", referrer="https://google.com")

    await _sync(session_factory, fake_crm, lead, crm=crm)

    body = _upsert_body(fake_crm)
    assert body["customFields"] == [
        {"id": "cf-timeline", "field_value": "asap"},
        {"id": "cf-gclid", "field_value": "abc"},
    ]
    assert body["notes"].endswith("referrer: https://google.com")


async def test_discovery_failure_is_not_fatal(session_factory, fake_crm):
    fake_crm.reply("GET", CUSTOM_FIELDS_PATH, 403, {"message": "no scope"})
    lead = make_lead(utmSource="bing")

    _, outcome = await _sync(session_factory, fake_crm, lead)

    assert outcome.sent is True
    assert "utm_source: bing" in _upsert_body(fake_crm)["notes"]


async def test_discovery_exception_is_not_fatal(session_factory, fake_crm):
    fake_crm.fail("GET", CUSTOM_FIELDS_PATH, ConnectionError("reset by peer"))

    _, outcome = await _sync(session_factory, fake_crm, make_lead())

    assert outcome.sent is True
    assert len(fake_crm.calls(*UPSERT)) == 1


@pytest.mark.parametrize(
    "status, prefix",
    [
        (401, "Unauthorized (401)"),
        (403, "Forbidden (403)"),
        (422, "Unprocessable (422)"),
        (500, "API Error - Status: 500"),
    ],
)
async def test_failed_upsert_is_classified(session_factory, fetch_lead, fake_crm, status, prefix):
    fake_crm.reply(*UPSERT, status, {"message": "nope"})

    record, outcome = await _sync(session_factory, fake_crm, make_lead())

    assert outcome.sent is False
    assert outcome.error.startswith(prefix)
    assert '{"message": "nope"}' in outcome.error
    assert len(fake_crm.calls(*UPSERT)) == 1
    row = fetch_lead(record.id)
    assert row.ghl_sent is False
    assert row.ghl_error == outcome.error
    assert row.ghl_response is None


async def test_exception_is_recorded_not_raised(session_factory, fetch_lead, fake_crm):
    fake_crm.fail(*UPSERT, TimeoutError("read timed out"))

    record, outcome = await _sync(session_factory, fake_crm, make_lead())

    assert outcome.sent is False
    assert outcome.error == "Exception: read timed out"
    assert fake_crm.closed
    assert fetch_lead(record.id).ghl_error == "Exception: read timed out"


def test_classify_failure_truncates_body():
    message = classify_failure(503, "x" * 2000)

    assert message.startswith("API Error - Status: 503, Body: ")
    assert message.count("x") == 500


@pytest.mark.parametrize(
    "body, expected",
    [
        ({"contact": {"id": "c-1"}}, "c-1"),
        ({"id": "c-2"}, "c-2"),
        ({"contact": {}}, "unknown"),
        (None, "unknown"),
        (["c-3"], "unknown"),
    ],
)
def test_extract_contact_id(body, expected):
    assert extract_contact_id(body) == expected
