from conftest import make_lead
from lead_intake.services.attribution import (
    ATTRIBUTION_FIELD_SPECS,
    ATTRIBUTION_KEYS,
    CUSTOM_FIELD_SPECS,
    PROPERTY_FIELD_SPECS,
    URL_VALUE_MAX,
    extract_attribution,
)


def test_field_table_shape():
    assert len(PROPERTY_FIELD_SPECS) == 4
    assert len(ATTRIBUTION_FIELD_SPECS) == 17
    assert len({field_spec.name for field_spec in CUSTOM_FIELD_SPECS}) == 21
    assert len(set(ATTRIBUTION_KEYS)) == 17


def test_url_fields_allow_long_values():
    by_name = {field_spec.name: field_spec for field_spec in ATTRIBUTION_FIELD_SPECS}
    assert by_name["landingPage"].max_length == URL_VALUE_MAX
    assert by_name["referrer"].max_length == URL_VALUE_MAX


def test_override_env_names():
    envs = {field_spec.name: field_spec.override_env for field_spec in CUSTOM_FIELD_SPECS}
    assert envs["askingPrice"] == "GHL_CUSTOM_FIELD_ASKING_PRICE_ID"
    assert envs["propertyListed"] == "GHL_CUSTOM_FIELD_PROPERTY_LISTED_ID"
    assert envs["utmCampaignId"] == "GHL_CUSTOM_FIELD_UTM_CAMPAIGNID_ID"
    assert envs["sessionId"] == "GHL_CUSTOM_FIELD_SESSION_ID_ID"


def test_extract_attribution_is_sparse():
    lead = make_lead(gclid="abc", utmSource="google", utmMedium="  ", referrer="")

    assert extract_attribution(lead) == {"gclid": "abc", "utm_source": "google"}


def test_extract_attribution_empty_when_none_present():
    assert extract_attribution(make_lead()) == {}


def test_extract_attribution_uses_snake_case_keys():
    lead = make_lead(
        utmCampaignId="987",
        utmAdgroupId="654",
        utmAssetGroup="ag",
        landingPage="https://offer.example.com/?gclid=abc",
        sessionId="sess-1",
    )

    assert extract_attribution(lead) == {
        "utm_campaign_id": "987",
        "utm_adgroup_id": "654",
        "utm_asset_group": "ag",
        "landing_page": "https://offer.example.com/?gclid=abc",
        "session_id": "sess-1",
    }
