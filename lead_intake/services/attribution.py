# lead_intake/services/attribution.py
"""
Static table of the lead values that map onto CRM custom fields.

One entry per logical field drives three things: which attribution keys are
extracted from a submission, which GHL_CUSTOM_FIELD_*_ID secrets are read as
operator overrides, and which key/name synonyms are matched against the
CRM's custom field catalog.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Optional, Tuple

if TYPE_CHECKING:
    from lead_intake.schemas.lead import LeadSubmission

SHORT_VALUE_MAX = 255
URL_VALUE_MAX = 2048


@dataclass(frozen=True)
class CustomFieldSpec:
    name: str
    storage_key: str
    override_env: str
    key_synonyms: Tuple[str, ...]
    name_synonyms: Tuple[str, ...]
    max_length: Optional[int] = None
    is_attribution: bool = False


def _attribution(
    name: str,
    storage_key: str,
    env_token: str,
    key_synonyms: Tuple[str, ...],
    name_synonyms: Tuple[str, ...],
    max_length: int = SHORT_VALUE_MAX,
) -> CustomFieldSpec:
    return CustomFieldSpec(
        name=name,
        storage_key=storage_key,
        override_env=f"GHL_CUSTOM_FIELD_{env_token}_ID",
        key_synonyms=key_synonyms,
        name_synonyms=name_synonyms,
        max_length=max_length,
        is_attribution=True,
    )


PROPERTY_FIELD_SPECS: Tuple[CustomFieldSpec, ...] = (
    CustomFieldSpec(
        name="askingPrice",
        storage_key="asking_price",
        override_env="GHL_CUSTOM_FIELD_ASKING_PRICE_ID",
        key_synonyms=("asking_price", "desired_price", "price_expectation"),
        name_synonyms=("Asking Price", "Desired Price", "Price Expectation"),
    ),
    CustomFieldSpec(
        name="timeline",
        storage_key="timeline",
        override_env="GHL_CUSTOM_FIELD_TIMELINE_ID",
        key_synonyms=("timeline", "timeline_to_sell", "selling_timeline"),
        name_synonyms=("Timeline", "Timeline to Sell", "Selling Timeline"),
    ),
    CustomFieldSpec(
        name="propertyListed",
        storage_key="is_listed",
        override_env="GHL_CUSTOM_FIELD_PROPERTY_LISTED_ID",
        key_synonyms=("property_listed", "is_listed", "listed_with_agent"),
        name_synonyms=("Property Listed", "Is Listed", "Listed With Agent", "Is the property listed"),
    ),
    CustomFieldSpec(
        name="condition",
        storage_key="condition",
        override_env="GHL_CUSTOM_FIELD_CONDITION_ID",
        key_synonyms=("condition", "property_condition", "home_condition"),
        name_synonyms=("Condition", "Property Condition", "Home Condition"),
    ),
)

ATTRIBUTION_FIELD_SPECS: Tuple[CustomFieldSpec, ...] = (
    _attribution("gclid", "gclid", "GCLID", ("gclid", "google_click_id"), ("GCLID", "Google Click ID")),
    _attribution("wbraid", "wbraid", "WBRAID", ("wbraid",), ("WBRAID",)),
    _attribution("gbraid", "gbraid", "GBRAID", ("gbraid",), ("GBRAID",)),
    _attribution("utmSource", "utm_source", "UTM_SOURCE", ("utm_source",), ("UTM Source",)),
    _attribution("utmMedium", "utm_medium", "UTM_MEDIUM", ("utm_medium",), ("UTM Medium",)),
    _attribution("utmCampaign", "utm_campaign", "UTM_CAMPAIGN", ("utm_campaign",), ("UTM Campaign",)),
    _attribution(
        "utmCampaignId", "utm_campaign_id", "UTM_CAMPAIGNID",
        ("utm_campaign_id", "campaign_id"), ("UTM Campaign ID", "Campaign ID"),
    ),
    _attribution(
        "utmAdgroupId", "utm_adgroup_id", "UTM_ADGROUPID",
        ("utm_adgroup_id", "utm_ad_group_id", "adgroup_id"),
        ("UTM Adgroup ID", "UTM Ad Group ID", "Ad Group ID"),
    ),
    _attribution("utmTerm", "utm_term", "UTM_TERM", ("utm_term",), ("UTM Term", "Keyword")),
    _attribution("utmDevice", "utm_device", "UTM_DEVICE", ("utm_device",), ("UTM Device",)),
    _attribution("utmCreative", "utm_creative", "UTM_CREATIVE", ("utm_creative",), ("UTM Creative",)),
    _attribution("utmNetwork", "utm_network", "UTM_NETWORK", ("utm_network",), ("UTM Network",)),
    _attribution(
        "utmAssetGroup", "utm_asset_group", "UTM_ASSETGROUP",
        ("utm_asset_group", "utm_assetgroup"), ("UTM Asset Group",),
    ),
    _attribution("utmHeadline", "utm_headline", "UTM_HEADLINE", ("utm_headline",), ("UTM Headline",)),
    _attribution(
        "landingPage", "landing_page", "LANDING_PAGE",
        ("landing_page", "landing_page_url"), ("Landing Page", "Landing Page URL"),
        max_length=URL_VALUE_MAX,
    ),
    _attribution(
        "referrer", "referrer", "REFERRER",
        ("referrer", "referrer_url", "referer"), ("Referrer", "Referrer URL"),
        max_length=URL_VALUE_MAX,
    ),
    _attribution("sessionId", "session_id", "SESSION_ID", ("session_id",), ("Session ID",)),
)

CUSTOM_FIELD_SPECS: Tuple[CustomFieldSpec, ...] = PROPERTY_FIELD_SPECS + ATTRIBUTION_FIELD_SPECS

ATTRIBUTION_KEYS: Tuple[str, ...] = tuple(
    field_spec.storage_key for field_spec in ATTRIBUTION_FIELD_SPECS
)


def extract_attribution(lead: "LeadSubmission") -> Dict[str, str]:
    """Sparse attribution mapping: only keys with a non-blank value."""
    attribution: Dict[str, str] = {}
    for field_spec in ATTRIBUTION_FIELD_SPECS:
        value = getattr(lead, field_spec.storage_key, None)
        if value is None:
            continue
        value = str(value).strip()
        if value:
            attribution[field_spec.storage_key] = value
    return attribution
