# lead_intake/schemas/lead.py
from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from lead_intake.services.attribution import SHORT_VALUE_MAX, URL_VALUE_MAX

ListedChoice = Literal["yes", "no"]
ConditionChoice = Literal["poor", "fair", "good", "excellent"]
TimelineChoice = Literal["asap", "30days", "60days", "90days", "90plus"]

EMAIL_MAX = 255


class LeadSubmission(BaseModel):
    """A website lead as posted by the multi-step offer form."""

    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    # Contact
    first_name: str = Field(alias="firstName", min_length=1, max_length=100)
    last_name: str = Field(alias="lastName", min_length=1, max_length=100)
    email: EmailStr
    phone: str = Field(min_length=10, max_length=20)
    sms_consent: bool = Field(default=False, alias="smsConsent")

    # Property
    address: str = Field(min_length=5, max_length=500)
    is_listed: Optional[ListedChoice] = Field(default=None, alias="isListed")
    condition: Optional[ConditionChoice] = None
    timeline: Optional[TimelineChoice] = None
    asking_price: Optional[str] = Field(default=None, alias="askingPrice", max_length=50)

    # Attribution
    gclid: Optional[str] = Field(default=None, max_length=SHORT_VALUE_MAX)
    wbraid: Optional[str] = Field(default=None, max_length=SHORT_VALUE_MAX)
    gbraid: Optional[str] = Field(default=None, max_length=SHORT_VALUE_MAX)
    utm_source: Optional[str] = Field(default=None, alias="utmSource", max_length=SHORT_VALUE_MAX)
    utm_medium: Optional[str] = Field(default=None, alias="utmMedium", max_length=SHORT_VALUE_MAX)
    utm_campaign: Optional[str] = Field(default=None, alias="utmCampaign", max_length=SHORT_VALUE_MAX)
    utm_campaign_id: Optional[str] = Field(default=None, alias="utmCampaignId", max_length=SHORT_VALUE_MAX)
    utm_adgroup_id: Optional[str] = Field(default=None, alias="utmAdgroupId", max_length=SHORT_VALUE_MAX)
    utm_term: Optional[str] = Field(default=None, alias="utmTerm", max_length=SHORT_VALUE_MAX)
    utm_device: Optional[str] = Field(default=None, alias="utmDevice", max_length=SHORT_VALUE_MAX)
    utm_creative: Optional[str] = Field(default=None, alias="utmCreative", max_length=SHORT_VALUE_MAX)
    utm_network: Optional[str] = Field(default=None, alias="utmNetwork", max_length=SHORT_VALUE_MAX)
    utm_asset_group: Optional[str] = Field(default=None, alias="utmAssetGroup", max_length=SHORT_VALUE_MAX)
    utm_headline: Optional[str] = Field(default=None, alias="utmHeadline", max_length=SHORT_VALUE_MAX)
    landing_page: Optional[str] = Field(default=None, alias="landingPage", max_length=URL_VALUE_MAX)
    referrer: Optional[str] = Field(default=None, max_length=URL_VALUE_MAX)
    session_id: Optional[str] = Field(default=None, alias="sessionId", max_length=SHORT_VALUE_MAX)

    # Honeypot: hidden from people, filled in by form bots
    website: Optional[str] = None

    @field_validator("email", mode="before")
    def validate_email_length(cls, v):
        if isinstance(v, str) and len(v.strip()) > EMAIL_MAX:
            raise ValueError(f"Email must be at most {EMAIL_MAX} characters")
        return v

    @field_validator("sms_consent", mode="before")
    def null_consent_is_false(cls, v):
        return False if v is None else v

    @field_validator("website", mode="before")
    def coerce_honeypot(cls, v):
        if v is None or isinstance(v, str):
            return v
        return str(v)

    @field_validator(
        "is_listed", "condition", "timeline", "asking_price",
        "gclid", "wbraid", "gbraid", "utm_source", "utm_medium", "utm_campaign",
        "utm_campaign_id", "utm_adgroup_id", "utm_term", "utm_device", "utm_creative",
        "utm_network", "utm_asset_group", "utm_headline", "landing_page", "referrer",
        "session_id",
        mode="before",
    )
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class FieldError(BaseModel):
    field: str
    message: str


class LeadSubmitResponse(BaseModel):
    success: bool
    message: str
    lead_id: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str
    details: Optional[List[FieldError]] = None

