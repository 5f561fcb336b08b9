# lead_intake/core/config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url

from lead_intake.core.exceptions import ConfigurationError
from lead_intake.services.attribution import CUSTOM_FIELD_SPECS

PRIVATE_TOKEN_PREFIX = "pit-"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Environment
    environment: str = Field(default="development", validation_alias="ENVIRONMENT")
    debug: bool = Field(default=False, validation_alias="DEBUG")

    # Server
    api_host: str = Field(default="0.0.0.0", validation_alias="API_HOST")
    api_port: int = Field(default=8000, validation_alias="API_PORT")
    api_prefix: str = Field(default="", validation_alias="API_PREFIX")

    # Database pool
    database_pool_size: int = Field(default=5, validation_alias="DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(default=5, validation_alias="DATABASE_MAX_OVERFLOW")
    database_pool_recycle: int = Field(default=1800, validation_alias="DATABASE_POOL_RECYCLE")

    # Logging
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: str = Field(default="json", validation_alias="LOG_FORMAT")

    # CORS
    allowed_origins: str = Field(default="*", validation_alias="ALLOWED_ORIGINS")

    # Outbound integrations
    webhook_timeout_seconds: int = Field(default=10, validation_alias="WEBHOOK_TIMEOUT_SECONDS")
    crm_timeout_seconds: int = Field(default=15, validation_alias="CRM_TIMEOUT_SECONDS")
    crm_base_url: str = Field(
        default="https://services.leadconnectorhq.com",
        validation_alias="CRM_BASE_URL",
    )
    background_grace_seconds: int = Field(default=10, validation_alias="BACKGROUND_GRACE_SECONDS")

    # Monitoring
    sentry_dsn: Optional[str] = Field(default=None, validation_alias="SENTRY_DSN")

    @field_validator("environment")
    def validate_environment(cls, v):
        valid_envs = ["development", "testing", "staging", "production"]
        if v not in valid_envs:
            raise ValueError(f"environment must be one of {valid_envs}")
        return v

    @field_validator("log_level")
    def validate_log_level(cls, v):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    def validate_log_format(cls, v):
        valid_formats = ["json", "console"]
        if v not in valid_formats:
            raise ValueError(f"log_format must be one of {valid_formats}")
        return v

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_testing(self) -> bool:
        return self.environment == "testing"

    def origins(self) -> List[str]:
        if self.allowed_origins.strip() == "*":
            return ["*"]
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


settings = Settings()


@dataclass(frozen=True)
class DatabaseConfig:
    url: str
    service_key: str

    def sqlalchemy_url(self) -> URL:
        """Build the async driver URL, filling in the service key as the role password."""
        url = make_url(self.url)
        if url.drivername in ("postgres", "postgresql"):
            url = url.set(drivername="postgresql+asyncpg")
        if url.drivername.startswith("postgresql") and not url.password:
            url = url.set(password=self.service_key)
        return url


@dataclass(frozen=True)
class WebhookConfig:
    url: str


@dataclass(frozen=True)
class CRMConfig:
    api_key: str
    location_id: Optional[str] = None
    custom_field_ids: Optional[Mapping[str, str]] = None

    @property
    def is_private_integration_token(self) -> bool:
        return self.api_key.startswith(PRIVATE_TOKEN_PREFIX)

    @property
    def location_looks_like_token(self) -> bool:
        return bool(self.location_id) and self.location_id.startswith(PRIVATE_TOKEN_PREFIX)


@dataclass(frozen=True)
class AnalyticsConfig:
    gtag_id: Optional[str] = None
    conversion_label: Optional[str] = None


@dataclass(frozen=True)
class IntegrationsConfig:
    webhook: Optional[WebhookConfig] = None
    crm: Optional[CRMConfig] = None


@dataclass(frozen=True)
class PipelineConfig:
    database: DatabaseConfig
    integrations: IntegrationsConfig
    analytics: Optional[AnalyticsConfig] = None


def _clean(secrets: Mapping[str, str], name: str) -> Optional[str]:
    value = secrets.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def load_config(secrets: Mapping[str, str]) -> PipelineConfig:
    """
    Build the pipeline configuration from a flat mapping of secret names.

    Database credentials are mandatory; every integration block is optional
    and only present when its defining secret is non-empty.
    """
    database_url = _clean(secrets, "DATABASE_URL")
    service_key = _clean(secrets, "DATABASE_SERVICE_ROLE_KEY")
    if not database_url or not service_key:
        raise ConfigurationError(
            "Missing required database configuration: "
            "DATABASE_URL and DATABASE_SERVICE_ROLE_KEY are required"
        )

    webhook = None
    webhook_url = _clean(secrets, "WEBHOOK_URL")
    if webhook_url:
        webhook = WebhookConfig(url=webhook_url)

    crm = None
    api_key = _clean(secrets, "GHL_API_KEY")
    if api_key:
        overrides: Dict[str, str] = {}
        for field_spec in CUSTOM_FIELD_SPECS:
            override = _clean(secrets, field_spec.override_env)
            if override:
                overrides[field_spec.name] = override
        crm = CRMConfig(
            api_key=api_key,
            location_id=_clean(secrets, "GHL_LOCATION_ID"),
            custom_field_ids=overrides or None,
        )

    analytics = None
    gtag_id = _clean(secrets, "GTAG_ID")
    conversion_label = _clean(secrets, "CONVERSION_LABEL")
    if gtag_id or conversion_label:
        analytics = AnalyticsConfig(gtag_id=gtag_id, conversion_label=conversion_label)

    return PipelineConfig(
        database=DatabaseConfig(url=database_url, service_key=service_key),
        integrations=IntegrationsConfig(webhook=webhook, crm=crm),
        analytics=analytics,
    )


def config_status(config: PipelineConfig) -> Dict[str, Any]:
    """Presence report for logs and the CLI. Never includes secret values."""
    crm = config.integrations.crm
    return {
        "database": {
            "has_url": bool(config.database.url),
            "has_service_key": bool(config.database.service_key),
        },
        "integrations": {
            "webhook": config.integrations.webhook is not None,
            "crm": crm is not None,
            "crm_token_type": (
                "private_integration" if crm and crm.is_private_integration_token
                else ("unknown" if crm else None)
            ),
            "crm_has_location_id": bool(crm and crm.location_id),
            "crm_custom_field_overrides": sorted(crm.custom_field_ids) if crm and crm.custom_field_ids else [],
        },
        "analytics": {
            "has_gtag": bool(config.analytics and config.analytics.gtag_id),
            "has_conversion_label": bool(config.analytics and config.analytics.conversion_label),
        },
    }


@lru_cache(maxsize=1)
def get_pipeline_config() -> PipelineConfig:
    return load_config(os.environ)
