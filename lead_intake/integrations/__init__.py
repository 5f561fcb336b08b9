"""Outbound CRM clients."""

from lead_intake.integrations.gohighlevel import (
    CRMClient,
    CRMResponse,
    GoHighLevelClient,
    build_crm_client,
)

__all__ = ["CRMClient", "CRMResponse", "GoHighLevelClient", "build_crm_client"]
