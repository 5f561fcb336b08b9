# lead_intake/routes/deps.py
from lead_intake.core.config import get_pipeline_config
from lead_intake.db.session import get_session_factory
from lead_intake.integrations.gohighlevel import build_crm_client
from lead_intake.services.crm_sync import CRMClientFactory


def get_crm_client_factory() -> CRMClientFactory:
    return build_crm_client


__all__ = ["get_crm_client_factory", "get_pipeline_config", "get_session_factory"]
