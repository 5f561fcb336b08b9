# lead_intake/routes/diagnostics.py
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse, Response

from lead_intake.core.config import PipelineConfig, get_pipeline_config
from lead_intake.core.logging import get_structlog_logger
from lead_intake.routes.deps import get_crm_client_factory
from lead_intake.routes.leads import CORS_HEADERS
from lead_intake.services.crm_sync import CRMClientFactory
from lead_intake.services.diagnostics import diagnose_crm

logger = get_structlog_logger(__name__)

router = APIRouter()


@router.options("/ghl-diagnose", include_in_schema=False)
async def ghl_diagnose_preflight() -> Response:
    return Response(status_code=status.HTTP_200_OK, headers=CORS_HEADERS)


@router.post("/ghl-diagnose", summary="Probe CRM credentials and tenant access")
async def ghl_diagnose(
    config: PipelineConfig = Depends(get_pipeline_config),
    client_factory: CRMClientFactory = Depends(get_crm_client_factory),
):
    crm = config.integrations.crm
    if crm is None:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "ok": False,
                "error": "Missing GHL_API_KEY secret",
                "hint": "Set GHL_API_KEY in the service environment and restart",
            },
        )

    client = client_factory(crm)
    try:
        return await diagnose_crm(crm, client)
    except Exception as e:
        logger.error("crm.diagnose.error", error=str(e), exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"ok": False, "error": str(e)},
        )
    finally:
        await client.close()
