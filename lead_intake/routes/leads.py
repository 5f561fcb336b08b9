# lead_intake/routes/leads.py
from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lead_intake.core.config import PipelineConfig, get_pipeline_config
from lead_intake.core.exceptions import LeadValidationError
from lead_intake.core.logging import get_structlog_logger, mask
from lead_intake.db.session import get_session_factory
from lead_intake.routes.deps import get_crm_client_factory
from lead_intake.schemas.lead import ErrorResponse, LeadSubmitResponse
from lead_intake.services.attribution import extract_attribution
from lead_intake.services.crm_sync import CRMClientFactory
from lead_intake.services.lead_store import insert_lead
from lead_intake.services.tasks import dispatch_integrations
from lead_intake.services.validation import is_bot_submission, validate_submission

router = APIRouter()

SUCCESS_MESSAGE = "Lead submitted successfully"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Max-Age": "86400",
}


@router.options("/submit-lead", include_in_schema=False)
async def submit_lead_preflight() -> Response:
    return Response(status_code=status.HTTP_200_OK, headers=CORS_HEADERS)


@router.post(
    "/submit-lead",
    response_model=LeadSubmitResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Submit a seller lead",
)
async def submit_lead(
    request: Request,
    background_tasks: BackgroundTasks,
    config: PipelineConfig = Depends(get_pipeline_config),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    client_factory: CRMClientFactory = Depends(get_crm_client_factory),
) -> LeadSubmitResponse:
    logger = get_structlog_logger(__name__).bind(route="/submit-lead")

    try:
        payload = await request.json()
    except ValueError:
        raise LeadValidationError(
            "Invalid JSON body",
            details=[{"field": "body", "message": "Request body is not valid JSON"}],
        )

    lead = validate_submission(payload)

    if is_bot_submission(lead):
        # Bots get the normal success shape so they cannot tell they were caught.
        logger.info("lead.honeypot_triggered", email=mask(lead.email))
        return LeadSubmitResponse(success=True, message=SUCCESS_MESSAGE)

    attribution = extract_attribution(lead)

    async with session_factory() as session:
        record = await insert_lead(session, lead, attribution)

    logger.info(
        "lead.stored",
        lead_id=str(record.id),
        email=mask(lead.email),
        phone=mask(lead.phone),
        attribution_keys=sorted(attribution),
    )

    background_tasks.add_task(
        dispatch_integrations,
        config=config,
        session_factory=session_factory,
        client_factory=client_factory,
        lead_id=record.id,
        lead=lead,
        attribution=attribution,
    )

    return LeadSubmitResponse(success=True, message=SUCCESS_MESSAGE, lead_id=str(record.id))
