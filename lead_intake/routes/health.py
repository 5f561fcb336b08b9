# lead_intake/routes/health.py
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lead_intake import __version__
from lead_intake.core.config import settings
from lead_intake.core.logging import get_structlog_logger
from lead_intake.db.session import get_session_factory, health_check

logger = get_structlog_logger(__name__)

router = APIRouter(tags=["health"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@router.get("/health", status_code=status.HTTP_200_OK)
async def liveness_probe():
    """Simple liveness probe for containers."""
    return {
        "status": "alive",
        "service": "lead_intake",
        "version": __version__,
        "environment": settings.environment,
        "timestamp": _now(),
    }


@router.get("/health/ready")
async def readiness_probe(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Readiness probe that checks the database."""
    database = await health_check(session_factory)
    is_ready = database.get("status") == "healthy"

    if not is_ready:
        logger.warning("health.not_ready", checks={"database": database})

    return JSONResponse(
        status_code=status.HTTP_200_OK if is_ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if is_ready else "not_ready",
            "timestamp": _now(),
            "checks": {"database": database},
        },
    )
