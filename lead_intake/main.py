# lead_intake/main.py
from __future__ import annotations

from contextlib import asynccontextmanager

import sentry_sdk
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration
from starlette.exceptions import HTTPException as StarletteHTTPException

from lead_intake import __version__
from lead_intake.core.config import config_status, get_pipeline_config, settings
from lead_intake.core.exceptions import BaseAPIException, ConfigurationError
from lead_intake.core.logging import configure_structlog, get_structlog_logger
from lead_intake.db.session import create_database_engine, dispose_engine
from lead_intake.middleware.logging import LoggingMiddleware
from lead_intake.middleware.request_id import RequestIdMiddleware
from lead_intake.routes import diagnostics_router, health_router, leads_router
from lead_intake.services.tasks import drain_background_tasks

logger = get_structlog_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    logger.info("application.starting", environment=settings.environment)

    try:
        config = get_pipeline_config()
    except ConfigurationError as e:
        logger.critical("configuration.invalid", error=str(e))
        raise

    logger.info("configuration.loaded", **config_status(config))

    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.environment,
            release=f"lead-intake@{__version__}",
            integrations=[
                AsyncioIntegration(),
                FastApiIntegration(),
                StarletteIntegration(),
            ],
            traces_sample_rate=1.0 if settings.is_development else 0.1,
            send_default_pii=False,
        )
        logger.info("sentry.initialized")

    create_database_engine(config.database)

    logger.info("application.started")
    yield

    logger.info("application.shutting_down")
    await drain_background_tasks()
    await dispose_engine()
    logger.info("application.shutdown_complete")


async def api_exception_handler(request: Request, exc: BaseAPIException):
    """Handle errors raised on purpose by route handlers."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "api.exception",
        status_code=exc.status_code,
        code=exc.code,
        path=request.url.path,
        method=request.method,
        details=exc.details,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render routing errors (404, 405) in the same body shape."""
    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        message = "Method not allowed"
    else:
        message = str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": message},
        headers=getattr(exc, "headers", None),
    )


async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions without leaking details."""
    logger.error(
        "unhandled.exception",
        error_type=type(exc).__name__,
        error=str(exc),
        path=request.url.path,
        method=request.method,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


def create_app() -> FastAPI:
    configure_structlog()

    app = FastAPI(
        title="Lead Intake API",
        version=__version__,
        description="Seller lead intake with webhook and CRM fan-out",
        docs_url="/docs" if settings.is_development else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.is_development else None,
        lifespan=lifespan,
    )

    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.origins(),
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
        expose_headers=["X-Request-ID", "X-Response-Time"],
        max_age=86400,
    )

    app.add_exception_handler(BaseAPIException, api_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    app.include_router(health_router, prefix=settings.api_prefix)
    app.include_router(leads_router, prefix=settings.api_prefix, tags=["leads"])
    app.include_router(diagnostics_router, prefix=settings.api_prefix, tags=["diagnostics"])

    if not settings.is_testing:
        Instrumentator().instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

    return app


app = create_app()


def run() -> None:
    uvicorn.run(
        "lead_intake.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,
        proxy_headers=True,
    )
