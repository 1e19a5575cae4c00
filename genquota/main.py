"""Main FastAPI application."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from genquota import __version__
from genquota.config import Settings, get_settings
from genquota.errors import GenQuotaError
from genquota.routers import billing_router, generation_router, health_router
from genquota.services import Services, build_services
from genquota.services.sql_store import SqlUsageStore
from genquota.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings: Settings = app.state.settings
    services: Services = app.state.services

    # Initialize Sentry if configured
    if settings.sentry_dsn:
        import sentry_sdk

        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.environment.value,
            traces_sample_rate=0.1,
        )
        logger.info("Sentry initialized")

    primary = getattr(services.store, "primary", None)
    if settings.database_create_schema and isinstance(primary, SqlUsageStore):
        try:
            await primary.create_schema()
            logger.info("usage_schema_ready")
        except Exception as e:
            logger.warning("usage_schema_creation_failed", error=str(e))

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down...")
    await services.store.close()
    logger.info("Shutdown complete")


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="GenQuota API",
        description="""
## Quota-gated image generation

Each user gets a fixed number of free generations; after that an active
Lemon Squeezy subscription is required. Usage is tracked per caller-supplied
`clientUserId` in a remote database with a local JSON fallback.
        """,
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.services = services or build_services(settings)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    # Prometheus metrics
    if settings.prometheus_enabled:
        Instrumentator().instrument(app).expose(app, endpoint="/metrics")

    # Include routers
    app.include_router(health_router)
    app.include_router(billing_router, prefix="/api")
    app.include_router(generation_router, prefix="/api")

    @app.exception_handler(GenQuotaError)
    async def genquota_exception_handler(request: Request, exc: GenQuotaError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "request_failed",
                path=request.url.path,
                code=exc.code,
                message=exc.message,
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        message = "Request body is invalid."
        if errors:
            location = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
            detail = errors[0].get("msg", "invalid value")
            message = f"{location}: {detail}" if location else detail
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"message": message, "code": "validation_error"},
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            exc_info=exc,
            path=request.url.path,
            method=request.method,
        )

        if settings.debug:
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": "internal_server_error",
                    "message": str(exc),
                    "type": type(exc).__name__,
                },
            )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
            },
        )

    return app
