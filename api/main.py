"""
FastAPI application initialization
"""

from typing import Optional
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from api.routes import alerts, data_sources, jobs, system, transformations
from api.middleware import RequestContextMiddleware
from core.config import settings
from core.exceptions import (
    ETLException,
    PreflightError,
    JobNotFoundError,
    ResourceNotFoundError,
    InvalidRunTransitionError,
)
from core.logging import setup_logging
from ingestion.container import build_services, ETLServices
from schemas.api import ErrorResponse
from storage.sql import build_store
import logging

logger = logging.getLogger(__name__)


def _error_response(exc: ETLException, status_code: int) -> JSONResponse:
    body = ErrorResponse(
        error=type(exc).__name__,
        detail=exc.message,
        context={k: v for k, v in exc.context.items() if k != "error_timestamp"},
        timestamp=exc.timestamp,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def _status_code_for(exc: ETLException) -> int:
    if isinstance(exc, (JobNotFoundError, ResourceNotFoundError)):
        return 404
    if isinstance(exc, PreflightError):
        return 400
    if isinstance(exc, InvalidRunTransitionError):
        return 409
    return 500


def create_app(services: Optional[ETLServices] = None) -> FastAPI:
    """
    Build the HTTP API around one engine instance.

    Without explicit services, the engine is wired on the store selected by
    STORAGE_BACKEND.
    """
    if services is None:
        services = build_services(build_store(settings))

    app = FastAPI(
        title="ETL Orchestrator API",
        description="Define, execute and monitor ETL jobs",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.services = services

    app.add_middleware(RequestContextMiddleware)

    # Include routers
    app.include_router(system.router)
    app.include_router(jobs.router)
    app.include_router(data_sources.router)
    app.include_router(transformations.router)
    app.include_router(alerts.router)

    @app.exception_handler(ETLException)
    async def etl_exception_handler(request: Request, exc: ETLException):
        status_code = _status_code_for(exc)
        request_id = getattr(request.state, "request_id", "-")
        if status_code >= 500:
            logger.error(f"[{request_id}] {request.method} {request.url.path} failed: {exc}")
        else:
            logger.info(f"[{request_id}] {request.method} {request.url.path} -> {status_code}: {exc.message}")
        return _error_response(exc, status_code)

    @app.on_event("startup")
    async def startup_event():
        """Application startup event"""
        logger.info("Starting ETL Orchestrator API")
        logger.info(f"Environment: {settings.ENVIRONMENT}")
        logger.info(f"Storage: {type(services.store).__name__}")
        await services.startup()

    @app.on_event("shutdown")
    async def shutdown_event():
        """Application shutdown event"""
        logger.info("Shutting down ETL Orchestrator API")
        await services.shutdown()

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "message": "ETL Orchestrator API",
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/health",
            "endpoints": {
                "jobs": "/jobs",
                "data_sources": "/data-sources",
                "transformations": "/transformations",
                "alerts": "/alerts",
                "status": "/system/status"
            }
        }

    return app


setup_logging()
app = create_app()
