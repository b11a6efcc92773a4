"""
Healthcare Records API Server

Entry point for the FastAPI application.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.exc import SQLAlchemyError

from records_api import __version__
from records_api.api.v1 import api_router, fhir_router
from records_api.core.config import get_settings, validate_settings
from records_api.core.database import ping_db
from records_api.core.errors import register_exception_handlers
from records_api.core.logging import configure_logging
from records_api.core.metrics import metrics
from records_api.core.middleware import (
    AuthenticationMiddleware,
    RequestMetricsMiddleware,
    SecurityHeadersMiddleware,
)

settings = get_settings()
log = structlog.get_logger()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(
        settings.log_level,
        fmt="console" if settings.environment == "development" else "json",
    )

    app = FastAPI(
        title="Healthcare Records API",
        description="Multi-tenant FHIR R4 records API for healthcare organizations.",
        version=__version__,
        docs_url="/docs" if settings.enable_docs else None,
        redoc_url="/redoc" if settings.enable_docs else None,
        openapi_url="/openapi.json" if settings.enable_docs else None,
    )

    register_exception_handlers(app)

    # Middleware (last added runs first)
    app.add_middleware(AuthenticationMiddleware)
    app.add_middleware(RequestMetricsMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "x-organization-id"],
    )

    app.include_router(api_router, prefix=settings.api_base_path)
    app.include_router(fhir_router, prefix=settings.fhir_base_path)

    @app.get("/health", tags=["System"])
    async def health_check():
        """Liveness plus a database round trip."""
        try:
            await ping_db()
            database = "connected"
        except (SQLAlchemyError, OSError) as exc:
            log.error("health.database_unreachable", error=str(exc))
            database = "disconnected"
        healthy = database == "connected"
        return JSONResponse(
            status_code=200 if healthy else 503,
            content={
                "status": "healthy" if healthy else "degraded",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "version": __version__,
                "environment": settings.environment,
                "services": {"database": database},
            },
        )

    @app.get("/metrics", tags=["System"])
    async def metrics_endpoint(format: Optional[str] = None):
        """Request and authorization counters (JSON, or Prometheus text)."""
        if format == "prometheus":
            return PlainTextResponse(
                metrics.to_prometheus(), media_type="text/plain; version=0.0.4"
            )
        return metrics.to_dict()

    @app.on_event("startup")
    async def on_startup():
        for warning in validate_settings(settings):
            log.warning("config.warning", message=warning)
        log.info(
            "Healthcare Records API starting",
            environment=settings.environment,
            api_base=settings.api_base_path,
            fhir_base=settings.fhir_base_path,
        )

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("Healthcare Records API shutting down")

    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run(
        "records_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
    )


if __name__ == "__main__":
    run()
