"""Hearth triage API service.

FastAPI application exposing the triage pipeline to the chat gateway and the
admin dashboard. Background tasks for detector eviction and analytics
flushing run for the lifetime of the app.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from api.dependencies import get_services, start_services
from api.models import HealthResponse
from api.routers import (
    analytics as analytics_router,
    faqs as faqs_router,
    knowledge as knowledge_router,
    rules as rules_router,
    triage as triage_router,
)
from libs.caching.redis_client import close_redis_client
from libs.common.settings import get_settings
from libs.firebase.client import initialize_firebase_app

SERVICE_VERSION = "0.1.0"
MAX_BODY_BYTES = 2 * 1024 * 1024

logger = structlog.get_logger(__name__)


def configure_logging(settings) -> None:
    """JSON logs everywhere except local development, which gets the console renderer."""
    logging.basicConfig(format="%(message)s", level=settings.log_level)
    renderer = (
        structlog.dev.ConsoleRenderer()
        if settings.is_development
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire services and run background loops until shutdown."""
    settings = get_settings()
    initialize_firebase_app()

    services = get_services()
    await start_services(services)

    background = [
        asyncio.create_task(services.detectors.run_sweeper(settings.sweep_interval_seconds)),
        asyncio.create_task(services.analytics.run_periodic_flush(settings.analytics_flush_interval_seconds)),
    ]
    logger.info("Hearth triage service started", app_env=settings.app_env, cache_enabled=settings.cache_enabled)

    try:
        yield
    finally:
        for task in background:
            task.cancel()
        await asyncio.gather(*background, return_exceptions=True)
        await services.events.drain()
        await close_redis_client()

        report = services.cost_tracker.report()
        logger.info("Hearth triage service stopped", **report.to_dict())


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="Hearth Triage API",
        description="Cost-aware triage and moderation for multi-tenant chat communities",
        version=SERVICE_VERSION,
        default_response_class=ORJSONResponse,
        debug=settings.debug,
        lifespan=lifespan,
    )

    cors_origins = ["*"] if settings.is_development else settings.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=False if settings.is_development else True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def reject_large_bodies(request: Request, call_next):
        """Knowledge documents are the largest payload; cap bodies at 2MB."""
        declared = request.headers.get("content-length")
        if request.method in ("POST", "PUT") and declared and int(declared) > MAX_BODY_BYTES:
            return ORJSONResponse(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                content={
                    "error_code": "REQUEST_TOO_LARGE",
                    "message": f"Body exceeds {MAX_BODY_BYTES} bytes",
                },
            )
        return await call_next(request)

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        """Tag every request with an id and log its outcome and latency."""
        started = time.time()
        request_id = f"req_{int(started * 1000000)}"
        request.state.request_id = request_id
        log = logger.bind(request_id=request_id, method=request.method, path=request.url.path)

        try:
            response = await call_next(request)
        except Exception:
            log.exception("Unhandled error", elapsed_ms=round((time.time() - started) * 1000, 2))
            raise

        log.info("Handled request", status_code=response.status_code, elapsed_ms=round((time.time() - started) * 1000, 2))
        response.headers["X-Request-ID"] = request_id
        return response

    app.include_router(triage_router.router, prefix="/api", tags=["Triage"])
    app.include_router(analytics_router.router, prefix="/api", tags=["Analytics"])
    app.include_router(knowledge_router.router, prefix="/api", tags=["Knowledge"])
    app.include_router(faqs_router.router, prefix="/api", tags=["FAQ"])
    app.include_router(rules_router.router, prefix="/api", tags=["Rules"])

    @app.get("/healthz", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Liveness probe."""
        return HealthResponse(status="healthy", service="hearth-triage", version=SERVICE_VERSION)

    @app.get("/readyz", response_model=HealthResponse, tags=["Health"])
    async def readiness_check() -> HealthResponse:
        """Readiness probe. The service is ready even without Redis (caching degrades)."""
        services = get_services()
        cache_state = "disabled"
        if services.cache is not None:
            cache_state = "connected" if services.cache.available else "unavailable"

        return HealthResponse(
            status="ready",
            service="hearth-triage",
            version=SERVICE_VERSION,
            details={
                "cache": cache_state,
                "knowledge_store": "firestore" if services.knowledge_base.firestore_client else "memory",
            },
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    # For local development only
    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
