"""
Device location service entry point.

Builds the FastAPI application: settings, JSON logging, the location store,
repository, lifecycle manager, middleware stack, exception handlers and
routes. Run with ``python main.py`` or
``uvicorn main:create_app --factory``.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import AVAILABLE_ENDPOINTS, locations_router, system_router
from config.settings import Environment, Settings, get_settings, validate_startup
from errors.handlers import register_exception_handlers
from health.service import HealthCheckService
from lifecycle.manager import LifecycleManager
from locations.clock import Clock, current_time_millis
from locations.repository import LocationRepository
from middleware.body_limit import BodySizeLimitMiddleware
from middleware.in_flight import InFlightMiddleware
from middleware.rate_limiter import RateLimitMiddleware, create_rate_limiter
from middleware.request_id import RequestIDMiddleware
from middleware.security_headers import SecurityHeadersMiddleware
from store import LocationStore, create_location_store
from telemetry.service import initialize_telemetry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.

    A failed store ping raises StartupError out of startup, which makes
    uvicorn abort and exit with a non-zero status.
    """
    lifecycle: LifecycleManager = app.state.lifecycle
    await lifecycle.startup()

    yield  # Application runs here

    logger.info("Shutting down location service")
    await lifecycle.shutdown()


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[LocationStore] = None,
    clock: Clock = current_time_millis,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Application settings, loaded from the environment if None
        store: Location store to use, built from settings if None
        clock: Millisecond clock used for validation windows and queries

    Raises:
        ConfigurationError: If the settings are invalid for the environment
    """
    settings = settings or get_settings()
    validate_startup(settings)
    telemetry_service = initialize_telemetry(settings)

    if store is None:
        store = create_location_store(settings, clock=clock)
    repository = LocationRepository(
        store,
        default_query_limit=settings.default_query_limit,
        max_query_limit=settings.max_query_limit,
        clock=clock,
        telemetry=telemetry_service,
    )
    lifecycle = LifecycleManager(store, drain_timeout_seconds=settings.drain_timeout_seconds)
    health_check_service = HealthCheckService(
        store,
        lifecycle,
        service_version=settings.service_version,
        check_timeout=settings.store_timeout_seconds,
    )

    docs_enabled = settings.environment == Environment.DEVELOPMENT
    app = FastAPI(
        title="Device Location API",
        version=settings.service_version,
        lifespan=lifespan,
        docs_url="/docs" if docs_enabled else None,
        redoc_url=None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.repository = repository
    app.state.lifecycle = lifecycle
    app.state.health_service = health_check_service
    app.state.telemetry = telemetry_service

    # Register exception handlers for structured error responses
    register_exception_handlers(app, AVAILABLE_ENDPOINTS)

    # Middleware added last runs first. Outermost to innermost:
    # CORS, security headers, request ID, body cap, rate limit, in-flight
    app.add_middleware(InFlightMiddleware, lifecycle=lifecycle)

    if settings.rate_limit_enabled:
        limiter = create_rate_limiter()
        app.state.limiter = limiter
        app.add_middleware(
            RateLimitMiddleware,
            limiter=limiter,
            limit=settings.rate_limit_string,
        )

    app.add_middleware(BodySizeLimitMiddleware, max_body_bytes=settings.max_request_body_bytes)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,  # Only configured origins, no wildcards
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[
            "Accept",
            "Accept-Language",
            "Content-Language",
            "Content-Type",
            "X-Request-ID",
            "X-Requested-With",
        ],
        expose_headers=["X-Request-ID", "Retry-After"],
        max_age=600,  # Cache preflight requests for 10 minutes
    )

    app.include_router(locations_router)
    app.include_router(system_router)

    logger.info(
        "Location service application created",
        extra={"extra_data": {
            "environment": settings.environment.value,
            "store_backend": settings.store_backend.value,
            "rate_limit": settings.rate_limit_string if settings.rate_limit_enabled else None,
        }}
    )
    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        log_config=None,  # keep the JSON root handler installed by telemetry
        timeout_graceful_shutdown=int(settings.drain_timeout_seconds),
    )
