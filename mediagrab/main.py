"""FastAPI application entry point.

This module assembles all components and creates the main application.
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from mediagrab import __version__
from mediagrab.api import download, health, metrics, video
from mediagrab.core.config import Config, ConfigService
from mediagrab.core.errors import global_exception_handler
from mediagrab.core.logging import clear_request_id, configure_logging, set_request_id
from mediagrab.core.metrics import MetricsCollector, initialize_metrics
from mediagrab.core.startup import StartupValidator
from mediagrab.providers.exceptions import MediaError
from mediagrab.services.media_service import configure_media_service, get_media_service

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to track HTTP request metrics.

    Records request count and duration for all endpoints,
    using FastAPI route templates to normalize paths.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Process request and record metrics."""
        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time

        # Fixed label for unmatched routes to prevent unbounded cardinality
        route = request.scope.get("route")
        endpoint = route.path if route else "/unmatched"

        MetricsCollector.record_request(
            method=request.method,
            endpoint=endpoint,
            status=response.status_code,
            duration=duration,
        )

        return response


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Binds a request_id to every log entry of a request.

    An incoming X-Request-ID header is reused; otherwise one is generated.
    The id is echoed back in the response header.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER) or None)
        try:
            response = await call_next(request)
        finally:
            clear_request_id()
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


# Global service instances
_startup_validator: Optional[StartupValidator] = None


def get_startup_validator() -> StartupValidator:
    """Get the global startup validator instance."""
    if _startup_validator is None:
        raise RuntimeError("Startup validator not configured")
    return _startup_validator


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown.

    Startup validation is fatal: AvailabilityError propagates and the
    server never begins accepting requests.
    """
    global _startup_validator

    config: Config = app.state.config

    configure_logging(config.logging.level, config.logging.format)
    logger.info("application_starting", version=__version__)

    initialize_metrics(__version__)

    _startup_validator = StartupValidator(config)
    result = await _startup_validator.validate_all()
    environment = result.raise_for_failure()

    configure_media_service(config, environment)

    logger.info(
        "application_startup_complete",
        version=__version__,
        extractor_version=environment.extractor_version,
        script_runtime=environment.script_runtime,
    )

    yield

    logger.info("application_shutdown_complete")


def create_app(config: Optional[Config] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if config is None:
        config = ConfigService().load()

    app = FastAPI(
        title="mediagrab",
        description="Video metadata and download API backed by yt-dlp",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.config = config

    app.add_middleware(MetricsMiddleware)
    # Added last so it wraps everything else
    app.add_middleware(RequestIDMiddleware)

    # Register global exception handlers
    app.add_exception_handler(MediaError, global_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    # Override dependency injection for routers
    app.dependency_overrides[video.get_media_service] = get_media_service
    app.dependency_overrides[download.get_media_service] = get_media_service
    app.dependency_overrides[health.get_startup_validator] = get_startup_validator

    # Register routers
    app.include_router(health.router)
    app.include_router(video.router)
    app.include_router(download.router)
    if config.monitoring.metrics_enabled:
        app.include_router(metrics.router)

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = app.state.config.server
    uvicorn.run(app, host=settings.host, port=settings.port)
