"""Health check endpoints.

- /health re-checks every component the service depends on
- /liveness reports that the process is up
- /readiness reports whether requests can be served
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Dict, Literal

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from mediagrab import __version__
from mediagrab.api.schemas import ComponentHealth, HealthResponse, LivenessResponse, ReadinessResponse
from mediagrab.core.checks import CheckResult
from mediagrab.core.startup import StartupValidator

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["health"])

# Track application start time for uptime calculation
_start_time: float = time.time()


# Dependency placeholder for the startup validator
async def get_startup_validator() -> StartupValidator:
    """Get startup validator instance."""
    raise NotImplementedError("Startup validator dependency not configured")


def _to_component(result: CheckResult) -> ComponentHealth:
    if result.available:
        return ComponentHealth(
            status="healthy", version=result.version, details=result.details or None
        )
    return ComponentHealth(
        status="unhealthy",
        version=result.version,
        details={"error": result.error or f"{result.name} not available"},
    )


async def _collect(validator: StartupValidator) -> Dict[str, ComponentHealth]:
    checks = [validator.check_extractor()]
    if validator.config.script_runtime.enabled:
        checks.append(validator.check_script_runtime())
    results = list(await asyncio.gather(*checks))
    results.append(validator.check_storage())
    return {r.name: _to_component(r) for r in results}


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={
        200: {"description": "All components healthy"},
        503: {"description": "One or more components unhealthy"},
    },
)
async def health_check(
    validator: StartupValidator = Depends(get_startup_validator),  # noqa: B008
) -> JSONResponse:
    """
    Detailed health check endpoint.

    Verifies yt-dlp, the JavaScript runtime (when enabled) and the temp
    directory. Returns HTTP 200 if all components are healthy, HTTP 503
    otherwise.
    """
    components = await _collect(validator)

    all_healthy = all(c.status == "healthy" for c in components.values())
    overall_status: Literal["healthy", "unhealthy"] = "healthy" if all_healthy else "unhealthy"

    response = HealthResponse(
        status=overall_status,
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=__version__,
        uptime_seconds=round(time.time() - _start_time, 2),
        components=components,
    )

    logger.info(
        "health_check_completed",
        status=overall_status,
        components={k: v.status for k, v in components.items()},
    )

    status_code = status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(content=response.model_dump(), status_code=status_code)


@router.get("/liveness", response_model=LivenessResponse)
async def liveness_check() -> LivenessResponse:
    """Liveness check endpoint."""
    return LivenessResponse(status="alive")


@router.get(
    "/readiness",
    response_model=ReadinessResponse,
    responses={
        200: {"description": "Service is ready to accept traffic"},
        503: {"description": "Service is not ready"},
    },
)
async def readiness_check(
    validator: StartupValidator = Depends(get_startup_validator),  # noqa: B008
) -> JSONResponse:
    """
    Readiness check endpoint.

    Checks that yt-dlp and the configured JavaScript runtime still answer
    and the temp directory is writable.
    """
    issues = []

    extractor = await validator.check_extractor()
    if not extractor.available:
        issues.append("yt-dlp not available")

    if validator.config.script_runtime.enabled:
        runtime = await validator.check_script_runtime()
        if not runtime.available:
            issues.append("Script runtime not available")

    storage = validator.check_storage()
    if not storage.available:
        issues.append("Storage not ready")

    if issues:
        response = ReadinessResponse(status="not_ready", ready=False, message="; ".join(issues))
        return JSONResponse(
            content=response.model_dump(),
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    return JSONResponse(
        content=ReadinessResponse(status="ready", ready=True).model_dump(),
        status_code=status.HTTP_200_OK,
    )
