"""
Service endpoints: health probes and the capability listing.

These endpoints sit outside /api and are not rate limited.
"""

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.dependencies import get_app_settings, get_health_service, get_lifecycle
from config.settings import Settings
from health.service import HealthCheckService
from lifecycle.manager import LifecycleManager, LifecycleState

router = APIRouter()

# (method, path, description) for every route the service exposes
ENDPOINTS: list[tuple[str, str, str]] = [
    ("POST", "/api/location", "Submit a device location"),
    ("GET", "/api/locations", "Locations of one device (deviceId, startTime, endTime, limit)"),
    ("GET", "/api/devices", "Most recent location per active device (hours)"),
    ("GET", "/api/stats", "Location counts for the last 24 hours and last hour"),
    ("GET", "/health", "Basic health check"),
    ("GET", "/health/ready", "Readiness check including the location store"),
    ("GET", "/health/live", "Liveness check"),
    ("GET", "/info", "Service information"),
]

AVAILABLE_ENDPOINTS: list[str] = [f"{method} {path}" for method, path, _ in ENDPOINTS]


@router.get("/health")
async def health_basic(
    health_service: HealthCheckService = Depends(get_health_service),
    lifecycle: LifecycleManager = Depends(get_lifecycle),
):
    """
    Basic health check endpoint.

    Returns 200 with status and uptime while the service accepts requests,
    503 once it is draining.
    """
    result = await health_service.check_health()
    if lifecycle.state in (LifecycleState.DRAINING, LifecycleState.STOPPED):
        return JSONResponse(status_code=503, content=result)
    return result


@router.get("/health/ready")
async def health_ready(
    health_service: HealthCheckService = Depends(get_health_service),
    settings: Settings = Depends(get_app_settings),
):
    """
    Readiness check endpoint with store verification.

    Returns:
        JSONResponse: Health status with dependency details
        - 200 OK: store reachable and service ready
        - 503 Service Unavailable: store unreachable or service not ready
    """
    health_status = await health_service.check_readiness()
    response_data = {
        "service": settings.service_name,
        "version": settings.service_version,
        **health_status.to_dict(),
    }

    if not health_status.healthy:
        response_data["failure_reasons"] = [
            {"dependency": dep.name, "error": dep.error}
            for dep in health_status.dependencies
            if not dep.healthy
        ]
        return JSONResponse(status_code=503, content=response_data)

    return response_data


@router.get("/health/live")
async def health_live(health_service: HealthCheckService = Depends(get_health_service)):
    """Liveness check. Returns 200 while the process is running."""
    return await health_service.check_liveness()


@router.get("/info")
async def service_info(settings: Settings = Depends(get_app_settings)) -> dict[str, Any]:
    """Static service metadata and the endpoint listing."""
    return {
        "name": settings.service_name,
        "version": settings.service_version,
        "description": "Device location tracking service",
        "environment": settings.environment.value,
        "endpoints": [
            {"method": method, "path": path, "description": description}
            for method, path, description in ENDPOINTS
        ],
    }
