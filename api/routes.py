"""
Location ingestion and query endpoints under /api.

Handlers only parse request parameters, call the repository and shape the
JSON response. Validation of samples lives in the repository; errors are
raised as exceptions and rendered by the handlers in ``errors.handlers``.
"""

import logging
import math
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request

from api.dependencies import get_lifecycle, get_repository
from errors.exceptions import invalid_request
from lifecycle.manager import LifecycleManager
from locations.repository import DEFAULT_LOOKBACK_HOURS, MAX_LOOKBACK_HOURS, LocationRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def parse_limit(value: Optional[str]) -> Optional[int]:
    """
    Parse the ``limit`` query parameter leniently.

    Missing, unparseable and non-positive values fall back to the default
    (None); capping happens in the repository.
    """
    if value is None:
        return None
    try:
        limit = int(value)
    except ValueError:
        return None
    return limit if limit >= 1 else None


def parse_time_bound(name: str, value: Optional[str]) -> Optional[int]:
    """
    Parse a ``startTime``/``endTime`` query parameter.

    Raises:
        AppException: INVALID_REQUEST when the value is not an integer
    """
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        raise invalid_request(
            f"{name} must be an integer number of milliseconds since epoch",
            details={"parameter": name, "value": value},
        ) from None


def parse_hours(value: Optional[str]) -> float:
    """
    Parse ``hours``; missing, invalid or negative values mean 24. Zero is
    kept, and anything beyond the retention period is capped to it.
    """
    if value is None:
        return float(DEFAULT_LOOKBACK_HOURS)
    try:
        hours = float(value)
    except ValueError:
        return float(DEFAULT_LOOKBACK_HOURS)
    if not math.isfinite(hours) or hours < 0:
        return float(DEFAULT_LOOKBACK_HOURS)
    return min(hours, float(MAX_LOOKBACK_HOURS))


@router.post("/location", status_code=201)
async def submit_location(
    request: Request,
    repository: LocationRepository = Depends(get_repository),
) -> dict[str, Any]:
    """Record one location sample sent by a device."""
    try:
        payload = await request.json()
    except ValueError:
        raise invalid_request("Request body must be valid JSON") from None

    if not isinstance(payload, dict):
        raise invalid_request(
            "Request body must be a JSON object",
            details={"received_type": type(payload).__name__},
        )

    sample = await repository.record_location(payload)
    return {
        "success": True,
        "message": "Location saved successfully",
        "deviceId": sample.device_id,
        "timestamp": sample.timestamp,
    }


@router.get("/locations")
async def get_locations(
    device_id: Optional[str] = Query(None, alias="deviceId"),
    start_time: Optional[str] = Query(None, alias="startTime"),
    end_time: Optional[str] = Query(None, alias="endTime"),
    limit: Optional[str] = Query(None),
    repository: LocationRepository = Depends(get_repository),
) -> dict[str, Any]:
    """Locations of one device, newest first."""
    lower = parse_time_bound("startTime", start_time)
    upper = parse_time_bound("endTime", end_time)

    samples = await repository.query_locations(
        device_id or "",
        start_time=lower,
        end_time=upper,
        limit=parse_limit(limit),
    )
    return {
        "success": True,
        "count": len(samples),
        "deviceId": device_id,
        "locations": [sample.to_public_dict() for sample in samples],
    }


@router.get("/devices")
async def get_devices(
    hours: Optional[str] = Query(None),
    repository: LocationRepository = Depends(get_repository),
) -> dict[str, Any]:
    """Most recent location of every device active within the last ``hours``."""
    lookback = parse_hours(hours)
    devices = await repository.list_active_devices(lookback)
    return {
        "success": True,
        "count": len(devices),
        "hours": int(lookback) if lookback.is_integer() else lookback,
        "devices": [device.to_dict() for device in devices],
    }


@router.get("/stats")
async def get_stats(
    repository: LocationRepository = Depends(get_repository),
    lifecycle: LifecycleManager = Depends(get_lifecycle),
) -> dict[str, Any]:
    """Sample counts over the last 24 hours and the last hour."""
    stats = await repository.get_stats()
    return {
        "success": True,
        **stats.to_dict(),
        "uptime": round(lifecycle.uptime_seconds(), 3),
    }
