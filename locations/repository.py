"""
Location repository: validation, persistence and queries over samples.

The repository is the only component that applies business rules to
location samples. It holds no mutable state of its own; every request is
served by calls into the injected LocationStore.
"""

import asyncio
import logging
import math
import time
from typing import TYPE_CHECKING, Any, Mapping, Optional

from errors.exceptions import LocationValidationError, ValidationReason
from locations.clock import (
    DAY_MS,
    HOUR_MS,
    Clock,
    current_time_millis,
    millis_to_datetime,
)
from locations.models import (
    DEFAULT_DEVICE_NAME,
    DeviceSummary,
    LocationSample,
    LocationStats,
)

if TYPE_CHECKING:
    from store.base import LocationStore
    from telemetry.service import TelemetryService

logger = logging.getLogger(__name__)

# Accepted clock skew for client timestamps
MAX_FUTURE_SKEW_MS = 60 * 1000
MAX_SAMPLE_AGE_MS = DAY_MS
RETENTION_MS = 30 * DAY_MS

DEFAULT_QUERY_LIMIT = 100
MAX_QUERY_LIMIT = 1000
DEFAULT_LOOKBACK_HOURS = 24
# Nothing older than the retention period is stored
MAX_LOOKBACK_HOURS = RETENTION_MS // HOUR_MS

REQUIRED_FIELDS = ("deviceId", "timestamp", "latitude", "longitude")


def _as_number(value: Any) -> Optional[float]:
    """
    Coerce a JSON value to a finite float.

    Numbers and numeric strings are accepted; booleans, NaN and infinities
    are not. Returns None when the value is not usable.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _as_timestamp(value: Any) -> Optional[int]:
    """Coerce a JSON value to integral milliseconds, or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    number = _as_number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def _check_coordinate(raw: Mapping[str, Any], field: str, bound: float) -> float:
    value = _as_number(raw[field])
    if value is None or not -bound <= value <= bound:
        raise LocationValidationError(
            ValidationReason.OUT_OF_RANGE,
            f"{field} must be a number between -{bound:g} and {bound:g}",
            field=field,
        )
    return value


def build_location_sample(raw: Mapping[str, Any], now_ms: int) -> LocationSample:
    """
    Validate a raw submission and build the sample to persist.

    Checks run in a fixed order: required fields, then coordinate and
    accuracy ranges, then the timestamp window. ``now_ms`` becomes the
    sample's ``received_at``.

    Args:
        raw: Decoded JSON object from the client
        now_ms: Current server time in milliseconds

    Returns:
        A LocationSample with server-assigned received_at and expires_at

    Raises:
        LocationValidationError: With reason MISSING_FIELD, OUT_OF_RANGE
            or BAD_TIMESTAMP
    """
    for field in REQUIRED_FIELDS:
        if raw.get(field) is None:
            raise LocationValidationError(
                ValidationReason.MISSING_FIELD,
                f"Missing required field: {field}",
                field=field,
            )

    device_id = raw["deviceId"]
    if not isinstance(device_id, str) or not device_id.strip():
        raise LocationValidationError(
            ValidationReason.MISSING_FIELD,
            "deviceId must be a non-empty string",
            field="deviceId",
        )

    latitude = _check_coordinate(raw, "latitude", 90)
    longitude = _check_coordinate(raw, "longitude", 180)

    accuracy = None
    if raw.get("accuracy") is not None:
        accuracy = _as_number(raw["accuracy"])
        if accuracy is None or accuracy < 0:
            raise LocationValidationError(
                ValidationReason.OUT_OF_RANGE,
                "accuracy must be a non-negative number",
                field="accuracy",
            )

    timestamp = _as_timestamp(raw["timestamp"])
    if timestamp is None:
        raise LocationValidationError(
            ValidationReason.BAD_TIMESTAMP,
            "timestamp must be an integer number of milliseconds since epoch",
            field="timestamp",
        )
    if timestamp > now_ms + MAX_FUTURE_SKEW_MS:
        raise LocationValidationError(
            ValidationReason.BAD_TIMESTAMP,
            "timestamp is too far in the future",
            field="timestamp",
        )
    if timestamp < now_ms - MAX_SAMPLE_AGE_MS:
        raise LocationValidationError(
            ValidationReason.BAD_TIMESTAMP,
            "timestamp is older than 24 hours",
            field="timestamp",
        )

    device_name = raw.get("deviceName") or DEFAULT_DEVICE_NAME
    if not isinstance(device_name, str):
        device_name = str(device_name)

    return LocationSample(
        device_id=device_id,
        timestamp=timestamp,
        latitude=latitude,
        longitude=longitude,
        accuracy=accuracy,
        device_name=device_name,
        received_at=now_ms,
        expires_at=(now_ms + RETENTION_MS) // 1000,
    )


class LocationRepository:
    """
    Business operations over location samples.

    Args:
        store: The process-wide LocationStore
        default_query_limit: Limit used when a query gives none
        max_query_limit: Upper bound applied to every query limit
        clock: Returns the current time in milliseconds
        telemetry: Optional TelemetryService for duration metrics
    """

    def __init__(
        self,
        store: "LocationStore",
        *,
        default_query_limit: int = DEFAULT_QUERY_LIMIT,
        max_query_limit: int = MAX_QUERY_LIMIT,
        clock: Clock = current_time_millis,
        telemetry: Optional["TelemetryService"] = None,
    ):
        self.store = store
        self.default_query_limit = default_query_limit
        self.max_query_limit = max_query_limit
        self.clock = clock
        self.telemetry = telemetry

    def _record_duration(self, operation: str, start_time: float, **tags: str) -> None:
        if self.telemetry is None:
            return
        duration_ms = (time.perf_counter() - start_time) * 1000
        self.telemetry.record_metric(
            "location_repository.duration_ms",
            round(duration_ms, 2),
            tags={"operation": operation, **tags},
        )

    def clamp_limit(self, limit: Optional[int]) -> int:
        """Apply the default and keep the limit within [1, max_query_limit]."""
        if limit is None:
            limit = self.default_query_limit
        return max(1, min(limit, self.max_query_limit))

    async def record_location(self, raw: Mapping[str, Any]) -> LocationSample:
        """
        Validate and persist one submitted sample.

        Raises:
            LocationValidationError: If the submission is rejected; the
                store is not touched in that case
            StoreError: If the write fails
        """
        start_time = time.perf_counter()
        sample = build_location_sample(raw, self.clock())
        await self.store.put(sample)

        logger.info(
            f"Location recorded for device {sample.device_id}",
            extra={"extra_data": {
                "device_id": sample.device_id,
                "timestamp": sample.timestamp,
                "latitude": sample.latitude,
                "longitude": sample.longitude,
            }}
        )
        self._record_duration("record_location", start_time)
        return sample

    async def query_locations(
        self,
        device_id: str,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list[LocationSample]:
        """
        Samples of one device, newest first.

        Args:
            device_id: Device to query
            start_time: Inclusive lower timestamp bound
            end_time: Inclusive upper timestamp bound
            limit: Maximum results; defaulted and capped

        Raises:
            LocationValidationError: MISSING_FIELD when device_id is empty
            StoreError: If the read fails
        """
        if not device_id:
            raise LocationValidationError(
                ValidationReason.MISSING_FIELD,
                "deviceId is required",
                field="deviceId",
            )

        started = time.perf_counter()
        effective_limit = self.clamp_limit(limit)
        samples = await self.store.query_by_device(
            device_id,
            lower=start_time,
            upper=end_time,
            limit=effective_limit,
            descending=True,
        )

        logger.debug(
            f"Queried {len(samples)} locations for device {device_id}",
            extra={"extra_data": {
                "device_id": device_id,
                "start_time": start_time,
                "end_time": end_time,
                "limit": effective_limit,
                "count": len(samples),
            }}
        )
        self._record_duration("query_locations", started)
        return samples

    async def list_active_devices(
        self, lookback_hours: float = DEFAULT_LOOKBACK_HOURS
    ) -> list[DeviceSummary]:
        """
        The most recent sample of every device seen within the lookback.

        This is a full scan of the window. For equal timestamps within one
        device the sample seen first is kept. Devices appear in scan order.

        Raises:
            LocationValidationError: OUT_OF_RANGE for a negative lookback
            StoreError: If the scan fails
        """
        if lookback_hours < 0:
            raise LocationValidationError(
                ValidationReason.OUT_OF_RANGE,
                "hours must not be negative",
                field="hours",
            )

        started = time.perf_counter()
        lookback_hours = min(lookback_hours, MAX_LOOKBACK_HOURS)
        lower = self.clock() - int(lookback_hours * HOUR_MS)
        samples = await self.store.scan_filtered(lower)

        latest: dict[str, LocationSample] = {}
        for sample in samples:
            current = latest.get(sample.device_id)
            if current is None or sample.timestamp > current.timestamp:
                latest[sample.device_id] = sample

        devices = [DeviceSummary.from_sample(sample) for sample in latest.values()]

        logger.debug(
            f"Found {len(devices)} active devices",
            extra={"extra_data": {
                "lookback_hours": lookback_hours,
                "scanned": len(samples),
                "devices": len(devices),
            }}
        )
        self._record_duration("list_active_devices", started)
        return devices

    async def get_stats(self) -> LocationStats:
        """
        Sample counts for the last 24 hours and the last hour.

        Both counts run concurrently. If either fails the other is
        cancelled before the error propagates.

        Raises:
            StoreError: If either count fails
        """
        started = time.perf_counter()
        now = self.clock()

        day_task = asyncio.ensure_future(self.store.count_filtered(now - DAY_MS))
        hour_task = asyncio.ensure_future(self.store.count_filtered(now - HOUR_MS))
        try:
            day_count, hour_count = await asyncio.gather(day_task, hour_task)
        except BaseException:
            for task in (day_task, hour_task):
                task.cancel()
            await asyncio.gather(day_task, hour_task, return_exceptions=True)
            raise

        # A write landing between the two counts must not invert them
        hour_count = min(hour_count, day_count)

        self._record_duration("get_stats", started)
        return LocationStats(
            locations_last_24h=day_count,
            locations_last_hour=hour_count,
            server_time=millis_to_datetime(now),
        )
