"""
Location samples: models, validation and the repository.
"""

from locations.clock import current_time_millis
from locations.models import (
    DEFAULT_DEVICE_NAME,
    DeviceSummary,
    LocationSample,
    LocationStats,
)
from locations.repository import LocationRepository, build_location_sample

__all__ = [
    "current_time_millis",
    "DEFAULT_DEVICE_NAME",
    "DeviceSummary",
    "LocationSample",
    "LocationStats",
    "LocationRepository",
    "build_location_sample",
]
