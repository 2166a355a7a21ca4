"""
Data models for device location samples and derived views.

Field names are snake_case in Python and camelCase on the wire and in the
store, via pydantic aliases.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_DEVICE_NAME = "Unknown Device"


class LocationSample(BaseModel):
    """
    One reported device location at a specific timestamp.

    Identity is ``(device_id, timestamp)``. ``received_at`` and
    ``expires_at`` are assigned by the server when the sample is recorded.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    device_id: str = Field(alias="deviceId", min_length=1)
    timestamp: int = Field(description="Client timestamp, ms since epoch")
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    accuracy: Optional[float] = Field(default=None, ge=0, description="Meters")
    device_name: str = Field(default=DEFAULT_DEVICE_NAME, alias="deviceName")
    received_at: int = Field(alias="receivedAt", description="Server receive time, ms since epoch")
    expires_at: int = Field(alias="expiresAt", description="Expiry, seconds since epoch")

    @property
    def key(self) -> tuple[str, int]:
        return (self.device_id, self.timestamp)

    def to_document(self) -> dict[str, Any]:
        """Serialize for persistence, using the store attribute names."""
        return self.model_dump(by_alias=True)

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "LocationSample":
        """Rebuild a sample from a stored document; unknown attributes are ignored."""
        return cls.model_validate(document)

    def to_public_dict(self) -> dict[str, Any]:
        """Wire form used in query responses. Server-assigned times are not echoed."""
        return {
            "deviceId": self.device_id,
            "timestamp": self.timestamp,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "accuracy": self.accuracy,
            "deviceName": self.device_name,
        }


class DeviceSummary(BaseModel):
    """The most recent sample of one device within a lookback window."""

    model_config = ConfigDict(frozen=True)

    device_id: str
    device_name: str
    last_location: LocationSample

    @classmethod
    def from_sample(cls, sample: LocationSample) -> "DeviceSummary":
        return cls(
            device_id=sample.device_id,
            device_name=sample.device_name,
            last_location=sample,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "deviceId": self.device_id,
            "deviceName": self.device_name,
            "lastLocation": {
                "timestamp": self.last_location.timestamp,
                "latitude": self.last_location.latitude,
                "longitude": self.last_location.longitude,
                "accuracy": self.last_location.accuracy,
            },
        }


class LocationStats(BaseModel):
    """Windowed sample counts at a point in time."""

    model_config = ConfigDict(frozen=True)

    locations_last_24h: int = Field(ge=0)
    locations_last_hour: int = Field(ge=0)
    server_time: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "locationsLast24h": self.locations_last_24h,
            "locationsLastHour": self.locations_last_hour,
            "serverTime": self.server_time.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        }
