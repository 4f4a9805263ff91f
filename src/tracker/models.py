from pydantic import BaseModel, ConfigDict, Field, ValidationError
from datetime import datetime
from typing import Any, List, Union

from src.tracker.errors import MalformedBatchError
from src.tracker.time_utils import ZERO_TIME

# Indexes into GeoJSON coordinates, which are [longitude, latitude]
LONGITUDE = 0
LATITUDE = 1


class Geometry(BaseModel):
    """GeoJSON point geometry."""
    type: str = "Point"
    coordinates: List[float] = Field(..., min_length=2, description="[longitude, latitude]")


class LocationProperties(BaseModel):
    """Telemetry attached to a single ping, as reported by the phone."""
    model_config = ConfigDict(populate_by_name=True)

    # Validated per ping by the filter so one bad value does not reject the batch
    timestamp: Any = None
    motion: List[str] = Field(default_factory=list)
    speed: float = Field(default=0.0, description="Speed in m/s")
    altitude: float = 0.0
    horizontal_accuracy: float = Field(default=0.0, alias="horizontalAccuracy")
    vertical_accuracy: float = Field(default=0.0, alias="verticalAccuracy")
    device_id: str = Field(default="", alias="deviceId")
    battery_state: str = Field(default="", alias="batteryState")
    battery_level: float = Field(default=0.0, alias="batteryLevel")


class LocationEntry(BaseModel):
    """Single raw location ping."""
    geometry: Geometry
    properties: LocationProperties

    @property
    def latitude(self) -> float:
        return self.geometry.coordinates[LATITUDE]

    @property
    def longitude(self) -> float:
        return self.geometry.coordinates[LONGITUDE]


class LocationPayload(BaseModel):
    """Batch of pings in the order the client recorded them."""
    locations: List[LocationEntry] = Field(default_factory=list)


class LocationRecord(BaseModel):
    """Flattened, storage-ready form of an accepted ping."""
    model_config = ConfigDict(populate_by_name=True)

    timestamp: datetime
    latitude: float = 0.0
    longitude: float = 0.0
    altitude: float = 0.0
    speed: float = 0.0
    horizontal_accuracy: float = Field(default=0.0, alias="horizontalAccuracy")
    vertical_accuracy: float = Field(default=0.0, alias="verticalAccuracy")
    motion: str = " "
    device_id: str = Field(default="", alias="deviceId")
    battery_charging: bool = Field(default=False, alias="batteryCharging")
    battery_level: float = Field(default=0.0, alias="batteryLevel")

    @classmethod
    def zero(cls) -> "LocationRecord":
        """Sentinel returned when nothing has been recorded yet."""
        return cls(timestamp=ZERO_TIME)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


def parse_location_payload(document: Union[dict, str, bytes]) -> LocationPayload:
    """
    Decode an inbound document into a LocationPayload.

    Args:
        document: Parsed JSON object, or raw JSON text/bytes

    Raises:
        MalformedBatchError: If the document is not valid JSON or has the wrong shape
    """
    try:
        if isinstance(document, (str, bytes, bytearray)):
            return LocationPayload.model_validate_json(document)
        return LocationPayload.model_validate(document)
    except ValidationError as exc:
        raise MalformedBatchError(str(exc)) from exc
