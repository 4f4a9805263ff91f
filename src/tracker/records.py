"""
Projection of raw pings into the record shape written to location history.
"""
from datetime import datetime
from typing import List

from src.tracker.models import LocationEntry, LocationRecord

CHARGING_STATE = "charging"

# Stored in place of an empty motion list so the column is never blank
MOTION_PLACEHOLDER = " "


def motion_to_string(motion: List[str]) -> str:
    """Join motion labels with commas, e.g. ["walking", "stationary"] -> "walking,stationary"."""
    return ",".join(motion) or MOTION_PLACEHOLDER


def project_record(entry: LocationEntry, timestamp: datetime) -> LocationRecord:
    """
    Build the LocationRecord for an accepted ping.

    Args:
        entry: Raw ping
        timestamp: The ping's timestamp, already parsed by the caller

    Returns:
        LocationRecord ready to be persisted
    """
    props = entry.properties
    return LocationRecord(
        timestamp=timestamp,
        latitude=entry.latitude,
        longitude=entry.longitude,
        altitude=props.altitude,
        speed=props.speed,
        horizontal_accuracy=props.horizontal_accuracy,
        vertical_accuracy=props.vertical_accuracy,
        motion=motion_to_string(props.motion),
        device_id=props.device_id,
        battery_charging=props.battery_state == CHARGING_STATE,
        battery_level=props.battery_level,
    )
