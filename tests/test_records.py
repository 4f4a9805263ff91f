"""
Unit tests for records module (ping to record projection).
"""
import pytest
from datetime import datetime, timezone
from src.tracker.models import LocationEntry
from src.tracker.records import motion_to_string, project_record, MOTION_PLACEHOLDER


def make_entry(**properties):
    props = {
        "timestamp": "2024-01-15T10:00:00Z",
        "motion": ["walking"],
        "speed": 1.4,
        "altitude": 12.0,
        "horizontalAccuracy": 5.0,
        "verticalAccuracy": 3.0,
        "deviceId": "phone-1",
        "batteryState": "unplugged",
        "batteryLevel": 0.64,
    }
    props.update(properties)
    return LocationEntry.model_validate({
        "geometry": {"type": "Point", "coordinates": [-74.0060, 40.7128]},
        "properties": props,
    })


@pytest.mark.unit
class TestMotionToString:
    """Test suite for motion_to_string function."""

    def test_single_label(self):
        assert motion_to_string(["automotive"]) == "automotive"

    def test_multiple_labels_keep_order(self):
        assert motion_to_string(["walking", "stationary"]) == "walking,stationary"
        assert motion_to_string(["stationary", "walking"]) == "stationary,walking"

    def test_empty_is_placeholder(self):
        """Test that an empty motion list is stored as a single space."""
        assert motion_to_string([]) == " "
        assert MOTION_PLACEHOLDER == " "

    def test_blank_label_is_placeholder(self):
        """Test that a list holding only an empty label never yields an empty string."""
        assert motion_to_string([""]) == " "


@pytest.mark.unit
class TestProjectRecord:
    """Test suite for project_record function."""

    def test_fields_are_copied(self):
        """Test that every field is mapped onto the record."""
        ts = datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)
        record = project_record(make_entry(), ts)

        assert record.timestamp == ts
        assert record.latitude == 40.7128
        assert record.longitude == -74.0060
        assert record.altitude == 12.0
        assert record.speed == 1.4
        assert record.horizontal_accuracy == 5.0
        assert record.vertical_accuracy == 3.0
        assert record.motion == "walking"
        assert record.device_id == "phone-1"
        assert record.battery_level == 0.64

    def test_uses_given_timestamp(self):
        """Test that the caller's parsed timestamp is used as-is."""
        ts = datetime(2030, 6, 1, 0, 0, 0, tzinfo=timezone.utc)
        record = project_record(make_entry(), ts)

        assert record.timestamp == ts

    @pytest.mark.parametrize("state,expected", [
        ("charging", True),
        ("full", False),
        ("unplugged", False),
        ("unknown", False),
        ("", False),
    ])
    def test_battery_charging(self, state, expected):
        """Test that only "charging" maps to battery_charging=True."""
        ts = datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)
        record = project_record(make_entry(batteryState=state), ts)

        assert record.battery_charging is expected

    def test_empty_motion(self):
        """Test that a ping without motion labels gets the placeholder."""
        ts = datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)
        record = project_record(make_entry(motion=[]), ts)

        assert record.motion == " "
