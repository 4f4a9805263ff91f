"""
Tests for the Redis coordinate cache.
"""
import json
import pytest
from datetime import datetime, timezone, timedelta
from unittest.mock import Mock
from redis.exceptions import RedisError
from src.tracker.cache import CoordinateCache, get_cache_key, GENERATION_KEY
from src.tracker.models import LocationRecord

START = datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_redis():
    """Create a mock Redis client backed by a dict for get/setex/incr."""
    data = {}
    mock = Mock()
    mock.data = data
    mock.get.side_effect = data.get

    def setex(key, ttl, value):
        data[key] = value

    def incr(key):
        data[key] = int(data.get(key, 0)) + 1
        return data[key]

    mock.setex.side_effect = setex
    mock.incr.side_effect = incr
    return mock


@pytest.fixture
def mock_store():
    store = Mock()
    store.coordinates_from.return_value = [
        LocationRecord(timestamp=START, latitude=40.7128, longitude=-74.0060, device_id="phone-1"),
    ]
    return store


@pytest.fixture
def cache(mock_redis, mock_store):
    return CoordinateCache(mock_redis, mock_store, ttl_seconds=120)


@pytest.mark.unit
class TestCacheKey:
    """Test suite for get_cache_key function."""

    def test_key_format(self):
        assert get_cache_key(START, 3) == "coords:from:3:2024-01-15T10:00:00+00:00"

    def test_same_instant_same_key(self):
        """Test that equivalent instants in different offsets share a key."""
        local = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone(timedelta(hours=2)))

        assert get_cache_key(local, 1) == get_cache_key(START, 1)

    def test_generation_changes_key(self):
        assert get_cache_key(START, 1) != get_cache_key(START, 2)


@pytest.mark.unit
class TestCoordinatesFrom:
    """Test suite for CoordinateCache.coordinates_from."""

    def test_cache_hit(self, cache, mock_redis, mock_store):
        cached = [
            LocationRecord(timestamp=START, latitude=1.0, longitude=2.0).to_json_dict(),
        ]
        mock_redis.data[get_cache_key(START, 0)] = json.dumps(cached)

        records = cache.coordinates_from(START)

        assert len(records) == 1
        assert records[0].latitude == 1.0
        assert records[0].timestamp == START
        mock_store.coordinates_from.assert_not_called()

    def test_cache_miss_reads_store_and_fills(self, cache, mock_redis, mock_store):
        records = cache.coordinates_from(START)

        assert records == mock_store.coordinates_from.return_value
        mock_store.coordinates_from.assert_called_once_with(START)

        key, ttl, value = mock_redis.setex.call_args[0]
        assert key == get_cache_key(START, 0)
        assert ttl == 120
        assert json.loads(value)[0]["deviceId"] == "phone-1"

    def test_second_query_is_served_from_cache(self, cache, mock_store):
        cache.coordinates_from(START)
        records = cache.coordinates_from(START)

        assert records[0].device_id == "phone-1"
        mock_store.coordinates_from.assert_called_once()

    def test_invalidate_forces_store_read(self, cache, mock_store):
        cache.coordinates_from(START)
        cache.invalidate()
        cache.coordinates_from(START)

        assert mock_store.coordinates_from.call_count == 2

    def test_fill_racing_invalidation_is_never_served(self, cache, mock_store):
        """Test that a result read before an invalidation is not served after it."""
        stale = [LocationRecord(timestamp=START, latitude=1.0, longitude=1.0)]
        fresh = [
            LocationRecord(timestamp=START, latitude=1.0, longitude=1.0),
            LocationRecord(timestamp=START + timedelta(minutes=1), latitude=2.0, longitude=2.0),
        ]

        def read_then_batch_lands(start):
            # A batch is ingested while this query is reading the store
            mock_store.coordinates_from.side_effect = lambda start: fresh
            cache.invalidate()
            return stale

        mock_store.coordinates_from.side_effect = read_then_batch_lands

        assert cache.coordinates_from(START) == stale
        assert cache.coordinates_from(START) == fresh

    def test_redis_read_error_falls_back_to_store(self, cache, mock_redis, mock_store):
        mock_redis.get.side_effect = RedisError("Connection refused")

        records = cache.coordinates_from(START)

        assert records == mock_store.coordinates_from.return_value
        mock_redis.setex.assert_not_called()

    def test_redis_fill_error_still_returns_records(self, cache, mock_redis, mock_store):
        mock_redis.setex.side_effect = RedisError("Connection refused")

        records = cache.coordinates_from(START)

        assert records == mock_store.coordinates_from.return_value


@pytest.mark.unit
class TestInvalidate:
    """Test suite for CoordinateCache.invalidate."""

    def test_bumps_generation(self, cache, mock_redis):
        cache.invalidate()
        cache.invalidate()

        assert mock_redis.data[GENERATION_KEY] == 2
        mock_redis.incr.assert_called_with(GENERATION_KEY)

    def test_redis_error_is_not_raised(self, cache, mock_redis):
        """Test that a failed invalidation does not fail the batch."""
        mock_redis.incr.side_effect = RedisError("Connection refused")

        cache.invalidate()
