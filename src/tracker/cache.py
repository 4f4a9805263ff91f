"""
Redis read-through cache for coordinate range queries.

The web client polls /api/coordinates-from/<start> repeatedly with the same
start time, so results are cached per start time until the next batch is
ingested (or the TTL passes, whichever comes first).

Invalidation bumps a generation counter that is part of every cache key.
A query that read the store before an invalidation fills a key of the old
generation, which no later query looks at, so stale results are never served.

Keys:
    coords:generation                     integer, incremented per ingested batch
    coords:from:<generation>:<iso start>  JSON list of records (expire after TTL)
"""
import logging
import os
from datetime import datetime
from typing import List

from pydantic import TypeAdapter
from redis import Redis
from redis.exceptions import RedisError

from src.tracker import metrics
from src.tracker.models import LocationRecord
from src.tracker.time_utils import to_utc

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = int(os.getenv("CACHE_TTL_SECONDS", "300"))
KEY_PREFIX = "coords:from:"
GENERATION_KEY = "coords:generation"

_records_adapter = TypeAdapter(List[LocationRecord])


def get_cache_key(start: datetime, generation: int = 0) -> str:
    """Get Redis key for the cached query starting at start."""
    return f"{KEY_PREFIX}{generation}:{to_utc(start).isoformat()}"


class CoordinateCache:
    """
    Caches LocationStore.coordinates_from results in Redis.

    Redis failures never fail a query; the store is read directly instead.
    """

    def __init__(self, redis_client: Redis, store, ttl_seconds: int = CACHE_TTL_SECONDS):
        self._redis = redis_client
        self._store = store
        self._ttl = ttl_seconds

    def coordinates_from(self, start: datetime) -> List[LocationRecord]:
        try:
            generation = int(self._redis.get(GENERATION_KEY) or 0)
            key = get_cache_key(start, generation)
            cached = self._redis.get(key)
            metrics.redis_operations_total.labels(operation="get", status="success").inc()
        except RedisError as exc:
            logger.warning("Coordinate cache read failed: %s", exc)
            metrics.redis_operations_total.labels(operation="get", status="error").inc()
            metrics.cache_requests_total.labels(result="error").inc()
            return self._store.coordinates_from(start)

        if cached is not None:
            metrics.cache_requests_total.labels(result="hit").inc()
            return _records_adapter.validate_json(cached)

        metrics.cache_requests_total.labels(result="miss").inc()
        records = self._store.coordinates_from(start)

        try:
            self._redis.setex(key, self._ttl, _records_adapter.dump_json(records, by_alias=True))
            metrics.redis_operations_total.labels(operation="setex", status="success").inc()
        except RedisError as exc:
            logger.warning("Coordinate cache fill failed for %s: %s", key, exc)
            metrics.redis_operations_total.labels(operation="setex", status="error").inc()

        return records

    def invalidate(self) -> None:
        """
        Make every cached query unreachable by moving to a new generation.

        A failure is logged and left to the TTL to clean up, since the batch
        that triggered it has already been written.
        """
        try:
            self._redis.incr(GENERATION_KEY)
            metrics.redis_operations_total.labels(operation="invalidate", status="success").inc()
        except RedisError as exc:
            logger.warning("Coordinate cache invalidation failed: %s", exc)
            metrics.redis_operations_total.labels(operation="invalidate", status="error").inc()
