"""
Location Tracker API
FastAPI application that ingests phone location batches and keeps a
downsampled location history.
"""
import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from redis.exceptions import LockError, RedisError
from starlette.concurrency import run_in_threadpool

from src.tracker.redis_client import get_redis_client, get_ingest_lock
from src.tracker.database import init_db, is_database_configured
from src.tracker.errors import MalformedBatchError, PersistenceError, TimestampParseError
from src.tracker.models import parse_location_payload
from src.tracker.time_utils import parse_timestamp
from src.tracker.store import LocationStore
from src.tracker.cache import CoordinateCache
from src.tracker.service import TrackerContext, ingest_batch
from src.tracker import metrics

logger = logging.getLogger(__name__)

# Origin of the web client during development
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")


def get_tracker_context() -> TrackerContext:
    """
    Build the collaborators for one request.

    The store is both the last-point provider and the sink; queries go
    through the Redis cache; ingestion is serialized with a Redis lock.
    """
    r = get_redis_client()
    store = LocationStore()
    return TrackerContext(
        points=store,
        sink=store,
        cache=CoordinateCache(r, store),
        lock=get_ingest_lock(r),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    if is_database_configured():
        init_db()
    else:
        logger.warning("DATABASE_URL is not set; location history is unavailable")
    yield


# Initialize FastAPI application
app = FastAPI(
    title="Location Tracker",
    description="Ingests phone location batches and keeps an adaptively downsampled history",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD"],
    allow_headers=["Origin", "Content-Length", "Content-Type"],
    expose_headers=["X-Total-Count"],
)


@app.get("/metrics")
def get_metrics():
    """
    Prometheus metrics endpoint.

    Returns:
        Response: Prometheus-formatted metrics
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
        dict: API status, Redis connection status and database configuration
    """
    try:
        redis_client = get_redis_client()
        redis_client.ping()
        redis_status = "connected"
        metrics.redis_operations_total.labels(operation="ping", status="success").inc()
    except RedisError:
        redis_status = "disconnected"
        metrics.redis_operations_total.labels(operation="ping", status="error").inc()

    database_status = "configured" if is_database_configured() else "not_configured"

    return {"status": "healthy", "redis": redis_status, "database": database_status}


@app.post("/location")
async def ingest_locations(request: Request):
    """
    Ingest a batch of location pings from the phone.

    Process:
    1. Decode the body into a LocationPayload
    2. Take the ingestion lock and read the last recorded point
    3. Filter the pings (see filtering.py) and write the accepted ones
    4. Invalidate the coordinate cache

    Returns:
        dict: result, accepted count and the skipped pings with reasons

    Raises:
        HTTPException 400: If the body is not a valid location payload
        HTTPException 503: If storage or the ingestion lock is unavailable
    """
    start_time = time.time()
    body = await request.body()

    try:
        payload = parse_location_payload(body)
    except MalformedBatchError as exc:
        metrics.location_batches_total.labels(status="malformed").inc()
        raise HTTPException(status_code=400, detail=f"Malformed location payload: {exc}")

    context = get_tracker_context()

    try:
        result = await run_in_threadpool(ingest_batch, payload, context)
    except PersistenceError as exc:
        metrics.location_batches_total.labels(status="unavailable").inc()
        raise HTTPException(status_code=503, detail=str(exc))
    except (LockError, RedisError) as exc:
        metrics.location_batches_total.labels(status="unavailable").inc()
        raise HTTPException(status_code=503, detail=f"Ingestion lock unavailable: {exc}")

    skipped = [s.as_dict() for s in result.skipped]
    metrics.request_duration_seconds.labels(endpoint="ingest_locations").observe(time.time() - start_time)

    if not result.ok:
        # Earlier pings in the batch were written; report how far we got
        metrics.location_batches_total.labels(status="partial").inc()
        raise HTTPException(
            status_code=503,
            detail={
                "error": str(result.error),
                "accepted": result.accepted_count,
                "skipped": skipped,
            }
        )

    metrics.location_batches_total.labels(status="success").inc()
    return {
        "result": "ok",
        "accepted": result.accepted_count,
        "skipped": skipped,
    }


@app.get("/api/query")
def get_last_point():
    """
    Most recently recorded point.

    Returns the zero record (timestamp 0001-01-01T00:00:00Z) if nothing has
    been recorded yet.
    """
    start_time = time.time()
    context = get_tracker_context()

    try:
        record = context.points.get_last_point()
    except PersistenceError as exc:
        raise HTTPException(status_code=503, detail=str(exc))

    metrics.request_duration_seconds.labels(endpoint="get_last_point").observe(time.time() - start_time)
    return record.to_json_dict()


@app.get("/api/coordinates-from/{start}")
def get_coordinates_from(start: str, response: Response):
    """
    All recorded points at or after start.

    Args:
        start: RFC 3339 timestamp, e.g. 2024-01-15T10:00:00Z

    Returns:
        list: Records ordered by timestamp; X-Total-Count header holds the count

    Raises:
        HTTPException 400: If start is not a valid timestamp
    """
    start_time = time.time()

    try:
        start_ts = parse_timestamp(start)
    except TimestampParseError as exc:
        raise HTTPException(status_code=400, detail=f"Not a valid start parameter: {exc.reason}")

    context = get_tracker_context()

    try:
        records = context.cache.coordinates_from(start_ts)
    except PersistenceError as exc:
        raise HTTPException(status_code=503, detail=str(exc))

    response.headers["X-Total-Count"] = str(len(records))
    metrics.request_duration_seconds.labels(endpoint="get_coordinates_from").observe(time.time() - start_time)
    return [record.to_json_dict() for record in records]
