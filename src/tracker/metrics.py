"""
Prometheus metrics for monitoring ingestion and query behavior.
"""
from prometheus_client import Counter, Histogram

# Request metrics
location_batches_total = Counter(
    'location_batches_total',
    'Total number of location batches received',
    ['status']
)

# Filter outcomes, one per evaluated ping
pings_processed_total = Counter(
    'pings_processed_total',
    'Pings evaluated by the adaptive filter',
    ['outcome']
)

# Latency metrics
request_duration_seconds = Histogram(
    'request_duration_seconds',
    'Request latency in seconds',
    ['endpoint']
)

# Coordinate cache metrics
cache_requests_total = Counter(
    'cache_requests_total',
    'Coordinate cache lookups',
    ['result']
)

# Redis metrics
redis_operations_total = Counter(
    'redis_operations_total',
    'Total Redis operations',
    ['operation', 'status']
)
