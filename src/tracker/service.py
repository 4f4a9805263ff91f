"""
Collaborators used by the adaptive filter, bundled into an explicit context.

Passing a TrackerContext into each ingestion call (instead of reaching for
module-level clients) keeps the filter testable with fakes and lets the API
choose the lock that serializes concurrent batches.
"""
from contextlib import nullcontext
from dataclasses import dataclass, field
from datetime import datetime
from typing import ContextManager, List, Protocol

from src.tracker.filtering import BatchResult, filter_locations
from src.tracker.models import LocationPayload, LocationRecord


class LastPointProvider(Protocol):
    def get_last_point(self) -> LocationRecord:
        ...


class PersistenceSink(Protocol):
    def write(self, record: LocationRecord) -> None:
        ...


class Cache(Protocol):
    def invalidate(self) -> None:
        ...

    def coordinates_from(self, start: datetime) -> List[LocationRecord]:
        ...


@dataclass
class TrackerContext:
    """Everything one ingestion call needs besides the payload itself."""
    points: LastPointProvider
    sink: PersistenceSink
    cache: Cache
    # Held around read-reference/decide/write so batches cannot interleave
    lock: ContextManager = field(default_factory=nullcontext)

    def keep_alive(self) -> None:
        """
        Push back the lock's expiry, for locks that expire (see IngestLock).

        Raises:
            IngestLockLostError: If the lock was lost
        """
        renew = getattr(self.lock, "renew", None)
        if renew is not None:
            renew()


def ingest_batch(payload: LocationPayload, context: TrackerContext) -> BatchResult:
    """
    Filter a decoded payload against the last recorded point and persist the
    accepted pings.

    Raises:
        PersistenceReadError: If the last point cannot be read
    """
    with context.lock:
        reference = context.points.get_last_point()
        return filter_locations(payload.locations, reference, context)
