"""
Adaptive downsampling of location pings.

Phones report location far more often than we need to keep. Each ping is
compared with the last accepted point (the reference point) and is only
recorded if enough time has passed since the previous accepted ping. How much
time is "enough" depends on what the ping looks like:

1. Baseline: 10 seconds
2. Stationary or slow (<= 1 m/s): 1 minute
3. Poor horizontal accuracy (> 25 m): 5 minutes
4. Within 25 m of the reference point: 10 minutes

Rules are checked in that order and the last rule that matches sets the gap.
A ping that is both inaccurate and close to the reference point therefore
waits 10 minutes, not 5.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence, Tuple

from src.tracker import metrics
from src.tracker.errors import IngestLockLostError, PersistenceWriteError, TimestampParseError
from src.tracker.geo import distance_meters
from src.tracker.models import LocationEntry, LocationRecord
from src.tracker.records import project_record
from src.tracker.time_utils import parse_timestamp

if TYPE_CHECKING:
    from src.tracker.service import TrackerContext

logger = logging.getLogger(__name__)

BASELINE_GAP = timedelta(seconds=10)
SLOW_SPEED_MPS = 1.0
POOR_ACCURACY_METERS = 25.0
NEARBY_METERS = 25.0

# Skip reasons reported back to the client
SKIP_INVALID_TIMESTAMP = "invalid_timestamp"
SKIP_NOT_AFTER_REFERENCE = "not_after_reference"
SKIP_WITHIN_GAP = "within_gap"


@dataclass(frozen=True)
class GapRule:
    """A minimum gap that applies when its predicate matches."""
    name: str
    gap: timedelta
    applies: Callable[[LocationEntry, LocationRecord], bool]


def _is_stationary_or_slow(entry: LocationEntry, reference: LocationRecord) -> bool:
    props = entry.properties
    return props.motion == ["stationary"] or props.speed <= SLOW_SPEED_MPS


def _has_poor_accuracy(entry: LocationEntry, reference: LocationRecord) -> bool:
    return entry.properties.horizontal_accuracy > POOR_ACCURACY_METERS


def _is_near_reference(entry: LocationEntry, reference: LocationRecord) -> bool:
    meters_apart = distance_meters(
        reference.latitude,
        reference.longitude,
        entry.latitude,
        entry.longitude,
    )
    return meters_apart < NEARBY_METERS


# Order matters: last match wins
GAP_RULES: Tuple[GapRule, ...] = (
    GapRule("stationary_or_slow", timedelta(minutes=1), _is_stationary_or_slow),
    GapRule("poor_accuracy", timedelta(minutes=5), _has_poor_accuracy),
    GapRule("near_reference", timedelta(minutes=10), _is_near_reference),
)


def required_gap(
    entry: LocationEntry,
    reference: LocationRecord,
    rules: Sequence[GapRule] = GAP_RULES
) -> Tuple[timedelta, str]:
    """
    Minimum time that must pass before this ping can be accepted.

    Returns:
        Tuple of (gap, name of the rule that set it, or "baseline")
    """
    gap, rule_name = BASELINE_GAP, "baseline"
    for rule in rules:
        if rule.applies(entry, reference):
            gap, rule_name = rule.gap, rule.name
    return gap, rule_name


@dataclass
class SkippedPing:
    """A ping that was not recorded, and why."""
    index: int
    timestamp: object
    reason: str
    detail: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "index": self.index,
            "timestamp": self.timestamp,
            "reason": self.reason,
            "detail": self.detail,
        }


@dataclass
class BatchResult:
    """Outcome of filtering one batch."""
    accepted: List[LocationRecord] = field(default_factory=list)
    skipped: List[SkippedPing] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def accepted_count(self) -> int:
        return len(self.accepted)

    @property
    def ok(self) -> bool:
        return self.error is None

    def skip(self, index: int, timestamp, reason: str, detail: Optional[str] = None) -> None:
        self.skipped.append(SkippedPing(index, timestamp, reason, detail))
        metrics.pings_processed_total.labels(outcome=reason).inc()


def filter_locations(
    pings: Sequence[LocationEntry],
    reference: LocationRecord,
    context: "TrackerContext"
) -> BatchResult:
    """
    Decide which pings to record and write them.

    Pings are evaluated strictly in the given order. Each accepted ping is
    written to context.sink immediately and becomes the new reference point.
    The coordinate cache is invalidated once when the batch is done.

    Args:
        pings: Raw pings in arrival order
        reference: Last recorded point (or LocationRecord.zero())
        context: TrackerContext holding the sink, cache and lock

    Returns:
        BatchResult with accepted records, skipped pings and any terminal error
    """
    result = BatchResult()
    working_time: datetime = reference.timestamp

    for index, entry in enumerate(pings):
        raw_timestamp = entry.properties.timestamp
        try:
            timestamp = parse_timestamp(raw_timestamp)
        except TimestampParseError as exc:
            logger.warning("Skipping ping %d: %s", index, exc)
            result.skip(index, raw_timestamp, SKIP_INVALID_TIMESTAMP, exc.reason)
            continue

        # Duplicate or out-of-order sample
        if timestamp <= reference.timestamp:
            result.skip(index, raw_timestamp, SKIP_NOT_AFTER_REFERENCE)
            continue

        gap, rule_name = required_gap(entry, reference)
        elapsed = timestamp - working_time

        if elapsed <= gap:
            result.skip(index, raw_timestamp, SKIP_WITHIN_GAP, rule_name)
            continue

        record = project_record(entry, timestamp)
        try:
            context.sink.write(record)
        except PersistenceWriteError as exc:
            logger.error(
                "Write failed at ping %d after %d accepted: %s",
                index, result.accepted_count, exc
            )
            result.error = exc
            break

        result.accepted.append(record)
        metrics.pings_processed_total.labels(outcome="accepted").inc()
        working_time = timestamp
        reference = record

        try:
            context.keep_alive()
        except IngestLockLostError as exc:
            # Another worker may now hold the lock; stop before interleaving writes
            logger.error("Stopping batch after ping %d: %s", index, exc)
            result.error = exc
            break

    context.cache.invalidate()
    logger.info("Added %d new entries to location history", result.accepted_count)

    return result
