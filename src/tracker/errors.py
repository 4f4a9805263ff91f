"""
Error types raised while decoding, filtering and persisting location batches.

Per-ping problems (a bad timestamp) are recoverable: the ping is skipped and
the batch continues. Storage problems are systemic and stop the batch.
"""


class TrackerError(Exception):
    """Base class for location tracker errors."""


class MalformedBatchError(TrackerError):
    """The inbound document does not decode into a location payload."""


class TimestampParseError(TrackerError):
    """A ping's timestamp is not a valid RFC 3339 date-time."""

    def __init__(self, value, reason: str = "not an RFC 3339 date-time"):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid timestamp {value!r}: {reason}")


class PersistenceError(TrackerError):
    """The location store is unavailable or rejected an operation."""


class PersistenceReadError(PersistenceError):
    """Reading from the location store failed."""


class PersistenceWriteError(PersistenceError):
    """The location store rejected a write."""


class IngestLockLostError(TrackerError):
    """The ingestion lock expired or was taken over while a batch was running."""
