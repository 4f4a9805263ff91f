import logging
import os

import redis
from dotenv import load_dotenv
from redis.exceptions import LockError, LockNotOwnedError

from src.tracker.errors import IngestLockLostError

load_dotenv()

logger = logging.getLogger(__name__)

REDIS_HOST = os.getenv("REDIS_HOST", "127.0.0.1")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))

# Serializes ingestion across API workers
INGEST_LOCK_NAME = "location:ingest-lock"
INGEST_LOCK_TIMEOUT_SECONDS = int(os.getenv("INGEST_LOCK_TIMEOUT_SECONDS", "30"))

def get_redis_client() -> redis.Redis:
    return redis.Redis(
        host=REDIS_HOST,
        port=REDIS_PORT,
        decode_responses=True,
    )


class IngestLock:
    """
    Distributed lock held while a batch is filtered and written.

    The lock auto-expires INGEST_LOCK_TIMEOUT_SECONDS after it was last
    renewed, so a worker that dies holding it cannot block ingestion forever.
    The filter calls renew() after every write; a long batch keeps the lock
    as long as each write finishes within the timeout.

    Raises on enter:
        LockError: If the lock cannot be acquired within the timeout
    """

    def __init__(self, lock):
        self._lock = lock

    def __enter__(self):
        if not self._lock.acquire():
            raise LockError("Unable to acquire ingestion lock within the time specified")
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            self._lock.release()
        except LockNotOwnedError as release_exc:
            # Everything in the batch is already written; report it anyway
            logger.warning("Ingestion lock expired before release: %s", release_exc)
        return False

    def renew(self) -> None:
        """
        Reset the lock's expiry to the full timeout.

        Raises:
            IngestLockLostError: If the lock is no longer held by us
        """
        try:
            self._lock.reacquire()
        except LockError as exc:
            raise IngestLockLostError(f"Ingestion lock lost mid-batch: {exc}") from exc


def get_ingest_lock(r: redis.Redis) -> IngestLock:
    return IngestLock(r.lock(
        INGEST_LOCK_NAME,
        timeout=INGEST_LOCK_TIMEOUT_SECONDS,
        blocking_timeout=INGEST_LOCK_TIMEOUT_SECONDS,
    ))
