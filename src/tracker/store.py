"""
Location history store backed by SQLAlchemy.

LocationStore is the last-point provider and persistence sink used during
ingestion, and the uncached source for coordinate range queries.
"""
import logging
from datetime import datetime
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from src.tracker.database import LocationHistory, get_db_session
from src.tracker.errors import PersistenceReadError, PersistenceWriteError
from src.tracker.models import LocationRecord
from src.tracker.time_utils import to_utc

logger = logging.getLogger(__name__)


def record_to_row(record: LocationRecord) -> LocationHistory:
    return LocationHistory(
        # Stored as UTC; some backends drop the offset
        timestamp=to_utc(record.timestamp),
        device_id=record.device_id,
        latitude=record.latitude,
        longitude=record.longitude,
        altitude=record.altitude,
        speed=record.speed,
        horizontal_accuracy=record.horizontal_accuracy,
        vertical_accuracy=record.vertical_accuracy,
        motion=record.motion,
        battery_charging=record.battery_charging,
        battery_level=record.battery_level,
    )


def row_to_record(row: LocationHistory) -> LocationRecord:
    return LocationRecord(
        timestamp=to_utc(row.timestamp),
        device_id=row.device_id,
        latitude=row.latitude,
        longitude=row.longitude,
        altitude=row.altitude,
        speed=row.speed,
        horizontal_accuracy=row.horizontal_accuracy,
        vertical_accuracy=row.vertical_accuracy,
        motion=row.motion,
        battery_charging=row.battery_charging,
        battery_level=row.battery_level,
    )


class LocationStore:
    """
    Reads and writes location_history rows.

    Args:
        session_factory: Callable returning a new Session, or None when the
            database is not configured. Defaults to get_db_session.
    """

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_db_session

    def _open_session(self, error_cls):
        session = self._session_factory()
        if session is None:
            raise error_cls("Database is not configured")
        return session

    def get_last_point(self) -> LocationRecord:
        """
        Most recently recorded point, or LocationRecord.zero() if there is none.

        Raises:
            PersistenceReadError: If the database cannot be queried
        """
        session = self._open_session(PersistenceReadError)
        try:
            row = session.execute(
                select(LocationHistory)
                .order_by(LocationHistory.timestamp.desc())
                .limit(1)
            ).scalars().first()
        except SQLAlchemyError as exc:
            raise PersistenceReadError(f"Failed to read last point: {exc}") from exc
        finally:
            session.close()

        if row is None:
            return LocationRecord.zero()
        return row_to_record(row)

    def write(self, record: LocationRecord) -> None:
        """
        Insert or update the row for (timestamp, device_id).

        Raises:
            PersistenceWriteError: If the database rejects the write
        """
        session = self._open_session(PersistenceWriteError)
        try:
            session.merge(record_to_row(record))
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Failed to write point at %s: %s", record.timestamp.isoformat(), exc)
            raise PersistenceWriteError(f"Failed to write point: {exc}") from exc
        finally:
            session.close()

    def coordinates_from(self, start: datetime) -> List[LocationRecord]:
        """
        All recorded points with timestamp >= start, oldest first.

        Raises:
            PersistenceReadError: If the database cannot be queried
        """
        session = self._open_session(PersistenceReadError)
        try:
            rows = session.execute(
                select(LocationHistory)
                .where(LocationHistory.timestamp >= to_utc(start))
                .order_by(LocationHistory.timestamp.asc())
            ).scalars().all()
            return [row_to_record(row) for row in rows]
        except SQLAlchemyError as exc:
            raise PersistenceReadError(f"Failed to read coordinates: {exc}") from exc
        finally:
            session.close()
