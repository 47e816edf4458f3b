"""Location History Log - append-only audit trail of attachment-point changes."""

from datetime import datetime
from typing import List, Optional
import logging

from sqlalchemy.orm import Session

from fleetmon.models.base import utcnow
from fleetmon.models.location_history import LocationHistoryEntry

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 20


class LocationHistoryLog:
    """Writes and reads location history entries. Entries are never updated."""

    def __init__(self, db_session: Session):
        """Initialize LocationHistoryLog with database session.

        Args:
            db_session: SQLAlchemy database session
        """
        self.db_session = db_session

    def record(
        self,
        serial_number: str,
        bssid: str,
        sector: str,
        floor: str,
        timestamp: Optional[datetime] = None
    ) -> LocationHistoryEntry:
        """Append an entry and flush it inside the caller's transaction.

        The caller commits. Flushing here puts the history row ahead of any
        device write issued afterwards in the same transaction.

        Args:
            serial_number: Device serial number
            bssid: New attachment identifier
            sector: Resolved sector
            floor: Resolved floor
            timestamp: Time of the transition (defaults to now)

        Returns:
            The pending LocationHistoryEntry
        """
        entry = LocationHistoryEntry(
            serial_number=serial_number,
            bssid=bssid,
            sector=sector,
            floor=floor,
            timestamp=timestamp or utcnow()
        )
        self.db_session.add(entry)
        self.db_session.flush()
        logger.info(f"New location detected for {serial_number}: {bssid} ({sector}/{floor})")
        return entry

    def recent(self, serial_number: str, limit: int = DEFAULT_HISTORY_LIMIT) -> List[LocationHistoryEntry]:
        """Most recent entries for a device, newest first.

        Args:
            serial_number: Device serial number
            limit: Maximum number of entries to return

        Returns:
            List of LocationHistoryEntry objects
        """
        return self.db_session.query(LocationHistoryEntry).filter(
            LocationHistoryEntry.serial_number == serial_number
        ).order_by(
            LocationHistoryEntry.timestamp.desc(),
            LocationHistoryEntry.id.desc()
        ).limit(max(limit, 0)).all()

    def count(self, serial_number: str) -> int:
        return self.db_session.query(LocationHistoryEntry).filter(
            LocationHistoryEntry.serial_number == serial_number
        ).count()
