"""SQLAlchemy model for the attachment-point audit trail."""

from sqlalchemy import Column, Integer, String, DateTime, Index

from fleetmon.models.base import Base, isoformat, utcnow


class LocationHistoryEntry(Base):
    """Immutable record of a device moving to a new attachment point."""

    __tablename__ = "location_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    serial_number = Column(String(128), nullable=False)
    bssid = Column(String(32), nullable=False)
    sector = Column(String(128))
    floor = Column(String(32))
    timestamp = Column(DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "serial_number": self.serial_number,
            "bssid": self.bssid,
            "sector": self.sector,
            "floor": self.floor,
            "timestamp": isoformat(self.timestamp),
        }


Index("idx_location_history_serial_ts", LocationHistoryEntry.serial_number, LocationHistoryEntry.timestamp)
