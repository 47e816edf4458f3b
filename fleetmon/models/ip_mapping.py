"""SQLAlchemy model for named IP address ranges."""

from sqlalchemy import Column, Integer, String

from fleetmon.models.base import Base


class IpMapping(Base):
    """Location bound to an inclusive address range."""

    __tablename__ = "ip_mappings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    location = Column(String(255), unique=True, nullable=False)
    ip_start = Column(String(64), nullable=False)
    ip_end = Column(String(64), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location": self.location,
            "ip_start": self.ip_start,
            "ip_end": self.ip_end,
        }
