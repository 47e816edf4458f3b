"""SQLAlchemy model for fixed kiosks (totems)."""

from sqlalchemy import Column, Integer, String, DateTime, JSON

from fleetmon.models.base import Base, isoformat, utcnow
from fleetmon.models.device import NOT_AVAILABLE


class Totem(Base):
    """Kiosk or PC reporting through the monitoring agent."""

    __tablename__ = "totems"

    id = Column(Integer, primary_key=True, autoincrement=True)
    hostname = Column(String(255), nullable=False)
    serial_number = Column(String(128), unique=True, nullable=False)
    model = Column(String(128), default=NOT_AVAILABLE)
    service_tag = Column(String(128), default=NOT_AVAILABLE)
    ip = Column(String(64), default=NOT_AVAILABLE)
    location = Column(String(255), nullable=True)
    installed_programs = Column(JSON, default=list)
    printer_status = Column(String(255), default=NOT_AVAILABLE)
    biometric_reader_status = Column(String(255), default=NOT_AVAILABLE)
    zebra_status = Column(String(255), default=NOT_AVAILABLE)
    bematech_status = Column(String(255), default=NOT_AVAILABLE)
    totem_type = Column(String(64), default=NOT_AVAILABLE)
    ram = Column(String(64), default=NOT_AVAILABLE)
    hd_type = Column(String(64), default=NOT_AVAILABLE)
    hd_storage = Column(String(64), default=NOT_AVAILABLE)
    last_seen = Column(DateTime, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "hostname": self.hostname,
            "serial_number": self.serial_number,
            "model": self.model,
            "service_tag": self.service_tag,
            "ip": self.ip,
            "location": self.location,
            "installed_programs": self.installed_programs or [],
            "printer_status": self.printer_status,
            "biometric_reader_status": self.biometric_reader_status,
            "zebra_status": self.zebra_status,
            "bematech_status": self.bematech_status,
            "totem_type": self.totem_type,
            "ram": self.ram,
            "hd_type": self.hd_type,
            "hd_storage": self.hd_storage,
            "last_seen": isoformat(self.last_seen),
        }
