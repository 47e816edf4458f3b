"""SQLAlchemy model for fleet devices."""

from sqlalchemy import Column, Integer, String, DateTime, JSON, Boolean, Index

from fleetmon.models.base import Base, isoformat

STATUS_UNKNOWN = "unknown"
STATUS_ONLINE = "online"
STATUS_OFFLINE = "offline"
STATUS_UNMONITORED = "unmonitored"

DEVICE_STATUSES = {STATUS_UNKNOWN, STATUS_ONLINE, STATUS_OFFLINE, STATUS_UNMONITORED}

UNKNOWN_LOCATION = "Desconhecido"
NOT_AVAILABLE = "N/A"


class Device(Base):
    """One row per physical unit, keyed by serial number."""

    __tablename__ = "devices"

    serial_number = Column(String(128), primary_key=True)
    device_id = Column(String(128), unique=True, nullable=True)
    device_name = Column(String(255), nullable=False, index=True)
    device_model = Column(String(128), default=NOT_AVAILABLE)
    imei = Column(String(64), default=NOT_AVAILABLE)
    secure_android_id = Column(String(128), default=NOT_AVAILABLE)
    battery = Column(Integer, nullable=True)

    # Network attachment
    network = Column(String(128), default=NOT_AVAILABLE)
    host = Column(String(255), default=NOT_AVAILABLE)
    ip_address = Column(String(64), default=NOT_AVAILABLE)
    mac_address_radio = Column(String(32), default=NOT_AVAILABLE)
    wifi_ipv6 = Column(String(64), default=NOT_AVAILABLE)
    wifi_gateway_ip = Column(String(64), default=NOT_AVAILABLE)
    wifi_broadcast = Column(String(64), default=NOT_AVAILABLE)
    wifi_submask = Column(String(64), default=NOT_AVAILABLE)

    # Derived placement
    sector = Column(String(128), default=UNKNOWN_LOCATION)
    floor = Column(String(32), default=UNKNOWN_LOCATION)
    unit = Column(String(128), default=NOT_AVAILABLE)

    # Lifecycle
    last_seen = Column(DateTime, index=True)
    last_sync = Column(DateTime, nullable=True)
    status = Column(String(32), nullable=False, default=STATUS_UNKNOWN, index=True)
    is_online = Column(Boolean, default=False)
    maintenance_status = Column(Boolean, nullable=False, default=False)
    maintenance_ticket = Column(String(128), nullable=True)
    maintenance_reason = Column(String(512), nullable=True)
    maintenance_history = Column(JSON, default=list)

    # Fleet metadata
    installed_apps = Column(JSON, default=list)
    security_policies = Column(JSON, default=dict)
    compliance_status = Column(String(32), default="unknown")
    provisioning_status = Column(String(32), default=NOT_AVAILABLE)
    provisioning_token = Column(String(255), default=NOT_AVAILABLE)
    enrollment_date = Column(String(64), default=NOT_AVAILABLE)
    owner_organization = Column(String(255), default=NOT_AVAILABLE)
    extensions = Column(JSON, default=dict)

    def to_dict(self) -> dict:
        """Convert device to dictionary representation."""
        return {
            "serial_number": self.serial_number,
            "device_id": self.device_id,
            "device_name": self.device_name,
            "device_model": self.device_model,
            "imei": self.imei,
            "secure_android_id": self.secure_android_id,
            "battery": self.battery,
            "network": self.network,
            "host": self.host,
            "ip_address": self.ip_address,
            "mac_address_radio": self.mac_address_radio,
            "wifi_ipv6": self.wifi_ipv6,
            "wifi_gateway_ip": self.wifi_gateway_ip,
            "wifi_broadcast": self.wifi_broadcast,
            "wifi_submask": self.wifi_submask,
            "sector": self.sector,
            "floor": self.floor,
            "unit": self.unit,
            "last_seen": isoformat(self.last_seen),
            "last_sync": isoformat(self.last_sync),
            "status": self.status,
            "is_online": bool(self.is_online),
            "maintenance_status": bool(self.maintenance_status),
            "maintenance_ticket": self.maintenance_ticket,
            "maintenance_reason": self.maintenance_reason,
            "maintenance_history": self.maintenance_history or [],
            "installed_apps": self.installed_apps or [],
            "security_policies": self.security_policies or {},
            "compliance_status": self.compliance_status,
            "provisioning_status": self.provisioning_status,
            "provisioning_token": self.provisioning_token,
            "enrollment_date": self.enrollment_date,
            "owner_organization": self.owner_organization,
            "extensions": self.extensions or {},
        }


# Sweep predicates filter on status, maintenance and staleness together
Index("idx_devices_status_last_seen", Device.status, Device.last_seen)
