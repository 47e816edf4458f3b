"""Device Registry - idempotent check-in upserts, placement and maintenance state."""

from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from fleetmon.config.loader import normalize_bssid
from fleetmon.core.payloads import CheckInPayload
from fleetmon.errors import DuplicateIdentity, NotFound
from fleetmon.models.base import utcnow
from fleetmon.models.device import (
    Device,
    NOT_AVAILABLE,
    STATUS_ONLINE,
    STATUS_UNKNOWN,
)
from fleetmon.models.location_history import LocationHistoryEntry
from fleetmon.services.access_filter import Caller, authorize, prefix_clause, search_clause
from fleetmon.services.location_history import DEFAULT_HISTORY_LIMIT, LocationHistoryLog
from fleetmon.services.location_resolver import AccessPointResolver, LocationResolution
from fleetmon.services.status_lifecycle import StatusThresholds

logger = logging.getLogger(__name__)

# Dialects with INSERT ... ON CONFLICT DO UPDATE
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

_STATUS_KEYS = ("status", "is_online")


class DeviceRegistry:
    """Central registry of fleet devices, keyed by serial number."""

    def __init__(
        self,
        db_session: Session,
        resolver: Optional[AccessPointResolver] = None,
        thresholds: Optional[StatusThresholds] = None
    ):
        """Initialize DeviceRegistry.

        Args:
            db_session: SQLAlchemy database session
            resolver: Access point resolver used to derive sector/floor
            thresholds: Inactivity thresholds for freshness checks
        """
        self.db_session = db_session
        self.resolver = resolver or AccessPointResolver()
        self.thresholds = thresholds or StatusThresholds()
        self.history = LocationHistoryLog(db_session)

    def upsert(self, payload: CheckInPayload) -> Device:
        """Apply a device check-in.

        Records a location history entry first when the attachment identifier
        changed, then writes the device with an atomic insert-or-update keyed by
        serial number. Maintenance fields are never touched here.

        Args:
            payload: Validated check-in payload

        Returns:
            The stored Device

        Raises:
            DuplicateIdentity: If another device already owns the serial number
                or equipment ID
        """
        location = self.resolver.resolve(payload.mac_address_radio)
        existing = self._find_existing(payload)
        serial_number = existing.serial_number if existing else (payload.serial_number or payload.device_id)

        now = utcnow()
        last_seen = payload.last_seen or now
        reported = payload.mac_address_radio
        bssid = normalize_bssid(reported) or reported or NOT_AVAILABLE
        fresh = now - last_seen <= self.thresholds.offline

        values = self._build_values(payload, serial_number, existing, location, last_seen, bssid)
        if fresh:
            values.update(status=STATUS_ONLINE, is_online=True)
        elif existing is None:
            values.update(status=STATUS_UNKNOWN, is_online=False)

        try:
            if self._attachment_changed(existing, reported, bssid):
                self.history.record(serial_number, bssid, location.sector, location.floor, last_seen)
            self._write(values, update_status=fresh)
            self.db_session.commit()
        except IntegrityError as e:
            self.db_session.rollback()
            field = self._conflicting_field(e)
            value = values.get(field)
            logger.error(f"Duplicate identity for {field}: {value}")
            raise DuplicateIdentity(field, value) from e
        except SQLAlchemyError as e:
            self.db_session.rollback()
            logger.error(f"Failed to save device {serial_number}: {e}")
            raise

        device = self.db_session.query(Device).filter(
            Device.serial_number == serial_number
        ).populate_existing().one()
        logger.info(f"Device {serial_number} saved ({location.outcome.value} location, status={device.status})")
        return device

    def _find_existing(self, payload: CheckInPayload) -> Optional[Device]:
        if payload.serial_number:
            return self.get_device(payload.serial_number)
        return self.db_session.query(Device).filter(
            Device.device_id == payload.device_id
        ).first()

    @staticmethod
    def _attachment_changed(existing: Optional[Device], reported: Optional[str], bssid: str) -> bool:
        # A new device's first reported attachment point opens its history
        if existing is None:
            return bool(reported)
        return existing.mac_address_radio != bssid

    @staticmethod
    def _build_values(
        payload: CheckInPayload,
        serial_number: str,
        existing: Optional[Device],
        location: LocationResolution,
        last_seen: datetime,
        bssid: str
    ) -> Dict[str, Any]:
        """Full-replace field set for a check-in; absent fields take defaults."""
        return {
            "serial_number": serial_number,
            "device_id": payload.device_id or (existing.device_id if existing else None),
            "device_name": payload.device_name,
            "device_model": payload.device_model,
            "imei": payload.imei,
            "secure_android_id": payload.secure_android_id,
            "battery": payload.battery,
            "network": payload.network,
            "host": payload.host,
            "ip_address": payload.ip_address or NOT_AVAILABLE,
            "mac_address_radio": bssid,
            "wifi_ipv6": payload.wifi_ipv6,
            "wifi_gateway_ip": payload.wifi_gateway_ip or NOT_AVAILABLE,
            "wifi_broadcast": payload.wifi_broadcast or NOT_AVAILABLE,
            "wifi_submask": payload.wifi_submask,
            "sector": location.sector,
            "floor": location.floor,
            "unit": payload.unit,
            "last_seen": last_seen,
            "last_sync": payload.last_sync,
            "provisioning_status": payload.provisioning_status or NOT_AVAILABLE,
            "provisioning_token": payload.provisioning_token,
            "enrollment_date": payload.enrollment_date,
            "owner_organization": payload.owner_organization,
            "compliance_status": payload.compliance_status,
            "installed_apps": [app.model_dump() for app in payload.installed_apps],
            "security_policies": payload.security_policies.model_dump(exclude_none=True),
            "extensions": payload.extensions,
        }

    def _write(self, values: Dict[str, Any], update_status: bool) -> None:
        """Match-and-set on serial number; last writer wins, no duplicate rows."""
        update_keys = [
            key for key in values
            if key != "serial_number" and (update_status or key not in _STATUS_KEYS)
        ]

        dialect = self.db_session.get_bind().dialect.name
        insert = _UPSERT_INSERTS.get(dialect)
        if insert is None:
            logger.debug(f"Dialect {dialect} has no native upsert, using session merge")
            device = Device(**{key: values[key] for key in ["serial_number", *update_keys]})
            self.db_session.merge(device)
            self.db_session.flush()
            return

        stmt = insert(Device).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Device.serial_number],
            set_={key: stmt.excluded[key] for key in update_keys}
        )
        self.db_session.execute(stmt)

    @staticmethod
    def _conflicting_field(error: IntegrityError) -> str:
        message = str(error.orig).lower()
        return "device_id" if "device_id" in message else "serial_number"

    def get_device(self, serial_number: str) -> Optional[Device]:
        """Get a device by its serial number (exact, case-sensitive).

        Args:
            serial_number: Device serial number

        Returns:
            Device object or None if not found
        """
        return self.db_session.query(Device).filter(
            Device.serial_number == serial_number
        ).first()

    def require_device(self, serial_number: str, caller: Optional[Caller] = None) -> Device:
        """Get a device the caller is allowed to act on.

        Raises:
            NotFound: If no device has this serial number
            Forbidden: If the caller's prefixes exclude the device
        """
        device = self.get_device(serial_number)
        if device is None:
            logger.warning(f"Device not found: {serial_number}")
            raise NotFound("device", serial_number)
        authorize(device, caller)
        return device

    def list_devices(self, caller: Caller, search: Optional[str] = None) -> List[Device]:
        """List devices visible to the caller, most recently seen first.

        Args:
            caller: Requesting user
            search: Case-insensitive substring over name, serial and equipment ID

        Returns:
            List of Device objects
        """
        query = self.db_session.query(Device)

        visibility = prefix_clause(caller)
        if visibility is not None:
            query = query.filter(visibility)

        if search and search.strip():
            query = query.filter(search_clause(search.strip()))

        devices = query.order_by(Device.last_seen.desc()).all()
        logger.info(f"Devices listed for {caller.username}: {len(devices)}")
        return devices

    def is_fresh(self, device: Device, now: Optional[datetime] = None) -> bool:
        """Online flag from the listing window, independent of the stored status."""
        if device.last_seen is None:
            return False
        return (now or utcnow()) - device.last_seen < self.thresholds.online_window

    def describe(self, device: Device, now: Optional[datetime] = None) -> Dict[str, Any]:
        data = device.to_dict()
        data["online"] = self.is_fresh(device, now)
        return data

    def delete_device(self, serial_number: str, caller: Caller) -> None:
        """Delete a device. Its location history is kept.

        Raises:
            NotFound: If no device has this serial number
            Forbidden: If the caller's prefixes exclude the device
        """
        device = self.require_device(serial_number, caller)
        self.db_session.delete(device)
        try:
            self.db_session.commit()
        except SQLAlchemyError as e:
            self.db_session.rollback()
            logger.error(f"Failed to delete device {serial_number}: {e}")
            raise
        logger.info(f"Device deleted: {serial_number}")

    def location_history(
        self,
        serial_number: str,
        caller: Caller,
        limit: int = DEFAULT_HISTORY_LIMIT
    ) -> List[LocationHistoryEntry]:
        """Most recent location changes for a device the caller may see."""
        self.require_device(serial_number, caller)
        history = self.history.recent(serial_number, limit)
        logger.info(f"Location history requested for {serial_number}: {len(history)} entries")
        return history

    def set_maintenance(
        self,
        device: Device,
        status: bool,
        ticket: Optional[str] = None,
        reason: Optional[str] = None,
        changed_by: Optional[str] = None
    ) -> Device:
        """Toggle maintenance mode and append to the maintenance history.

        Args:
            device: Target device
            status: New maintenance flag
            ticket: Ticket reference
            reason: Free-text reason
            changed_by: Username of the operator

        Returns:
            Updated Device object
        """
        device.maintenance_status = status
        device.maintenance_ticket = ticket or None
        device.maintenance_reason = reason or None
        device.maintenance_history = list(device.maintenance_history or []) + [{
            "timestamp": utcnow().isoformat(),
            "status": status,
            "ticket": ticket or None,
            "reason": reason or None,
            "changed_by": changed_by,
        }]

        try:
            self.db_session.commit()
        except SQLAlchemyError as e:
            self.db_session.rollback()
            logger.error(f"Failed to update maintenance for {device.serial_number}: {e}")
            raise

        logger.info(f"Maintenance set for {device.serial_number}: status={status}")
        return device
