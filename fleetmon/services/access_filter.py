"""Access Filter - sector-prefix visibility for non-administrative callers."""

import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import or_

from fleetmon.errors import Forbidden
from fleetmon.models.device import Device

logger = logging.getLogger(__name__)

ROLE_ADMIN = "admin"
ROLE_USER = "user"


@dataclass(frozen=True)
class Caller:
    """Identity handed over by the authentication layer."""

    username: str
    role: str = ROLE_USER
    sector: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def parse_prefixes(sector: Optional[str]) -> List[str]:
    """Split a comma-separated prefix list, lower-cased, blanks removed."""
    if not sector:
        return []
    return [p.strip().lower() for p in sector.split(",") if p.strip()]


def _require_prefixes(caller: Caller) -> List[str]:
    prefixes = parse_prefixes(caller.sector)
    if not prefixes:
        logger.warning(f"User '{caller.username}' has no sector prefixes configured")
        raise Forbidden("User has no sector prefixes configured. Contact the administrator.")
    return prefixes


def visible(device: Device, caller: Caller) -> bool:
    """True if the caller may see or act on the device."""
    if caller.is_admin:
        return True
    prefixes = parse_prefixes(caller.sector)
    name = (device.device_name or "").lower()
    return any(name.startswith(prefix) for prefix in prefixes)


def authorize(device: Device, caller: Optional[Caller]) -> None:
    """Post-lookup check for single-device reads and mutations.

    A None caller is the device channel itself and is not filtered.

    Raises:
        Forbidden: If the caller has no prefixes or none matches the device
    """
    if caller is None or caller.is_admin:
        return
    _require_prefixes(caller)
    if not visible(device, caller):
        logger.warning(
            f"User '{caller.username}' denied access to device outside their prefixes: "
            f"{device.serial_number}"
        )
        raise Forbidden("Access denied: device is outside your sector prefixes.")


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def prefix_clause(caller: Caller):
    """SQL pre-filter for listings; None means no restriction.

    Raises:
        Forbidden: If a non-administrative caller has no prefixes
    """
    if caller.is_admin:
        return None
    prefixes = _require_prefixes(caller)
    return or_(*[Device.device_name.ilike(f"{_escape_like(p)}%", escape="\\") for p in prefixes])


def search_clause(term: str):
    """Case-insensitive substring match over name, serial and equipment ID."""
    pattern = f"%{_escape_like(term)}%"
    return or_(
        Device.device_name.ilike(pattern, escape="\\"),
        Device.serial_number.ilike(pattern, escape="\\"),
        Device.device_id.ilike(pattern, escape="\\"),
    )
