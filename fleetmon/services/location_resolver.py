"""Location Resolver - maps a network attachment identifier to a named location.

Location is advisory metadata: resolution never raises. Every result carries an
outcome tag so that "nothing configured for this identifier" and "the identifier
could not be parsed" stay distinguishable even though both yield the sentinel.
"""

import enum
import ipaddress
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fleetmon.config.loader import AccessPointTableLoader, normalize_bssid
from fleetmon.models.device import UNKNOWN_LOCATION
from fleetmon.models.ip_mapping import IpMapping

logger = logging.getLogger(__name__)

UNKNOWN_IP_LOCATION = "Localização Desconhecida"
IP_MAPPING_ERROR = "Erro ao Mapear IP"


class ResolutionOutcome(str, enum.Enum):
    RESOLVED = "resolved"
    MISSING = "missing"
    UNMAPPED = "unmapped"
    MALFORMED = "malformed"
    ERROR = "error"

    @property
    def degraded(self) -> bool:
        return self is not ResolutionOutcome.RESOLVED


@dataclass(frozen=True)
class LocationResolution:
    sector: str
    floor: str
    outcome: ResolutionOutcome


@dataclass(frozen=True)
class IpResolution:
    location: str
    outcome: ResolutionOutcome


class AccessPointResolver:
    """Resolves radio/AP identifiers against the administrator table."""

    def __init__(self, table: Optional[Dict[str, Dict[str, str]]] = None):
        self.table = dict(table or {})

    @classmethod
    def from_loader(cls, loader: AccessPointTableLoader) -> "AccessPointResolver":
        return cls(loader.load())

    def reload(self, loader: AccessPointTableLoader) -> None:
        self.table = loader.load()
        logger.info(f"Reloaded {len(self.table)} access point mappings")

    def resolve(self, identifier: Optional[str]) -> LocationResolution:
        """Return the sector/floor for an AP identifier, or the sentinel."""
        if not identifier or identifier.strip().upper() == "N/A":
            return LocationResolution(UNKNOWN_LOCATION, UNKNOWN_LOCATION, ResolutionOutcome.MISSING)

        key = normalize_bssid(identifier)
        if key is None:
            logger.warning(f"Malformed access point identifier: {identifier!r}")
            return LocationResolution(UNKNOWN_LOCATION, UNKNOWN_LOCATION, ResolutionOutcome.MALFORMED)

        location = self.table.get(key)
        if location is None:
            logger.debug(f"No access point mapping for {key}")
            return LocationResolution(UNKNOWN_LOCATION, UNKNOWN_LOCATION, ResolutionOutcome.UNMAPPED)

        return LocationResolution(
            location.get("sector") or UNKNOWN_LOCATION,
            location.get("floor") or UNKNOWN_LOCATION,
            ResolutionOutcome.RESOLVED,
        )


def normalize_ip(raw: Optional[str]) -> Optional[str]:
    """Clean a client address as seen by the transport.

    Takes the first hop of a comma-separated proxy chain, drops brackets and
    unwraps IPv4-mapped IPv6 addresses. Returns None for empty input.
    """
    if not raw:
        return None
    candidate = raw.split(",")[0].strip().strip("[]")
    if candidate.lower().startswith("::ffff:") and "." in candidate:
        candidate = candidate[7:]
    return candidate or None


def ip_to_int(raw: Optional[str]) -> Optional[int]:
    """Unsigned integer value of an IPv4 or IPv6 address, None if malformed."""
    address = normalize_ip(raw)
    if address is None:
        return None
    try:
        parsed = ipaddress.ip_address(address)
    except ValueError:
        return None
    if parsed.version == 6 and parsed.ipv4_mapped is not None:
        parsed = parsed.ipv4_mapped
    return int(parsed)


class IpRangeResolver:
    """Resolves client addresses against the configured IP ranges.

    Ranges are scanned in primary-key order and the first inclusive match
    wins. Overlapping ranges are not detected.
    """

    def __init__(self, db_session: Session):
        self.db_session = db_session

    def _ranges(self) -> List[Tuple[str, int, int]]:
        ranges = []
        for mapping in self.db_session.query(IpMapping).order_by(IpMapping.id).all():
            start, end = ip_to_int(mapping.ip_start), ip_to_int(mapping.ip_end)
            if start is None or end is None:
                logger.warning(f"Skipping IP mapping {mapping.location!r} with malformed bounds")
                continue
            ranges.append((mapping.location, start, end))
        return ranges

    @staticmethod
    def match(address: int, ranges: Iterable[Tuple[str, int, int]]) -> Optional[str]:
        for location, start, end in ranges:
            if start <= address <= end:
                return location
        return None

    def resolve(self, raw_address: Optional[str]) -> IpResolution:
        if not normalize_ip(raw_address):
            return IpResolution(UNKNOWN_IP_LOCATION, ResolutionOutcome.MISSING)

        address = ip_to_int(raw_address)
        if address is None:
            logger.warning(f"Malformed client address: {raw_address!r}")
            return IpResolution(UNKNOWN_IP_LOCATION, ResolutionOutcome.MALFORMED)

        try:
            location = self.match(address, self._ranges())
        except SQLAlchemyError as e:
            logger.error(f"Failed to load IP mappings: {e}")
            return IpResolution(IP_MAPPING_ERROR, ResolutionOutcome.ERROR)

        if location is None:
            logger.debug(f"No IP mapping contains {raw_address}")
            return IpResolution(UNKNOWN_IP_LOCATION, ResolutionOutcome.UNMAPPED)
        return IpResolution(location, ResolutionOutcome.RESOLVED)
