"""Totem Registry - kiosk check-ins located by client IP range."""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from fleetmon.core.payloads import TotemPayload
from fleetmon.errors import DuplicateIdentity
from fleetmon.models.base import utcnow
from fleetmon.models.device import NOT_AVAILABLE
from fleetmon.models.totem import Totem
from fleetmon.services.location_resolver import IpRangeResolver, normalize_ip

logger = logging.getLogger(__name__)

TOTEM_ONLINE = "Online"
TOTEM_OFFLINE = "Offline"
TOTEM_ERROR = "Com Erro"


class TotemRegistry:
    """Upserts kiosk reports and derives their display status."""

    def __init__(self, db_session: Session, online_window: timedelta = timedelta(minutes=2)):
        self.db_session = db_session
        self.online_window = online_window
        self.resolver = IpRangeResolver(db_session)

    def create_or_update(self, payload: TotemPayload, client_ip: Optional[str]) -> Totem:
        """Store a kiosk report, locating it from the client address.

        Args:
            payload: Validated kiosk report
            client_ip: Address as seen by the transport (may be a proxy chain)

        Returns:
            Stored Totem
        """
        ip = normalize_ip(client_ip)
        resolution = self.resolver.resolve(ip)

        totem = self.db_session.query(Totem).filter(
            Totem.serial_number == payload.serial_number
        ).first()
        if totem is None:
            totem = Totem(serial_number=payload.serial_number)
            self.db_session.add(totem)

        for field, value in payload.model_dump(exclude={"serial_number"}).items():
            setattr(totem, field, value)
        totem.ip = ip or NOT_AVAILABLE
        totem.location = resolution.location
        totem.last_seen = utcnow()

        try:
            self.db_session.commit()
        except IntegrityError as e:
            self.db_session.rollback()
            raise DuplicateIdentity("serial_number", payload.serial_number) from e
        except SQLAlchemyError as e:
            self.db_session.rollback()
            logger.error(f"Failed to save totem {payload.serial_number}: {e}")
            raise

        logger.info(f"Totem {totem.serial_number} saved at {totem.location} ({resolution.outcome.value})")
        return totem

    def status_of(self, totem: Totem, now: Optional[datetime] = None) -> str:
        now = now or utcnow()
        if totem.last_seen is None or now - totem.last_seen > self.online_window:
            return TOTEM_OFFLINE
        if totem.printer_status and "error" in totem.printer_status.lower():
            return TOTEM_ERROR
        return TOTEM_ONLINE

    def list_totems(self, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """All kiosks, most recently seen first, with computed status."""
        now = now or utcnow()
        totems = self.db_session.query(Totem).order_by(Totem.last_seen.desc()).all()
        result = []
        for totem in totems:
            data = totem.to_dict()
            data["status"] = self.status_of(totem, now)
            result.append(data)
        return result
