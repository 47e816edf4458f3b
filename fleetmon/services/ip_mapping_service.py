"""IP mapping administration - named address ranges used by the totem resolver."""

from typing import List
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from fleetmon.errors import DuplicateIdentity, NotFound, ValidationError
from fleetmon.models.ip_mapping import IpMapping
from fleetmon.services.location_resolver import ip_to_int

logger = logging.getLogger(__name__)


class IpMappingService:
    """Create, list and delete IP range mappings. Location is the unique key."""

    def __init__(self, db_session: Session):
        self.db_session = db_session

    def list_mappings(self) -> List[IpMapping]:
        return self.db_session.query(IpMapping).order_by(IpMapping.location).all()

    def create_mapping(self, location: str, ip_start: str, ip_end: str) -> IpMapping:
        """Create a named range.

        Args:
            location: Location name (unique)
            ip_start: First address of the range
            ip_end: Last address of the range

        Returns:
            Created IpMapping

        Raises:
            ValidationError: If a field is missing or an address is malformed
            DuplicateIdentity: If the location name is already mapped
        """
        location = (location or "").strip()
        ip_start = (ip_start or "").strip()
        ip_end = (ip_end or "").strip()

        errors = [
            {"field": name, "message": f"{name} is required"}
            for name, value in (("location", location), ("ip_start", ip_start), ("ip_end", ip_end))
            if not value
        ]
        errors.extend(
            {"field": name, "message": f"{value} is not a valid IP address"}
            for name, value in (("ip_start", ip_start), ("ip_end", ip_end))
            if value and ip_to_int(value) is None
        )
        if errors:
            raise ValidationError(errors)

        mapping = IpMapping(location=location, ip_start=ip_start, ip_end=ip_end)
        self.db_session.add(mapping)
        try:
            self.db_session.commit()
        except IntegrityError as e:
            self.db_session.rollback()
            logger.warning(f"IP mapping already exists for location {location!r}")
            raise DuplicateIdentity("location", location) from e
        except SQLAlchemyError as e:
            self.db_session.rollback()
            logger.error(f"Failed to create IP mapping: {e}")
            raise

        logger.info(f"Created IP mapping {location}: {ip_start} - {ip_end}")
        return mapping

    def delete_mapping(self, mapping_id: int) -> None:
        """Delete a mapping by id.

        Raises:
            NotFound: If the mapping does not exist
        """
        mapping = self.db_session.get(IpMapping, mapping_id)
        if mapping is None:
            raise NotFound("ip mapping", mapping_id)

        self.db_session.delete(mapping)
        try:
            self.db_session.commit()
        except SQLAlchemyError as e:
            self.db_session.rollback()
            logger.error(f"Failed to delete IP mapping {mapping_id}: {e}")
            raise
        logger.info(f"Deleted IP mapping {mapping.location}")
