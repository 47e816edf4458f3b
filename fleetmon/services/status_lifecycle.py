"""Status Lifecycle Engine - demotes idle devices through offline and unmonitored."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
import logging

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fleetmon.models.base import utcnow
from fleetmon.models.device import (
    Device,
    STATUS_OFFLINE,
    STATUS_ONLINE,
    STATUS_UNKNOWN,
    STATUS_UNMONITORED,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusThresholds:
    offline: timedelta = timedelta(minutes=60)
    unmonitored: timedelta = timedelta(days=5)
    online_window: timedelta = timedelta(minutes=5)

    @classmethod
    def from_settings(cls, settings) -> "StatusThresholds":
        return cls(
            offline=settings.offline_threshold,
            unmonitored=settings.unmonitored_threshold,
            online_window=settings.online_window,
        )


@dataclass(frozen=True)
class SweepReport:
    offline: int = 0
    unmonitored: int = 0

    @property
    def total(self) -> int:
        return self.offline + self.unmonitored


def evaluate_status(
    last_seen: Optional[datetime],
    last_sync: Optional[datetime],
    now: datetime,
    thresholds: StatusThresholds
) -> str:
    """Status a device should have at ``now``, ignoring its current status."""
    if last_seen is not None and now - last_seen <= thresholds.offline:
        return STATUS_ONLINE

    unmonitored_cutoff = now - thresholds.unmonitored
    if (
        last_seen is None
        or last_seen < unmonitored_cutoff
        or (last_sync is not None and last_sync < unmonitored_cutoff)
    ):
        return STATUS_UNMONITORED
    return STATUS_OFFLINE


class StatusLifecycleEngine:
    """Periodic sweep over the device table. The sweep only ever demotes."""

    def __init__(self, db_session: Session, thresholds: Optional[StatusThresholds] = None):
        """Initialize StatusLifecycleEngine.

        Args:
            db_session: SQLAlchemy database session
            thresholds: Inactivity thresholds
        """
        self.db_session = db_session
        self.thresholds = thresholds or StatusThresholds()

    def sweep(self, now: Optional[datetime] = None) -> SweepReport:
        """Run one sweep.

        Both demotion steps commit together; on failure nothing is persisted
        and the error propagates to the scheduler.

        Args:
            now: Reference time (defaults to current UTC time)

        Returns:
            SweepReport with the number of rows changed per transition
        """
        now = now or utcnow()
        offline_cutoff = now - self.thresholds.offline
        unmonitored_cutoff = now - self.thresholds.unmonitored
        not_in_maintenance = Device.maintenance_status.is_not(True)

        try:
            offline_count = self.db_session.query(Device).filter(
                Device.status.in_((STATUS_ONLINE, STATUS_UNKNOWN)),
                not_in_maintenance,
                or_(Device.last_seen.is_(None), Device.last_seen < offline_cutoff)
            ).update(
                {Device.status: STATUS_OFFLINE, Device.is_online: False},
                synchronize_session=False
            )

            unmonitored_count = self.db_session.query(Device).filter(
                Device.status == STATUS_OFFLINE,
                not_in_maintenance,
                or_(
                    Device.last_seen.is_(None),
                    Device.last_seen < unmonitored_cutoff,
                    Device.last_sync < unmonitored_cutoff
                )
            ).update(
                {Device.status: STATUS_UNMONITORED, Device.is_online: False},
                synchronize_session=False
            )

            self.db_session.commit()
        except SQLAlchemyError as e:
            self.db_session.rollback()
            logger.error(f"Device status sweep failed: {e}")
            raise

        report = SweepReport(offline=offline_count, unmonitored=unmonitored_count)
        if report.offline:
            logger.info(f"{report.offline} devices were marked as '{STATUS_OFFLINE}'.")
        if report.unmonitored:
            logger.info(f"{report.unmonitored} devices were marked as '{STATUS_UNMONITORED}'.")
        if not report.total:
            logger.info("No device needed a status update in this sweep.")
        return report

    def recompute_all(self, now: Optional[datetime] = None) -> int:
        """Recompute every non-maintenance device's status from its timestamps.

        Unlike ``sweep`` this may promote as well as demote. Used to repair
        stored statuses after an outage or a threshold change.

        Returns:
            Number of devices whose status changed
        """
        now = now or utcnow()
        corrected = 0
        devices = self.db_session.query(Device).filter(
            Device.maintenance_status.is_not(True)
        ).all()

        for device in devices:
            new_status = evaluate_status(device.last_seen, device.last_sync, now, self.thresholds)
            if new_status != device.status:
                logger.info(
                    f"Device \"{device.device_name}\" corrected from "
                    f"\"{device.status}\" to \"{new_status}\"."
                )
                device.status = new_status
                device.is_online = new_status == STATUS_ONLINE
                corrected += 1

        try:
            self.db_session.commit()
        except SQLAlchemyError as e:
            self.db_session.rollback()
            logger.error(f"Failed to recompute device statuses: {e}")
            raise

        logger.info(f"Recompute finished. {corrected} of {len(devices)} devices adjusted.")
        return corrected
