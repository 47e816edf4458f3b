"""Command Dispatch - operator command queue and asynchronous result correlation."""

from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fleetmon.errors import NotFound, ValidationError
from fleetmon.models.base import utcnow
from fleetmon.models.command import Command, COMMAND_COMPLETED, COMMAND_FAILED, COMMAND_SENT
from fleetmon.services.access_filter import Caller, authorize
from fleetmon.services.device_registry import DeviceRegistry

logger = logging.getLogger(__name__)

# Applied synchronously to the device, never queued
MAINTENANCE_COMMAND = "set_maintenance"


class CommandDispatcher:
    """Queues commands per device and resolves them from result reports.

    Result reports without a command id resolve only the newest outstanding
    command for the serial number. Older outstanding commands stay ``sent``
    until they are targeted by id.
    """

    def __init__(self, db_session: Session, registry: Optional[DeviceRegistry] = None):
        """Initialize CommandDispatcher.

        Args:
            db_session: SQLAlchemy database session
            registry: Device registry sharing the same session
        """
        self.db_session = db_session
        self.registry = registry or DeviceRegistry(db_session)

    def enqueue(
        self,
        serial_number: str,
        command: str,
        caller: Caller,
        parameters: Optional[Dict[str, Any]] = None,
        device_name: Optional[str] = None,
        maintenance_status: bool = False,
        maintenance_ticket: Optional[str] = None,
        maintenance_reason: Optional[str] = None
    ) -> Optional[Command]:
        """Queue a command for a device, or apply a maintenance toggle.

        Args:
            serial_number: Target device serial number
            command: Command kind
            caller: Issuing user
            parameters: Free-form command parameters
            device_name: Display name override
            maintenance_status: New flag for ``set_maintenance``
            maintenance_ticket: Ticket for ``set_maintenance``
            maintenance_reason: Reason for ``set_maintenance``

        Returns:
            The queued Command, or None for ``set_maintenance``

        Raises:
            ValidationError: If serial number or command is missing
            NotFound: If the device does not exist
            Forbidden: If the caller's prefixes exclude the device
        """
        missing = [
            {"field": name, "message": f"{name} is required"}
            for name, value in (("serial_number", serial_number), ("command", command))
            if not value
        ]
        if missing:
            raise ValidationError(missing)

        device = self.registry.require_device(serial_number, caller)

        if command == MAINTENANCE_COMMAND:
            self.registry.set_maintenance(
                device,
                status=maintenance_status,
                ticket=maintenance_ticket,
                reason=maintenance_reason,
                changed_by=caller.username
            )
            logger.info(f"Command {MAINTENANCE_COMMAND} applied to {serial_number}: status={maintenance_status}")
            return None

        queued = Command(
            serial_number=serial_number,
            device_name=device_name or device.device_name,
            command=command,
            parameters=parameters or {},
            status=COMMAND_SENT,
            created_by=caller.username,
            created_at=utcnow()
        )
        self.db_session.add(queued)
        try:
            self.db_session.commit()
        except SQLAlchemyError as e:
            self.db_session.rollback()
            logger.error(f"Failed to queue command {command} for {serial_number}: {e}")
            raise

        logger.info(f"Command \"{command}\" queued for {serial_number} (id={queued.id})")
        return queued

    def report_result(
        self,
        success: bool,
        command_id: Optional[int] = None,
        serial_number: Optional[str] = None,
        result: Optional[str] = None,
        error_message: Optional[str] = None,
        caller: Optional[Caller] = None
    ) -> Command:
        """Resolve an outstanding command with its execution outcome.

        Args:
            success: Whether the device executed the command
            command_id: Explicit command id (takes precedence)
            serial_number: Device serial, resolves the newest outstanding command
            result: Result payload
            error_message: Error text stored when no result is given
            caller: Reporting user, None for the device channel

        Returns:
            The resolved Command

        Raises:
            ValidationError: If neither command_id nor serial_number is given
            NotFound: If no outstanding command matches
            Forbidden: If the caller's prefixes exclude the command's device
        """
        if command_id is None and not serial_number:
            logger.warning("serial_number or command_id missing from command result")
            raise ValidationError([
                {"field": "command_id", "message": "command_id or serial_number is required"},
                {"field": "serial_number", "message": "command_id or serial_number is required"},
            ])

        target = self._find_outstanding(command_id, serial_number)
        if target is None:
            key = command_id if command_id is not None else serial_number
            logger.warning(f"No outstanding command found for {key}")
            raise NotFound("command", key)

        device = self.registry.get_device(target.serial_number)
        if device is not None:
            authorize(device, caller)

        values = {
            Command.status: COMMAND_COMPLETED if success else COMMAND_FAILED,
            Command.result: result or error_message,
            Command.executed_at: utcnow(),
        }
        try:
            updated = self.db_session.query(Command).filter(
                Command.id == target.id,
                Command.status == COMMAND_SENT
            ).update(values, synchronize_session=False)
            if not updated:
                self.db_session.rollback()
                raise NotFound("command", target.id)
            self.db_session.commit()
        except SQLAlchemyError as e:
            self.db_session.rollback()
            logger.error(f"Failed to record command result for {target.id}: {e}")
            raise

        self.db_session.refresh(target)
        logger.info(
            f"Command result received: {target.command} for {target.serial_number} - "
            f"{'success' if success else 'failure'}"
        )
        return target

    def _find_outstanding(self, command_id: Optional[int], serial_number: Optional[str]) -> Optional[Command]:
        if command_id is not None:
            command = self.db_session.get(Command, command_id)
            if command is None or command.status != COMMAND_SENT:
                return None
            return command

        return self.db_session.query(Command).filter(
            Command.serial_number == serial_number,
            Command.status == COMMAND_SENT
        ).order_by(
            Command.created_at.desc(),
            Command.id.desc()
        ).first()

    def list_commands(
        self,
        serial_number: str,
        caller: Caller,
        status: Optional[str] = None,
        limit: int = 50
    ) -> List[Command]:
        """Commands for a device the caller may see, newest first."""
        self.registry.require_device(serial_number, caller)
        query = self.db_session.query(Command).filter(Command.serial_number == serial_number)
        if status:
            query = query.filter(Command.status == status)
        return query.order_by(Command.created_at.desc(), Command.id.desc()).limit(limit).all()
