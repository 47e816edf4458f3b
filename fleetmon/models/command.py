"""SQLAlchemy model for operator-issued device commands."""

from sqlalchemy import Column, Integer, String, DateTime, JSON, Text, Index

from fleetmon.models.base import Base, isoformat, utcnow

COMMAND_SENT = "sent"
COMMAND_COMPLETED = "completed"
COMMAND_FAILED = "failed"


class Command(Base):
    """Queued instruction for one device, resolved later by a result report."""

    __tablename__ = "commands"

    id = Column(Integer, primary_key=True, autoincrement=True)
    serial_number = Column(String(128), nullable=False)
    device_name = Column(String(255))
    command = Column(String(64), nullable=False)
    parameters = Column(JSON, default=dict)
    status = Column(String(16), nullable=False, default=COMMAND_SENT)
    result = Column(Text, nullable=True)
    created_by = Column(String(128))
    created_at = Column(DateTime, nullable=False, default=utcnow)
    executed_at = Column(DateTime, nullable=True)

    def to_dict(self) -> dict:
        """Convert command to dictionary representation."""
        return {
            "id": self.id,
            "serial_number": self.serial_number,
            "device_name": self.device_name,
            "command": self.command,
            "parameters": self.parameters or {},
            "status": self.status,
            "result": self.result,
            "created_by": self.created_by,
            "created_at": isoformat(self.created_at),
            "executed_at": isoformat(self.executed_at),
        }


# Correlation by serial number picks the newest outstanding command
Index("idx_commands_serial_status_created", Command.serial_number, Command.status, Command.created_at)
