from fleetmon.models.base import Base
from fleetmon.models.device import Device
from fleetmon.models.location_history import LocationHistoryEntry
from fleetmon.models.command import Command
from fleetmon.models.ip_mapping import IpMapping
from fleetmon.models.totem import Totem

__all__ = ["Base", "Device", "LocationHistoryEntry", "Command", "IpMapping", "Totem"]
