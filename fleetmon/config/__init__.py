from fleetmon.config.settings import Settings, get_settings
from fleetmon.config.loader import AccessPointTableLoader

__all__ = ["Settings", "get_settings", "AccessPointTableLoader"]
