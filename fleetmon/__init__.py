"""fleetmon - device fleet check-in, location tracking and command correlation."""

__version__ = "0.1.0"
