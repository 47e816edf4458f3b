"""Error taxonomy shared by the fleetmon services and the HTTP surface."""

from typing import Any, Dict, List, Optional


class FleetError(Exception):
    """Base class for errors that are safe to surface to a caller."""


class ValidationError(FleetError):
    """Request is missing or carries malformed required fields.

    Raised before any state change. ``errors`` is a list of
    ``{"field": ..., "message": ...}`` dictionaries.
    """

    def __init__(self, errors: List[Dict[str, Any]]):
        self.errors = errors
        summary = "; ".join(f"{e.get('field')}: {e.get('message')}" for e in errors)
        super().__init__(f"Invalid request: {summary}")

    @property
    def fields(self) -> List[str]:
        return [e.get("field") for e in self.errors]


class NotFound(FleetError):
    """Unknown serial number, command identifier or mapping id."""

    def __init__(self, kind: str, key: Any):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class Forbidden(FleetError):
    """Caller's sector prefixes exclude the target, or none are configured."""


class DuplicateIdentity(FleetError):
    """A unique identity key is already taken by another row."""

    def __init__(self, field: str, value: Optional[Any]):
        self.field = field
        self.value = value
        super().__init__(f"Device with this {field} already exists: {value}")
