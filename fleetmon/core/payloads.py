from __future__ import annotations

import ipaddress
import logging
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from fleetmon.errors import ValidationError
from fleetmon.models.base import to_naive_utc

logger = logging.getLogger(__name__)

# Owned by the server: derived placement, lifecycle status and the maintenance
# path. Devices may echo them back, but a check-in never applies them.
SERVER_OWNED_FIELDS = {
    "sector",
    "floor",
    "status",
    "is_online",
    "maintenance_status",
    "maintenance_ticket",
    "maintenance_reason",
    "maintenance_history",
}


def _check_ip(value: Optional[str]) -> Optional[str]:
    if value in (None, ""):
        return None
    ipaddress.ip_address(value.strip())
    return value.strip()


def _raise_validation(exc: PydanticValidationError) -> None:
    errors = []
    for error in exc.errors():
        loc = ".".join(str(part) for part in error.get("loc", ())) or "payload"
        errors.append({"field": loc, "message": error.get("msg", "invalid value")})
    raise ValidationError(errors) from exc


class InstalledApp(BaseModel):
    package_name: Optional[str] = None
    version: Optional[str] = None
    install_date: Optional[str] = None


class SecurityPolicies(BaseModel):
    password_required: Optional[bool] = None
    encryption_enabled: Optional[bool] = None
    screen_lock_timeout: Optional[int] = Field(default=None, ge=0)
    allow_unknown_sources: Optional[bool] = None


class CheckInPayload(BaseModel):
    """Every field a device check-in may carry, with its default.

    Fields not listed here are kept in ``extensions`` rather than dropped.
    """

    model_config = ConfigDict(extra="allow", str_strip_whitespace=True)

    device_name: str = Field(..., min_length=1)
    serial_number: Optional[str] = None
    device_id: Optional[str] = None

    device_model: str = "N/A"
    imei: str = "N/A"
    secure_android_id: str = "N/A"
    battery: Optional[int] = Field(default=None, ge=0, le=100)
    network: str = "N/A"
    host: str = "N/A"
    ip_address: Optional[str] = None
    mac_address_radio: Optional[str] = None
    wifi_ipv6: str = "N/A"
    wifi_gateway_ip: Optional[str] = None
    wifi_broadcast: Optional[str] = None
    wifi_submask: str = "N/A"
    unit: str = "N/A"

    last_seen: Optional[datetime] = None
    last_sync: Optional[datetime] = None

    provisioning_status: Optional[Literal["pending", "in_progress", "completed", "failed"]] = None
    provisioning_token: str = "N/A"
    enrollment_date: str = "N/A"
    owner_organization: str = "N/A"
    compliance_status: Literal["compliant", "non_compliant", "unknown"] = "unknown"
    installed_apps: List[InstalledApp] = Field(default_factory=list)
    security_policies: SecurityPolicies = Field(default_factory=SecurityPolicies)

    @field_validator("ip_address", "wifi_gateway_ip", "wifi_broadcast")
    @classmethod
    def _valid_ip(cls, value: Optional[str]) -> Optional[str]:
        return _check_ip(value)

    @field_validator("serial_number", "device_id")
    @classmethod
    def _blank_is_missing(cls, value: Optional[str]) -> Optional[str]:
        return value or None

    @field_validator("last_seen", "last_sync")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)

    @classmethod
    def parse(cls, data: Dict[str, Any]) -> "CheckInPayload":
        """Validate a raw check-in body, raising fleetmon's ValidationError."""
        if not isinstance(data, dict):
            raise ValidationError([{"field": "payload", "message": "must be an object"}])

        dropped = sorted(SERVER_OWNED_FIELDS.intersection(data))
        if dropped:
            logger.debug(f"Ignoring server-owned check-in fields: {dropped}")
        body = {k: v for k, v in data.items() if k not in SERVER_OWNED_FIELDS}

        try:
            payload = cls.model_validate(body)
        except PydanticValidationError as exc:
            _raise_validation(exc)

        if not payload.serial_number and not payload.device_id:
            raise ValidationError([
                {"field": "serial_number", "message": "serial_number or device_id is required"},
                {"field": "device_id", "message": "serial_number or device_id is required"},
            ])
        return payload

    @property
    def extensions(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})


class TotemPayload(BaseModel):
    """Report sent by the kiosk monitoring agent."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    hostname: str = Field(..., min_length=1)
    serial_number: str = Field(..., min_length=1, alias="serialNumber")
    model: str = "N/A"
    service_tag: str = Field(default="N/A", alias="serviceTag")
    installed_programs: List[str] = Field(default_factory=list, alias="installedPrograms")
    printer_status: str = Field(default="N/A", alias="printerStatus")
    biometric_reader_status: str = Field(default="N/A", alias="biometricReaderStatus")
    zebra_status: str = Field(default="N/A", alias="zebraStatus")
    bematech_status: str = Field(default="N/A", alias="bematechStatus")
    totem_type: str = Field(default="N/A", alias="totemType")
    ram: str = "N/A"
    hd_type: str = Field(default="N/A", alias="hdType")
    hd_storage: str = Field(default="N/A", alias="hdStorage")

    @classmethod
    def parse(cls, data: Dict[str, Any]) -> "TotemPayload":
        try:
            return cls.model_validate(data)
        except PydanticValidationError as exc:
            _raise_validation(exc)
