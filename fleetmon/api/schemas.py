from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class CommandRequest(BaseModel):
    serial_number: str = Field(..., min_length=1)
    command: str = Field(..., min_length=1)
    device_name: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)
    package_name: Optional[str] = Field(default=None, alias="packageName")
    apk_url: Optional[str] = Field(default=None, alias="apkUrl")
    maintenance_status: bool = False
    maintenance_ticket: Optional[str] = None
    maintenance_reason: Optional[str] = None

    model_config = {"populate_by_name": True}

    def command_parameters(self) -> Dict[str, Any]:
        params = dict(self.parameters)
        if self.package_name is not None:
            params["packageName"] = self.package_name
        if self.apk_url is not None:
            params["apkUrl"] = self.apk_url
        return params


class CommandResultRequest(BaseModel):
    command_id: Optional[int] = None
    serial_number: Optional[str] = None
    success: bool = False
    result: Optional[str] = None
    error_message: Optional[str] = None


class IpMappingCreate(BaseModel):
    location: str = ""
    ip_start: str = Field(default="", alias="ipStart")
    ip_end: str = Field(default="", alias="ipEnd")

    model_config = {"populate_by_name": True}
