from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Header, Query, Request

from fleetmon.api.schemas import CommandRequest, CommandResultRequest, IpMappingCreate
from fleetmon.app.init import SystemInitializer
from fleetmon.core.payloads import CheckInPayload, TotemPayload
from fleetmon.services.access_filter import Caller, ROLE_USER
from fleetmon.services.command_dispatch import CommandDispatcher
from fleetmon.services.device_registry import DeviceRegistry
from fleetmon.services.ip_mapping_service import IpMappingService
from fleetmon.services.totem_registry import TotemRegistry

router = APIRouter()


def get_system(request: Request) -> SystemInitializer:
    return request.app.state.system


def get_session(system: SystemInitializer = Depends(get_system)):
    session = system.new_session()
    try:
        yield session
    finally:
        session.close()


def get_caller(
    x_user: str = Header("anonymous"),
    x_role: str = Header(ROLE_USER),
    x_sector: Optional[str] = Header(None),
) -> Caller:
    # Identity is established upstream by the authentication layer
    return Caller(username=x_user, role=x_role, sector=x_sector)


def get_reporter(
    x_user: Optional[str] = Header(None),
    x_role: str = Header(ROLE_USER),
    x_sector: Optional[str] = Header(None),
) -> Optional[Caller]:
    # Devices report results without a user identity
    if x_user is None:
        return None
    return Caller(username=x_user, role=x_role, sector=x_sector)


def get_registry(session=Depends(get_session), system: SystemInitializer = Depends(get_system)) -> DeviceRegistry:
    return DeviceRegistry(session, resolver=system.ap_resolver, thresholds=system.thresholds)


def get_dispatcher(session=Depends(get_session), registry: DeviceRegistry = Depends(get_registry)) -> CommandDispatcher:
    return CommandDispatcher(session, registry=registry)


@router.post("/devices/data")
def check_in(payload: Dict[str, Any] = Body(...), registry: DeviceRegistry = Depends(get_registry)):
    device = registry.upsert(CheckInPayload.parse(payload))
    return {"message": "Data saved", "serial_number": device.serial_number, "status": device.status}


@router.get("/devices")
def list_devices(
    search: Optional[str] = Query(None, description="Substring of name, serial number or equipment ID"),
    caller: Caller = Depends(get_caller),
    registry: DeviceRegistry = Depends(get_registry),
):
    devices = registry.list_devices(caller, search=search)
    return {"success": True, "devices": [registry.describe(d) for d in devices]}


@router.post("/devices/commands")
def send_command(
    payload: CommandRequest,
    caller: Caller = Depends(get_caller),
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
):
    command = dispatcher.enqueue(
        payload.serial_number,
        payload.command,
        caller,
        parameters=payload.command_parameters(),
        device_name=payload.device_name,
        maintenance_status=payload.maintenance_status,
        maintenance_ticket=payload.maintenance_ticket,
        maintenance_reason=payload.maintenance_reason,
    )
    if command is None:
        return {"message": f"Maintenance status updated for {payload.serial_number}"}
    return {"message": f"Command {command.command} queued for {command.device_name}", "command": command.to_dict()}


@router.post("/devices/command-result")
def command_result(
    payload: CommandResultRequest,
    caller: Optional[Caller] = Depends(get_reporter),
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
):
    command = dispatcher.report_result(
        payload.success,
        command_id=payload.command_id,
        serial_number=payload.serial_number,
        result=payload.result,
        error_message=payload.error_message,
        caller=caller,
    )
    return {"message": "Command result recorded", "command": command.to_dict()}


@router.get("/devices/{serial_number}")
def get_device(
    serial_number: str,
    caller: Caller = Depends(get_caller),
    registry: DeviceRegistry = Depends(get_registry),
):
    device = registry.require_device(serial_number, caller)
    return {"success": True, "device": registry.describe(device)}


@router.delete("/devices/{serial_number}")
def delete_device(
    serial_number: str,
    caller: Caller = Depends(get_caller),
    registry: DeviceRegistry = Depends(get_registry),
):
    registry.delete_device(serial_number, caller)
    return {"message": f"Device {serial_number} deleted"}


@router.get("/devices/{serial_number}/location-history")
def location_history(
    serial_number: str,
    limit: Optional[int] = Query(None, ge=1, le=200),
    caller: Caller = Depends(get_caller),
    registry: DeviceRegistry = Depends(get_registry),
    system: SystemInitializer = Depends(get_system),
):
    history = registry.location_history(serial_number, caller, limit or system.settings.location_history_limit)
    return {"success": True, "history": [entry.to_dict() for entry in history]}


@router.get("/devices/{serial_number}/commands")
def list_commands(
    serial_number: str,
    status: Optional[str] = Query(None),
    caller: Caller = Depends(get_caller),
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
):
    commands = dispatcher.list_commands(serial_number, caller, status=status)
    return {"success": True, "commands": [c.to_dict() for c in commands]}


@router.get("/monitoring/ip-mappings")
def list_ip_mappings(session=Depends(get_session)):
    return [m.to_dict() for m in IpMappingService(session).list_mappings()]


@router.post("/monitoring/ip-mappings", status_code=201)
def create_ip_mapping(payload: IpMappingCreate, session=Depends(get_session)):
    mapping = IpMappingService(session).create_mapping(payload.location, payload.ip_start, payload.ip_end)
    return mapping.to_dict()


@router.delete("/monitoring/ip-mappings/{mapping_id}")
def delete_ip_mapping(mapping_id: int, session=Depends(get_session)):
    IpMappingService(session).delete_mapping(mapping_id)
    return {"message": "Mapping deleted"}


@router.post("/monitor")
def totem_check_in(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    x_forwarded_for: Optional[str] = Header(None),
    session=Depends(get_session),
    system: SystemInitializer = Depends(get_system),
):
    client_ip = x_forwarded_for or (request.client.host if request.client else None)
    registry = TotemRegistry(session, online_window=system.settings.totem_online_window)
    totem = registry.create_or_update(TotemPayload.parse(payload), client_ip)
    return {"message": "Monitoring data received", "serial_number": totem.serial_number, "location": totem.location}


@router.get("/monitoring/totems")
def list_totems(session=Depends(get_session), system: SystemInitializer = Depends(get_system)):
    return TotemRegistry(session, online_window=system.settings.totem_online_window).list_totems()
