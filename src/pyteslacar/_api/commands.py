"""Owner API command catalog.

Every queued command name maps to an HTTP method, a path relative to the
vehicle URL (``/api/1/vehicles/{id_s}/``) and an optional payload builder.
Payload builders validate their parameter and raise :class:`ValueError`
before anything is queued.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pyteslacar._constants import (
    CHARGE_LIMIT_MAX,
    CHARGE_LIMIT_MIN,
    SOFTWARE_UPDATE_OFFSET_S,
    TEMP_MAX_C,
    TEMP_MIN_C,
)
from pyteslacar.models.vehicle import VehicleHandle


class VehicleCommand(StrEnum):
    """Names of queued commands (also the keys handlers register under)."""

    LIST_CARS = "listCars"
    WAKE_UP = "wakeUp"
    GET_VEHICLE_DETAILS = "getVehicleDetails"
    GET_SERVICE_DATA = "getServiceData"
    GET_CHARGE_STATE = "getChargeState"
    GET_CLIMATE_STATE = "getClimateState"
    GET_DRIVE_STATE = "getDriveState"
    GET_GUI_SETTINGS = "getGuiSettings"
    GET_MOBILE_ENABLED = "getMobileEnabled"
    START_CHARGE = "startCharge"
    STOP_CHARGE = "stopCharge"
    START_CLIMATE = "startClimate"
    STOP_CLIMATE = "stopClimate"
    SET_TEMPERATURE = "setTemperature"
    SET_CHARGE_LIMIT = "setChargeLimit"
    SET_MAXIMUM_CHARGE_LIMIT = "setMaximumChargeLimit"
    SET_STANDARD_CHARGE_LIMIT = "setStandardChargeLimit"
    LOCK_DOORS = "lockDoors"
    UNLOCK_DOORS = "unlockDoors"
    HONK_HORN = "honkHorn"
    FLASH_LIGHTS = "flashLights"
    UNLOCK_FRUNK = "unlockFrunk"
    UNLOCK_TRUNK = "unlockTrunk"
    LOCK_TRUNK = "lockTrunk"
    OPEN_CHARGE_PORT = "openChargePort"
    CLOSE_CHARGE_PORT = "closeChargePort"
    VENT_WINDOWS = "ventWindows"
    CLOSE_WINDOWS = "closeWindows"
    VENT_SUNROOF = "ventSunroof"
    CLOSE_SUNROOF = "closeSunroof"
    SET_SENTRY_MODE = "setSentryMode"
    UPDATE_SOFTWARE = "updateSoftware"


@dataclass(frozen=True, slots=True)
class CommandContext:
    """Vehicle facts some payloads need (window control wants a location)."""

    latitude: float | None = None
    longitude: float | None = None
    standard_charge_limit: int = 90


PayloadBuilder = Callable[[Any, CommandContext], dict[str, Any]]


@dataclass(frozen=True, slots=True)
class CommandSpec:
    method: str
    path: str
    payload: PayloadBuilder | None = None
    query: bool = False
    """Read-only status request (no follow-up refresh after it)."""


@dataclass(frozen=True, slots=True)
class CommandRequest:
    method: str
    url: str
    json_body: dict[str, Any] | None
    endpoint: str


def _charge_limit(percent: Any, _ctx: CommandContext) -> dict[str, Any]:
    value = int(percent)
    if not CHARGE_LIMIT_MIN <= value <= CHARGE_LIMIT_MAX:
        raise ValueError(f"charge limit must be between {CHARGE_LIMIT_MIN} and {CHARGE_LIMIT_MAX}, got {value}")
    return {"percent": value}


def _standard_charge_limit(_param: Any, ctx: CommandContext) -> dict[str, Any]:
    return _charge_limit(ctx.standard_charge_limit, ctx)


def _temperature(temp_c: Any, _ctx: CommandContext) -> dict[str, Any]:
    value = float(temp_c)
    if not TEMP_MIN_C <= value <= TEMP_MAX_C:
        raise ValueError(f"temperature must be between {TEMP_MIN_C} and {TEMP_MAX_C} °C, got {value}")
    return {"driver_temp": value, "passenger_temp": value}


def _trunk(which: str) -> PayloadBuilder:
    return lambda _param, _ctx: {"which_trunk": which}


def _sunroof(state: str) -> PayloadBuilder:
    return lambda _param, _ctx: {"state": state}


def _windows(action: str) -> PayloadBuilder:
    def build(_param: Any, ctx: CommandContext) -> dict[str, Any]:
        return {"command": action, "lat": ctx.latitude or 0.0, "lon": ctx.longitude or 0.0}

    return build


def _sentry(enabled: Any, _ctx: CommandContext) -> dict[str, Any]:
    return {"on": bool(enabled)}


def _software_update(_param: Any, _ctx: CommandContext) -> dict[str, Any]:
    return {"offset_sec": SOFTWARE_UPDATE_OFFSET_S}


COMMANDS: dict[VehicleCommand, CommandSpec] = {
    VehicleCommand.LIST_CARS: CommandSpec("GET", "", query=True),
    VehicleCommand.WAKE_UP: CommandSpec("POST", "wake_up", query=True),
    VehicleCommand.GET_VEHICLE_DETAILS: CommandSpec("GET", "vehicle_data", query=True),
    VehicleCommand.GET_SERVICE_DATA: CommandSpec("GET", "service_data", query=True),
    VehicleCommand.GET_CHARGE_STATE: CommandSpec("GET", "data_request/charge_state", query=True),
    VehicleCommand.GET_CLIMATE_STATE: CommandSpec("GET", "data_request/climate_state", query=True),
    VehicleCommand.GET_DRIVE_STATE: CommandSpec("GET", "data_request/drive_state", query=True),
    VehicleCommand.GET_GUI_SETTINGS: CommandSpec("GET", "data_request/gui_settings", query=True),
    VehicleCommand.GET_MOBILE_ENABLED: CommandSpec("GET", "mobile_enabled", query=True),
    VehicleCommand.START_CHARGE: CommandSpec("POST", "command/charge_start"),
    VehicleCommand.STOP_CHARGE: CommandSpec("POST", "command/charge_stop"),
    VehicleCommand.START_CLIMATE: CommandSpec("POST", "command/auto_conditioning_start"),
    VehicleCommand.STOP_CLIMATE: CommandSpec("POST", "command/auto_conditioning_stop"),
    VehicleCommand.SET_TEMPERATURE: CommandSpec("POST", "command/set_temps", _temperature),
    VehicleCommand.SET_CHARGE_LIMIT: CommandSpec("POST", "command/set_charge_limit", _charge_limit),
    VehicleCommand.SET_MAXIMUM_CHARGE_LIMIT: CommandSpec("POST", "command/charge_max_range"),
    VehicleCommand.SET_STANDARD_CHARGE_LIMIT: CommandSpec("POST", "command/set_charge_limit", _standard_charge_limit),
    VehicleCommand.LOCK_DOORS: CommandSpec("POST", "command/door_lock"),
    VehicleCommand.UNLOCK_DOORS: CommandSpec("POST", "command/door_unlock"),
    VehicleCommand.HONK_HORN: CommandSpec("POST", "command/honk_horn"),
    VehicleCommand.FLASH_LIGHTS: CommandSpec("POST", "command/flash_lights"),
    VehicleCommand.UNLOCK_FRUNK: CommandSpec("POST", "command/actuate_trunk", _trunk("front")),
    VehicleCommand.UNLOCK_TRUNK: CommandSpec("POST", "command/actuate_trunk", _trunk("rear")),
    VehicleCommand.LOCK_TRUNK: CommandSpec("POST", "command/actuate_trunk", _trunk("rear")),
    VehicleCommand.OPEN_CHARGE_PORT: CommandSpec("POST", "command/charge_port_door_open"),
    VehicleCommand.CLOSE_CHARGE_PORT: CommandSpec("POST", "command/charge_port_door_close"),
    VehicleCommand.VENT_WINDOWS: CommandSpec("POST", "command/window_control", _windows("vent")),
    VehicleCommand.CLOSE_WINDOWS: CommandSpec("POST", "command/window_control", _windows("close")),
    VehicleCommand.VENT_SUNROOF: CommandSpec("POST", "command/sun_roof_control", _sunroof("vent")),
    VehicleCommand.CLOSE_SUNROOF: CommandSpec("POST", "command/sun_roof_control", _sunroof("close")),
    VehicleCommand.SET_SENTRY_MODE: CommandSpec("POST", "command/set_sentry_mode", _sentry),
    VehicleCommand.UPDATE_SOFTWARE: CommandSpec("POST", "command/schedule_software_update", _software_update),
}


def get_spec(name: str) -> CommandSpec:
    """Look up a catalog entry; unknown names raise :class:`ValueError`."""
    try:
        return COMMANDS[VehicleCommand(name)]
    except ValueError:
        raise ValueError(f"Unknown vehicle command {name!r}") from None


def build_payload(name: str, parameters: Any, context: CommandContext) -> dict[str, Any] | None:
    """Build (and thereby validate) the JSON body for *name*."""
    spec = get_spec(name)
    if spec.payload is None:
        return None
    return spec.payload(parameters, context)


def build_command_request(
    handle: VehicleHandle,
    name: str,
    parameters: Any = None,
    context: CommandContext | None = None,
) -> CommandRequest:
    """Resolve *name* against *handle* into a concrete request."""
    spec = get_spec(name)
    ctx = context or CommandContext()
    if name == VehicleCommand.LIST_CARS:
        url = f"{handle.api_base_url.rstrip('/')}/api/1/vehicles"
    else:
        url = f"{handle.vehicle_url}{spec.path}"
    body = build_payload(name, parameters, ctx)
    if body is None and spec.method == "POST":
        body = {}
    return CommandRequest(method=spec.method, url=url, json_body=body, endpoint=spec.path or "vehicles")
