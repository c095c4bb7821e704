"""Command payloads and status translation for both transports.

LAN adapters and the cloud relay speak different dialects for the same
three commands; this module is the only place that knows both.
"""

from __future__ import annotations

import math
from typing import cast

from kumo_controller.exceptions import InvalidCommandError
from kumo_controller.structs import CommandName, RemoteStatusDict, SetpointLimits, StatusDict, ThermostatMode

__all__ = [
    "build_command",
    "clamp",
    "decode_remote_status",
    "parse_command_name",
    "parse_mode",
]

LOCAL_MODES: dict[ThermostatMode, dict[str, object]] = {
    ThermostatMode.OFF: {"mode": "off"},
    ThermostatMode.HEAT: {"mode": "heat"},
    ThermostatMode.COOL: {"mode": "cool"},
    ThermostatMode.AUTO: {"mode": "auto"},
}

REMOTE_MODES: dict[ThermostatMode, dict[str, object]] = {
    ThermostatMode.OFF: {"power": 0, "operationMode": 16},
    ThermostatMode.HEAT: {"power": 1, "operationMode": 1},
    ThermostatMode.COOL: {"power": 1, "operationMode": 3},
    ThermostatMode.AUTO: {"power": 1, "operationMode": 8},
}

# cloud operation_mode code -> LAN mode string
REMOTE_OPERATION_MODES: dict[int, str] = {
    1: "heat",
    3: "cool",
    8: "autoCool",
}


def clamp(value: float, limits: SetpointLimits) -> float:
    """Bound a setpoint to the zone's [min, max] range."""
    return min(max(value, limits.min), limits.max)


def parse_command_name(command: object) -> CommandName:
    if isinstance(command, CommandName):
        return command
    try:
        return CommandName(str(command))
    except ValueError:
        raise InvalidCommandError(command, None, "unknown command") from None


def parse_mode(value: object) -> ThermostatMode:
    if isinstance(value, ThermostatMode):
        return value
    if isinstance(value, str):
        for mode in ThermostatMode:
            if value.casefold() == mode.value.casefold():
                return mode
    raise InvalidCommandError(CommandName.MODE, value, "unknown mode")


def _parse_setpoint(command: CommandName, value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise InvalidCommandError(command, value, "setpoint must be a number")
    if math.isnan(value):
        raise InvalidCommandError(command, value, "setpoint must be a number")
    return value


def build_command(command: object, value: object, limits: SetpointLimits, *, local: bool) -> dict[str, object]:
    """Build the status fragment for one command.

    Args:
        command: "Mode", "CoolTarget" or "HeatTarget"
        value: ThermostatMode (or its name) for Mode, a number for the targets
        limits: Setpoint limits of the target zone
        local: Build the LAN dialect instead of the cloud one

    Raises:
        InvalidCommandError: before any I/O, when the command cannot be built.

    """
    name = parse_command_name(command)
    match name:
        case CommandName.MODE:
            mode = parse_mode(value)
            return dict(LOCAL_MODES[mode] if local else REMOTE_MODES[mode])
        case CommandName.COOL_TARGET:
            return {"spCool": clamp(_parse_setpoint(name, value), limits)}
        case CommandName.HEAT_TARGET:
            return {"spHeat": clamp(_parse_setpoint(name, value), limits)}


def decode_remote_status(raw: RemoteStatusDict) -> StatusDict:
    """Translate a cloud status record into the LAN status shape."""
    status: StatusDict = {"mode": REMOTE_OPERATION_MODES.get(cast("int", raw.get("operation_mode")), "off")}
    if raw.get("room_temp") is not None:
        status["roomTemp"] = raw["room_temp"]
    if raw.get("sp_cool") is not None:
        status["spCool"] = raw["sp_cool"]
    if raw.get("sp_heat") is not None:
        status["spHeat"] = raw["sp_heat"]
    return status
