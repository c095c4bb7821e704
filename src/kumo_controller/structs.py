"""Data model shared by the transports, discovery and the device state model."""

from __future__ import annotations

import base64
import binascii
import datetime
import math
from dataclasses import dataclass
from enum import StrEnum
from typing import NamedTuple, TypedDict

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from kumo_controller.const import KUMO_TOKEN_TTL
from kumo_controller.logging_abstraction import get_logger

logger = get_logger(__name__)


class ThermostatMode(StrEnum):
    OFF = "Off"
    HEAT = "Heat"
    COOL = "Cool"
    AUTO = "Auto"


class CommandName(StrEnum):
    MODE = "Mode"
    COOL_TARGET = "CoolTarget"
    HEAT_TARGET = "HeatTarget"


class AuthTokenDict(TypedDict, total=False):
    """First element of the /login response."""

    token: str
    username: str


class SiteDict(TypedDict, total=False):
    """Third element of the /login response; sites nest through ``children``."""

    id: str
    label: str
    zoneTable: dict[str, dict[str, object]]
    children: list[SiteDict]


class StatusDict(TypedDict, total=False):
    """Indoor unit status in the shape the LAN adapter reports it."""

    mode: str
    roomTemp: float
    spCool: float
    spHeat: float
    fanSpeed: str


class RemoteStatusDict(TypedDict, total=False):
    """Status record inside a /getDeviceUpdates response."""

    id: int
    operation_mode: int
    room_temp: float
    sp_cool: float
    sp_heat: float
    fan_speed: int


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


class SecurityToken(BaseModel):
    """Cloud session token.

    The cloud does not report a lifetime, tokens are treated as valid for
    KUMO_TOKEN_TTL seconds after issue. Instances are immutable; a refresh
    replaces the whole token.
    """

    model_config = ConfigDict(frozen=True)

    token_id: str
    issued_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))

    @computed_field
    @property
    def expires_at(self) -> datetime.datetime:
        return self.issued_at + datetime.timedelta(seconds=KUMO_TOKEN_TTL)

    def seconds_remaining(self, now: datetime.datetime | None = None) -> float:
        now = now or datetime.datetime.now(datetime.UTC)
        return (self.expires_at - now).total_seconds()

    def is_expired(self, now: datetime.datetime | None = None) -> bool:
        return self.seconds_remaining(now) <= 0


class SetpointLimits(NamedTuple):
    min: float
    max: float


class ZoneDescriptor(BaseModel):
    """One zone (indoor unit) from a site's ``zoneTable``.

    Values the LAN path cannot use (undecodable password, non-hex crypto serial)
    are dropped at parse time so the zone routes through the cloud instead.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    serial: str = Field(min_length=1)
    mac: str | None = None
    label: str = ""
    password: str | None = None
    crypto_serial: str | None = Field(default=None, alias="cryptoSerial")
    min_setpoint: float = Field(default=0.0, alias="minCoolSetpoint")
    max_setpoint: float = Field(default=math.inf, alias="maxHeatSetpoint")

    @field_validator("label", mode="before")
    @classmethod
    def _default_label(cls, value: object) -> str:
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)

    @field_validator("password", mode="before")
    @classmethod
    def _check_password(cls, value: object) -> str | None:
        if not value or not isinstance(value, str):
            return None
        try:
            _ = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError):
            logger.warning("Zone password is not valid base64, LAN control disabled for this zone")
            return None
        return value

    @field_validator("crypto_serial", mode="before")
    @classmethod
    def _check_crypto_serial(cls, value: object) -> str | None:
        if not value or not isinstance(value, str):
            return None
        try:
            _ = bytes.fromhex(value)
        except ValueError:
            logger.warning("Zone crypto serial %r is not hex, LAN control disabled for this zone", value)
            return None
        return value

    @field_validator("min_setpoint", mode="before")
    @classmethod
    def _default_min(cls, value: object) -> object:
        return value or 0.0

    @field_validator("max_setpoint", mode="before")
    @classmethod
    def _default_max(cls, value: object) -> object:
        return value or math.inf

    @property
    def limits(self) -> SetpointLimits:
        return SetpointLimits(self.min_setpoint, self.max_setpoint)


@dataclass(frozen=True)
class LocalTransport:
    ip: str
    password: str
    crypto_serial: str


@dataclass(frozen=True)
class RemoteTransport:
    token_id: str | None


Transport = LocalTransport | RemoteTransport


@dataclass
class ThermostatState:
    mode: ThermostatMode = ThermostatMode.OFF
    temperature: float = 0
    heat_target: float = 0
    cool_target: float = 0
