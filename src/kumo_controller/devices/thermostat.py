"""Per-zone device record and thermostat state model."""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
from collections.abc import Awaitable, Callable

from kumo_controller.const import KUMO_DEVICE_ID_PREFIX, KUMO_MANUFACTURER
from kumo_controller.correlation import correlation_context
from kumo_controller.exceptions import KumoError
from kumo_controller.logging_abstraction import get_logger
from kumo_controller.structs import LocalTransport, SetpointLimits, StatusDict, ThermostatMode, ThermostatState, ZoneDescriptor

logger = get_logger(__name__)

__all__ = ["DeviceRecord", "UpdateCallback"]

UpdateCallback = Callable[["DeviceRecord", ThermostatState], object]
PollFunction = Callable[[str], Awaitable[None]]

# LAN status mode -> thermostat mode; anything unlisted (dry, vent, ...) reads as Off
_STATUS_MODES: dict[str, ThermostatMode] = {
    "heat": ThermostatMode.HEAT,
    "cool": ThermostatMode.COOL,
    "auto": ThermostatMode.AUTO,
    "autoHeat": ThermostatMode.AUTO,
    "autoCool": ThermostatMode.AUTO,
    "off": ThermostatMode.OFF,
}


class DeviceRecord:
    """A discovered zone paired with its live thermostat state.

    Exactly one record exists per serial. Rediscovery refreshes the record in
    place (``refresh``) so subscribers and polling survive address changes.
    """

    manufacturer: str = KUMO_MANUFACTURER

    def __init__(self, zone: ZoneDescriptor, ip: str | None = None) -> None:
        self.zone: ZoneDescriptor = zone
        self.ip: str | None = ip
        self.state: ThermostatState = ThermostatState()
        self.initialized: bool = False
        self._subscribers: list[UpdateCallback] = []
        self._poll_task: asyncio.Task[None] | None = None
        self.lp: str = f"DeviceRecord:{zone.serial}"

    def __repr__(self) -> str:
        return f"<DeviceRecord {self.device_id} name={self.name!r} ip={self.ip} state={self.state}>"

    @property
    def serial(self) -> str:
        return self.zone.serial

    @property
    def name(self) -> str:
        return self.zone.label or self.zone.serial

    @property
    def device_id(self) -> str:
        return f"{KUMO_DEVICE_ID_PREFIX}-{self.zone.serial}"

    @property
    def limits(self) -> SetpointLimits:
        return self.zone.limits

    def local_transport(self) -> LocalTransport | None:
        """LAN route for this zone, or None when any of IP, password or crypto serial is missing."""
        if self.ip and self.zone.password and self.zone.crypto_serial:
            return LocalTransport(ip=self.ip, password=self.zone.password, crypto_serial=self.zone.crypto_serial)
        return None

    def refresh(self, zone: ZoneDescriptor, ip: str | None) -> None:
        if zone.serial != self.zone.serial:
            msg = f"cannot refresh {self.zone.serial} with zone {zone.serial}"
            raise ValueError(msg)
        if ip != self.ip:
            logger.info("%s LAN address changed: %s -> %s", self.lp, self.ip, ip)
        self.zone = zone
        self.ip = ip

    def subscribe(self, callback: UpdateCallback) -> Callable[[], None]:
        """Register a state-change callback; returns a function that removes it."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._subscribers.remove(callback)

        return _unsubscribe

    def update(self, status: StatusDict) -> bool:
        """Apply a status payload and notify subscribers of a real change.

        Only fields present in ``status`` are overwritten. The first update
        establishes the baseline and never notifies.

        Returns:
            True if subscribers were notified.

        """
        previous = dataclasses.replace(self.state)

        mode = status.get("mode")
        if mode is not None:
            self.state.mode = _STATUS_MODES.get(mode, ThermostatMode.OFF)
        if status.get("roomTemp") is not None:
            self.state.temperature = status["roomTemp"]
        if status.get("spHeat") is not None:
            self.state.heat_target = status["spHeat"]
        if status.get("spCool") is not None:
            self.state.cool_target = status["spCool"]

        if not self.initialized:
            self.initialized = True
            logger.debug("%s Baseline state: %s", self.lp, self.state)
            return False

        if self.state == previous:
            return False

        logger.debug("%s State changed: %s -> %s", self.lp, previous, self.state)
        self._emit(dataclasses.replace(self.state))
        return True

    def _emit(self, snapshot: ThermostatState) -> None:
        for callback in list(self._subscribers):
            try:
                _ = callback(self, snapshot)
            except Exception:
                logger.exception("%s Update subscriber %r failed", self.lp, callback)

    def start_polling(self, poll: PollFunction, interval: float) -> None:
        """Call ``poll(serial)`` every ``interval`` seconds until destroyed."""
        if interval <= 0 or (self._poll_task is not None and not self._poll_task.done()):
            return
        self._poll_task = asyncio.create_task(self._poll_loop(poll, interval), name=f"kumo-poll-{self.serial}")

    async def _poll_loop(self, poll: PollFunction, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            with correlation_context("poll", fresh=True):
                try:
                    await poll(self.serial)
                except KumoError as e:
                    logger.warning("%s Poll failed: %s", self.lp, e)
                except Exception:
                    logger.exception("%s Unexpected error while polling", self.lp)

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def destroy(self) -> None:
        """Stop polling and drop subscribers."""
        task = self._poll_task
        self._poll_task = None
        if task is not None and not task.done():
            _ = task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._subscribers.clear()
