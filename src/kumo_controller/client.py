"""Kumo client: routes every status query and command over the LAN or the cloud.

A zone is driven over the LAN when discovery found its address and the cloud
supplied its local password and crypto serial; otherwise the cloud relay is
used. A transport failure on either path triggers one rediscovery (the zone may
have moved or the token may be stale) followed by one retry.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable, Coroutine
from types import TracebackType
from typing import Any, Self

import aiohttp

from kumo_controller.address_resolution import AddressResolver, ArpResolver
from kumo_controller.cloud_api import KumoCloudAPI
from kumo_controller.commands import build_command, decode_remote_status
from kumo_controller.const import KUMO_POLL_INTERVAL
from kumo_controller.correlation import correlation_context
from kumo_controller.devices.directory import ZoneDirectory
from kumo_controller.devices.thermostat import DeviceRecord, UpdateCallback
from kumo_controller.discovery import DiscoveryPipeline
from kumo_controller.exceptions import KumoError, TransportError
from kumo_controller.local_api import KumoLocalAPI
from kumo_controller.logging_abstraction import get_logger
from kumo_controller.retry_policy import RetryPolicy
from kumo_controller.session import SessionManager
from kumo_controller.structs import (
    CommandName,
    Credentials,
    LocalTransport,
    RemoteTransport,
    StatusDict,
    ThermostatMode,
    ThermostatState,
    Transport,
)

logger = get_logger(__name__)

__all__ = ["AvailableCallback", "KumoClient"]

AvailableCallback = Callable[[list[DeviceRecord]], object]


class KumoClient:
    """Dual-transport client for one Kumo Cloud account.

    Usage:
        async with KumoClient(Credentials("me@example.com", "secret")) as client:
            client.on_update(lambda device, state: print(device.name, state))
            await client.execute("2534P001", "CoolTarget", 24)
    """

    lp: str = "KumoClient"

    def __init__(
        self,
        credentials: Credentials | None = None,
        *,
        cloud_api: KumoCloudAPI | None = None,
        local_api: KumoLocalAPI | None = None,
        resolver: AddressResolver | None = None,
        retry_policy: RetryPolicy | None = None,
        poll_interval: float = KUMO_POLL_INTERVAL,
        http_session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.cloud_api: KumoCloudAPI = cloud_api or KumoCloudAPI(http_session=http_session)
        self.local_api: KumoLocalAPI = local_api or KumoLocalAPI(http_session=http_session)
        self.retry_policy: RetryPolicy = retry_policy or RetryPolicy()
        self.poll_interval: float = poll_interval

        self.session: SessionManager = SessionManager(self.cloud_api, credentials)
        self.directory: ZoneDirectory = ZoneDirectory()
        self.discovery: DiscoveryPipeline = DiscoveryPipeline(
            self.session,
            self.directory,
            resolver or ArpResolver(),
            on_created=self._on_zone_created,
            on_refreshed=self._on_zone_refreshed,
        )
        self.session.set_expiry_callback(self.discovery.discover)

        self._update_subscribers: list[UpdateCallback] = []
        self._available_subscribers: list[AvailableCallback] = []
        self._available: asyncio.Event = asyncio.Event()
        self._background: set[asyncio.Task[Any]] = set()

    @property
    def devices(self) -> list[DeviceRecord]:
        return list(self.directory)

    def get_device(self, serial: str) -> DeviceRecord | None:
        return self.directory.get(serial)

    @property
    def available(self) -> bool:
        return self._available.is_set()

    def on_update(self, callback: UpdateCallback) -> Callable[[], None]:
        """Subscribe to state changes of every zone; returns an unsubscribe function."""
        self._update_subscribers.append(callback)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._update_subscribers.remove(callback)

        return _unsubscribe

    def on_available(self, callback: AvailableCallback) -> Callable[[], None]:
        """Subscribe to the one-time "all zones discovered and queried" notification.

        Subscribing after the fact invokes the callback immediately.
        """
        if self.available:
            self._notify_available(callback)
        else:
            self._available_subscribers.append(callback)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._available_subscribers.remove(callback)

        return _unsubscribe

    async def wait_available(self, timeout: float | None = None) -> list[DeviceRecord]:
        _ = await asyncio.wait_for(self._available.wait(), timeout=timeout)
        return self.devices

    def _notify_available(self, callback: AvailableCallback) -> None:
        try:
            _ = callback(self.devices)
        except Exception:
            logger.exception("%s Available subscriber %r failed", self.lp, callback)

    def _forward_update(self, record: DeviceRecord, state: ThermostatState) -> None:
        logger.info(
            "%s %s changed: %s",
            self.lp,
            record.name,
            state.mode,
            extra={
                "serial": record.serial,
                "temperature": state.temperature,
                "heat_target": state.heat_target,
                "cool_target": state.cool_target,
            },
        )
        for callback in list(self._update_subscribers):
            try:
                _ = callback(record, state)
            except Exception:
                logger.exception("%s Update subscriber %r failed", self.lp, callback)

    def _spawn(self, coro: Coroutine[Any, Any, None], name: str) -> None:
        task = asyncio.create_task(coro, name=name)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _on_zone_created(self, record: DeviceRecord) -> None:
        _ = record.subscribe(self._forward_update)
        record.start_polling(self.update, self.poll_interval)

    def _on_zone_refreshed(self, record: DeviceRecord) -> None:
        # Not awaited by the discovery pass, which may itself be waiting on a failed call
        self._spawn(self._requery(record.serial), name=f"kumo-requery-{record.serial}")

    async def _requery(self, serial: str) -> None:
        with correlation_context("requery", fresh=True):
            try:
                await self._with_rediscovery(serial, self._update_record, allow_rediscovery=False)
            except KumoError as e:
                logger.warning("%s Re-query after rediscovery failed: %s", self.lp, e, extra={"serial": serial})

    def _resolve_transport(self, record: DeviceRecord) -> Transport:
        local = record.local_transport()
        if local is not None:
            return local
        return RemoteTransport(token_id=self.session.token_id)

    async def _fetch_status(self, record: DeviceRecord) -> StatusDict:
        match self._resolve_transport(record):
            case LocalTransport() as target:
                return await self.local_api.query_status(target)
            case RemoteTransport(token_id=token_id):
                raw = await self.cloud_api.get_device_updates(token_id, record.serial)
                return decode_remote_status(raw)

    async def _update_record(self, record: DeviceRecord) -> None:
        status = await self._fetch_status(record)
        _ = record.update(status)

    async def _send_command(self, record: DeviceRecord, command: object, value: object) -> None:
        transport = self._resolve_transport(record)
        local = isinstance(transport, LocalTransport)
        payload = build_command(command, value, record.limits, local=local)
        logger.debug(
            "%s %s <- %s",
            self.lp,
            record.name,
            payload,
            extra={"serial": record.serial, "transport": "local" if local else "remote"},
        )
        match transport:
            case LocalTransport() as target:
                await self.local_api.send_command(target, payload)
            case RemoteTransport(token_id=token_id):
                await self.cloud_api.send_device_commands(token_id, record.serial, payload)

    async def _with_rediscovery(
        self,
        serial: str,
        operation: Callable[[DeviceRecord], Awaitable[None]],
        *,
        allow_rediscovery: bool = True,
    ) -> None:
        """Run ``operation`` against the zone, rediscovering and retrying on transport failure.

        The record (and with it the transport) is resolved again for every
        attempt, so a retry after rediscovery may take the other path.
        """
        lp = f"{self.lp}:{serial}:"
        attempt = 0
        while True:
            record = self.directory.require(serial)
            try:
                await operation(record)
            except TransportError as e:
                if not allow_rediscovery or not self.retry_policy.should_retry(attempt):
                    raise
                if self.session.stopped:
                    logger.debug("%s Client stopped, not rediscovering", lp)
                    raise
                logger.warning("%s %s, rediscovering before retry", lp, e, extra={"serial": serial, "attempt": attempt + 1})
                try:
                    await self.discovery.discover()
                except KumoError as discovery_err:
                    logger.warning("%s Rediscovery failed: %s", lp, discovery_err)
                    raise e from discovery_err
                await asyncio.sleep(self.retry_policy.get_delay(attempt))
                attempt += 1
            else:
                return

    async def update(self, serial: str) -> None:
        """Fetch the zone's current status and apply it to its state model.

        Raises:
            NotFoundError: the serial has not been discovered.
            TransportError: the call and its single retry both failed.
            MalformedResponseError: the status response lacked the expected fields.

        """
        with correlation_context("update"):
            await self._with_rediscovery(serial, self._update_record)

    async def execute(self, serial: str, command: CommandName | str, value: object) -> None:
        """Send one command (Mode, CoolTarget or HeatTarget) to a zone.

        Setpoints are clamped into the zone's limits. The state model is not
        refreshed; the next update (or ``set_state``) picks up the change.

        Raises:
            NotFoundError: the serial has not been discovered.
            InvalidCommandError: the command or value is invalid; raised before any I/O.
            TransportError: the call and its single retry both failed.

        """
        with correlation_context("execute"):
            record = self.directory.require(serial)
            _ = build_command(command, value, record.limits, local=True)
            logger.info("%s execute %s %s=%s", self.lp, record.name, command, value, extra={"serial": serial})
            await self._with_rediscovery(serial, lambda r: self._send_command(r, command, value))

    async def set_state(
        self,
        serial: str,
        *,
        mode: ThermostatMode | str | None = None,
        cool_target: float | None = None,
        heat_target: float | None = None,
    ) -> None:
        """Apply any of mode/cool target/heat target concurrently, then refresh the zone's state."""
        requested: list[tuple[CommandName, object]] = []
        if mode is not None:
            requested.append((CommandName.MODE, mode))
        if cool_target is not None:
            requested.append((CommandName.COOL_TARGET, cool_target))
        if heat_target is not None:
            requested.append((CommandName.HEAT_TARGET, heat_target))

        # Validate everything before sending anything
        record = self.directory.require(serial)
        for command, value in requested:
            _ = build_command(command, value, record.limits, local=True)

        _ = await asyncio.gather(*(self.execute(serial, command, value) for command, value in requested))
        await self.update(serial)

    async def start(self) -> list[DeviceRecord]:
        """Discover zones, fetch each zone's first status, then notify "available".

        Raises:
            AuthError: credentials missing or rejected.

        """
        lp = f"{self.lp}:start:"
        self.session.start()
        with correlation_context("start"):
            await self.discovery.discover()
            serials = self.directory.serials
            results = await asyncio.gather(*(self.update(serial) for serial in serials), return_exceptions=True)
            for serial, result in zip(serials, results, strict=True):
                if isinstance(result, KumoError):
                    logger.warning("%s Initial status for %s failed: %s", lp, serial, result)
                elif isinstance(result, BaseException):
                    raise result

            self._available.set()
            logger.info("%s %d zone(s) available", lp, len(serials))
            for callback in self._available_subscribers:
                self._notify_available(callback)
            self._available_subscribers.clear()
        return self.devices

    async def stop(self) -> None:
        """Cancel the token timer, discovery, polling and background re-queries, then close HTTP sessions."""
        await self.session.stop()
        await self.discovery.stop()
        for task in list(self._background):
            _ = task.cancel()
        for task in list(self._background):
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await self.directory.clear()
        await self.cloud_api.close()
        await self.local_api.close()
        logger.debug("%s stopped", self.lp)

    async def __aenter__(self) -> Self:
        try:
            _ = await self.start()
        except BaseException:
            await self.stop()
            raise
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()
