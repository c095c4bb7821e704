"""Zone discovery: log in, flatten the site tree, resolve LAN addresses, upsert records."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable
from typing import cast

from pydantic import ValidationError

from kumo_controller.address_resolution import AddressResolver
from kumo_controller.devices.directory import ZoneDirectory
from kumo_controller.devices.thermostat import DeviceRecord
from kumo_controller.exceptions import AuthError
from kumo_controller.logging_abstraction import get_logger
from kumo_controller.session import SessionManager
from kumo_controller.structs import SiteDict, ZoneDescriptor

logger = get_logger(__name__)

__all__ = ["DiscoveryPipeline", "parse_site_tree"]

RecordHook = Callable[[DeviceRecord], object]


def parse_site_tree(site: SiteDict | None) -> list[ZoneDescriptor]:
    """Flatten every ``zoneTable`` in a site tree into zone descriptors.

    Sites nest through ``children``. A serial that appears more than once is
    kept once (first occurrence); entries that fail validation are skipped.
    """
    zones: dict[str, ZoneDescriptor] = {}
    pending: list[SiteDict] = [site] if site else []
    while pending:
        node = pending.pop(0)
        if not isinstance(node, dict):
            continue
        zone_table = node.get("zoneTable") or {}
        if isinstance(zone_table, dict):
            for key, raw in zone_table.items():
                if not isinstance(raw, dict):
                    logger.warning("Zone entry %s is not an object, skipping", key)
                    continue
                data = cast("dict[str, object]", raw)
                try:
                    zone = ZoneDescriptor.model_validate({"serial": key, **data})
                except ValidationError as e:
                    logger.warning("Zone %s failed validation, skipping: %s", key, e.errors(include_url=False))
                    continue
                if zone.serial in zones:
                    logger.debug("Zone %s listed twice in site tree, keeping first", zone.serial)
                    continue
                zones[zone.serial] = zone
        pending.extend(node.get("children") or [])
    return list(zones.values())


class DiscoveryPipeline:
    """Idempotent discovery pass. Concurrent callers share one in-flight pass.

    Args:
        session: Session manager used to log in (and obtain the site tree)
        directory: Zone directory to upsert into
        resolver: MAC to IP lookup collaborator
        on_created: Called with each newly created record
        on_refreshed: Called with each existing record after an in-place refresh

    """

    lp: str = "DiscoveryPipeline"

    def __init__(
        self,
        session: SessionManager,
        directory: ZoneDirectory,
        resolver: AddressResolver,
        on_created: RecordHook | None = None,
        on_refreshed: RecordHook | None = None,
    ) -> None:
        self.session: SessionManager = session
        self.directory: ZoneDirectory = directory
        self.resolver: AddressResolver = resolver
        self.on_created: RecordHook | None = on_created
        self.on_refreshed: RecordHook | None = on_refreshed
        self._inflight: asyncio.Task[None] | None = None

    async def discover(self) -> None:
        """Run a discovery pass, or join the one already running.

        Raises:
            AuthError: credentials are missing or login failed.
            MalformedResponseError: the login response had no token.

        """
        if not self.session.has_credentials:
            raise AuthError("missing_credentials")
        if self.session.stopped:
            logger.debug("%s Stopped, skipping discovery", self.lp)
            return
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.create_task(self._run(), name="kumo-discovery")
        await asyncio.shield(self._inflight)

    async def _lookup(self, zone: ZoneDescriptor) -> str | None:
        if not zone.mac:
            return None
        try:
            return await self.resolver.resolve(zone.mac)
        except Exception as e:
            logger.warning("%s Address lookup for %s failed, using cloud: %s", self.lp, zone.serial, e)
            return None

    async def _run(self) -> None:
        lp = f"{self.lp}:discover:"
        result = await self.session.acquire_session()
        zones = parse_site_tree(result.site)
        logger.debug("%s Site tree lists %d zone(s)", lp, len(zones))

        addresses = await asyncio.gather(*(self._lookup(zone) for zone in zones))
        if self.session.stopped:
            logger.debug("%s Stopped during discovery, directory left unchanged", lp)
            return

        for zone, ip in zip(zones, addresses, strict=True):
            record, created = self.directory.upsert(zone, ip)
            hook = self.on_created if created else self.on_refreshed
            if hook is not None:
                try:
                    _ = hook(record)
                except Exception:
                    logger.exception("%s Discovery hook failed for %s", lp, record.serial)

        logger.info(
            "%s Discovered %d zone(s), %d reachable on LAN",
            lp,
            len(zones),
            sum(1 for ip in addresses if ip),
        )

    async def stop(self) -> None:
        task = self._inflight
        self._inflight = None
        if task is not None and not task.done():
            _ = task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
