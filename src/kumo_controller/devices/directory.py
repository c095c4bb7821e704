"""Serial-keyed directory of discovered zones."""

from __future__ import annotations

from collections.abc import Iterator

from kumo_controller.devices.thermostat import DeviceRecord
from kumo_controller.exceptions import NotFoundError
from kumo_controller.logging_abstraction import get_logger
from kumo_controller.structs import ZoneDescriptor

logger = get_logger(__name__)

__all__ = ["ZoneDirectory"]


class ZoneDirectory:
    """Holds exactly one DeviceRecord per serial.

    Only the discovery upsert path adds or refreshes records.
    """

    def __init__(self) -> None:
        self._records: dict[str, DeviceRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, serial: object) -> bool:
        return serial in self._records

    def __iter__(self) -> Iterator[DeviceRecord]:
        return iter(list(self._records.values()))

    @property
    def serials(self) -> list[str]:
        return list(self._records)

    def get(self, serial: str) -> DeviceRecord | None:
        return self._records.get(serial)

    def require(self, serial: str) -> DeviceRecord:
        record = self._records.get(serial)
        if record is None:
            raise NotFoundError(serial)
        return record

    def upsert(self, zone: ZoneDescriptor, ip: str | None) -> tuple[DeviceRecord, bool]:
        """Refresh the record for ``zone.serial`` in place, or create it.

        Returns:
            The record and whether it was newly created.

        """
        record = self._records.get(zone.serial)
        if record is not None:
            record.refresh(zone, ip)
            return record, False

        record = DeviceRecord(zone, ip)
        self._records[zone.serial] = record
        logger.info(
            "ZoneDirectory:upsert: New zone %s (%s)",
            record.device_id,
            record.name,
            extra={"serial": zone.serial, "ip": ip, "route": "local" if record.local_transport() else "remote"},
        )
        return record, True

    async def clear(self) -> None:
        for record in self._records.values():
            await record.destroy()
        self._records.clear()
