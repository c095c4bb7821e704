from kumo_controller.devices.directory import ZoneDirectory
from kumo_controller.devices.thermostat import DeviceRecord, UpdateCallback

__all__ = ["DeviceRecord", "UpdateCallback", "ZoneDirectory"]
