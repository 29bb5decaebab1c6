"""Registry of the BlueZ adapters and devices currently known to exist.

Records are created on first reference and evicted only when BlueZ
announces their removal (InterfacesRemoved).  Fields are updated in
place, so a record obtained earlier stays valid until it is evicted;
use :meth:`ObjectRegistry.exists` to find out whether it has been.
"""

import logging

from .bluez.adapter import Adapter
from .bluez.device import Device

logger = logging.getLogger(__name__)


class ObjectRegistry:
    """Owns every Adapter and Device record, keyed by object path."""

    def __init__(self):
        self._adapters: dict[str, Adapter] = {}
        self._devices: dict[str, Device] = {}

    def get_or_create_adapter(self, path: str) -> Adapter:
        adapter = self._adapters.get(path)
        if adapter is None:
            adapter = Adapter(path)
            self._adapters[path] = adapter
            logger.debug("Tracking adapter %s", path)
        return adapter

    def get_or_create_device(self, path: str) -> Device:
        device = self._devices.get(path)
        if device is None:
            device = Device(path)
            self._devices[path] = device
            logger.debug("Tracking device %s", path)
        return device

    def remove_adapter(self, path: str) -> None:
        if self._adapters.pop(path, None) is None:
            logger.info("Removal of unknown adapter %s ignored", path)
        else:
            logger.info("Adapter %s removed", path)

    def remove_device(self, path: str) -> None:
        if self._devices.pop(path, None) is None:
            logger.info("Removal of unknown device %s ignored", path)
        else:
            logger.info("Device %s removed", path)

    def exists(self, record: Adapter | Device) -> bool:
        """True while ``record`` is still the live record for its path."""
        if isinstance(record, Adapter):
            return self._adapters.get(record.path) is record
        return self._devices.get(record.path) is record

    def adapter_of(self, device: Device) -> Adapter | None:
        """The device's adapter, or None if unset or no longer present."""
        if not device.adapter_path:
            return None
        return self._adapters.get(device.adapter_path)

    @property
    def adapters(self) -> list[Adapter]:
        return list(self._adapters.values())

    @property
    def devices(self) -> list[Device]:
        return list(self._devices.values())
