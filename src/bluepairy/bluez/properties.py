"""Apply BlueZ property dictionaries to Adapter and Device records.

The same dictionaries arrive from GetManagedObjects, InterfacesAdded and
PropertiesChanged: property name -> ``dbus_next.Variant``.  Every property
we mirror has a declared kind; values of any other D-Bus type are ignored
rather than coerced.
"""

import enum
import logging
from typing import TYPE_CHECKING

from dbus_next import Variant

from .adapter import Adapter
from .device import Device

if TYPE_CHECKING:
    from ..registry import ObjectRegistry

logger = logging.getLogger(__name__)


class PropertyKind(enum.Enum):
    """D-Bus signature of each property kind we understand."""

    STRING = "s"
    BOOLEAN = "b"
    STRING_ARRAY = "as"
    OBJECT_PATH = "o"


# property name -> (kind, record attribute)
ADAPTER_PROPERTIES = {
    "Address": (PropertyKind.STRING, "address"),
    "Name": (PropertyKind.STRING, "name"),
    "Powered": (PropertyKind.BOOLEAN, "powered"),
    "Discovering": (PropertyKind.BOOLEAN, "discovering"),
}

DEVICE_PROPERTIES = {
    "Address": (PropertyKind.STRING, "address"),
    "Name": (PropertyKind.STRING, "name"),
    "Paired": (PropertyKind.BOOLEAN, "paired"),
    "Trusted": (PropertyKind.BOOLEAN, "trusted"),
    "Connected": (PropertyKind.BOOLEAN, "connected"),
    "UUIDs": (PropertyKind.STRING_ARRAY, "uuids"),
    "Adapter": (PropertyKind.OBJECT_PATH, "adapter_path"),
}

# Object paths meaning "no object"
_NULL_PATHS = ("", "/")


def _decode(name: str, value, kind: PropertyKind):
    """Return the Python value for ``value``, or None if it has the wrong kind."""
    if not isinstance(value, Variant) or value.signature != kind.value:
        logger.debug(
            "Ignoring %s: expected %s, got %r", name, kind.value,
            value.signature if isinstance(value, Variant) else value,
        )
        return None
    if kind is PropertyKind.STRING_ARRAY:
        return {uuid.lower() for uuid in value.value}
    if kind is PropertyKind.BOOLEAN:
        return bool(value.value)
    return value.value


def apply_adapter_properties(adapter: Adapter, properties: dict) -> None:
    """Update ``adapter`` from the properties present in ``properties``."""
    for name, raw in properties.items():
        entry = ADAPTER_PROPERTIES.get(name)
        if entry is None:
            continue
        kind, attribute = entry
        value = _decode(name, raw, kind)
        if value is not None:
            setattr(adapter, attribute, value)


def apply_device_properties(
    registry: "ObjectRegistry", device: Device, properties: dict
) -> None:
    """Update ``device`` from the properties present in ``properties``.

    ``UUIDs`` replaces the whole profile set.  ``Adapter`` registers the
    referenced adapter if it is new; a null path clears the reference.
    """
    for name, raw in properties.items():
        entry = DEVICE_PROPERTIES.get(name)
        if entry is None:
            continue
        kind, attribute = entry
        value = _decode(name, raw, kind)
        if value is None:
            continue
        if kind is PropertyKind.OBJECT_PATH:
            if value in _NULL_PATHS:
                value = None
            else:
                value = registry.get_or_create_adapter(value).path
        setattr(device, attribute, value)
