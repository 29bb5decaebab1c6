"""BlueZ Adapter1 record and the commands issued against it."""

from dataclasses import dataclass

from dbus_next import Message, Variant

from .constants import ADAPTER_INTERFACE, BLUEZ_SERVICE, PROPERTIES_INTERFACE


@dataclass(eq=False)
class Adapter:
    """Local mirror of one org.bluez.Adapter1 object."""

    path: str
    address: str = ""
    name: str = ""
    powered: bool = False
    discovering: bool = False

    def __str__(self) -> str:
        return self.address or self.path


def set_powered_message(adapter: Adapter, powered: bool = True) -> Message:
    return Message(
        destination=BLUEZ_SERVICE,
        path=adapter.path,
        interface=PROPERTIES_INTERFACE,
        member="Set",
        signature="ssv",
        body=[ADAPTER_INTERFACE, "Powered", Variant("b", powered)],
    )


def start_discovery_message(adapter: Adapter) -> Message:
    return Message(
        destination=BLUEZ_SERVICE,
        path=adapter.path,
        interface=ADAPTER_INTERFACE,
        member="StartDiscovery",
    )


def remove_device_message(adapter: Adapter, device_path: str) -> Message:
    """Unpair and forget ``device_path``; BlueZ answers with InterfacesRemoved."""
    return Message(
        destination=BLUEZ_SERVICE,
        path=adapter.path,
        interface=ADAPTER_INTERFACE,
        member="RemoveDevice",
        signature="o",
        body=[device_path],
    )
