"""BlueZ Device1 record and the commands issued against it."""

from dataclasses import dataclass, field

from dbus_next import Message, Variant

from .constants import BLUEZ_SERVICE, DEVICE_INTERFACE, PROPERTIES_INTERFACE


@dataclass(eq=False)
class Device:
    """Local mirror of one org.bluez.Device1 object.

    ``adapter_path`` names the owning adapter; resolve it through the
    registry, since the adapter may vanish before the device does.
    """

    path: str
    address: str = ""
    name: str = ""
    paired: bool = False
    trusted: bool = False
    connected: bool = False
    uuids: set[str] = field(default_factory=set)
    adapter_path: str | None = None

    def __str__(self) -> str:
        if self.name:
            return f"{self.name} ({self.address or self.path})"
        return self.address or self.path


def pair_message(device: Device) -> Message:
    return Message(
        destination=BLUEZ_SERVICE,
        path=device.path,
        interface=DEVICE_INTERFACE,
        member="Pair",
    )


def set_trusted_message(device: Device, trusted: bool = True) -> Message:
    return Message(
        destination=BLUEZ_SERVICE,
        path=device.path,
        interface=PROPERTIES_INTERFACE,
        member="Set",
        signature="ssv",
        body=[DEVICE_INTERFACE, "Trusted", Variant("b", trusted)],
    )


def connect_profile_message(device: Device, uuid: str) -> Message:
    return Message(
        destination=BLUEZ_SERVICE,
        path=device.path,
        interface=DEVICE_INTERFACE,
        member="ConnectProfile",
        signature="s",
        body=[uuid],
    )
