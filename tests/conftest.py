"""Shared fixtures: a scripted stand-in for BlueZ on the system bus.

``FakeBluez`` plays the part of ``dbus_next.aio.MessageBus``: it answers
the method calls bluepairy makes the way BlueZ would and emits the
matching PropertiesChanged / InterfacesAdded / InterfacesRemoved signals
to the installed message handlers before replying.
"""

from __future__ import annotations

import asyncio

import pytest
from dbus_next import Message, Variant

from bluepairy.bluez.bus import BluezBus
from bluepairy.bluez.constants import (
    ADAPTER_INTERFACE,
    DEVICE_INTERFACE,
    HID_UUID,
    OBJECT_MANAGER_INTERFACE,
    PROPERTIES_INTERFACE,
    SPP_UUID,
)
from bluepairy.config import AppConfig
from bluepairy.registry import ObjectRegistry

HCI0 = "/org/bluez/hci0"
HCI1 = "/org/bluez/hci1"
HID = HID_UUID
SPP = SPP_UUID


def device_path(address: str, adapter: str = HCI0) -> str:
    return f"{adapter}/dev_{address.replace(':', '_')}"


def adapter_props(address: str, powered: bool = False, discovering: bool = False) -> dict:
    return {
        "Address": Variant("s", address),
        "Name": Variant("s", "test"),
        "Powered": Variant("b", powered),
        "Discovering": Variant("b", discovering),
    }


def device_props(
    address: str,
    name: str,
    adapter: str = HCI0,
    paired: bool = False,
    trusted: bool = False,
    uuids: tuple[str, ...] = (),
) -> dict:
    return {
        "Address": Variant("s", address),
        "Name": Variant("s", name),
        "Paired": Variant("b", paired),
        "Trusted": Variant("b", trusted),
        "Connected": Variant("b", False),
        "UUIDs": Variant("as", list(uuids)),
        "Adapter": Variant("o", adapter),
    }


class FakeBluez:
    """Scripted BlueZ daemon behind a MessageBus-like interface."""

    def __init__(self) -> None:
        self.objects: dict[str, dict[str, dict[str, Variant]]] = {}
        self.handlers: list = []
        self.calls: list[Message] = []
        self.exported: dict[str, object] = {}
        self.disconnected = False
        # Devices that appear (InterfacesAdded) once discovery starts
        self.discoverable: dict[str, dict[str, Variant]] = {}
        # Error names to answer instead of success
        self.pair_errors: dict[str, list[str]] = {}
        self.connect_errors: dict[str, str] = {}
        self.method_errors: dict[tuple[str, str], str] = {}
        # Properties whose Set is acknowledged but never takes effect
        self.ignored_sets: set[str] = set()
        # Pair removes the device, as BlueZ does for temporary devices
        self.remove_on_pair_failure = False
        self.managed_objects_reply: tuple[str, list] | None = None
        self._serial = 0

    # -- MessageBus surface --------------------------------------------

    def add_message_handler(self, handler) -> None:
        self.handlers.append(handler)

    def remove_message_handler(self, handler) -> None:
        self.handlers.remove(handler)

    def export(self, path: str, interface) -> None:
        self.exported[path] = interface

    def unexport(self, path: str, interface=None) -> None:
        self.exported.pop(path, None)

    def disconnect(self) -> None:
        self.disconnected = True

    async def call(self, msg: Message) -> Message:
        self._serial += 1
        msg.serial = self._serial
        self.calls.append(msg)
        await asyncio.sleep(0)
        error = self.method_errors.get((msg.interface, msg.member))
        if error:
            return Message.new_error(msg, error, f"{msg.member} failed")
        handler = getattr(self, f"_on_{msg.member}", None)
        if handler is None:
            return Message.new_method_return(msg)
        return handler(msg)

    # -- scripting helpers ---------------------------------------------

    def add_adapter(self, path: str = HCI0, address: str = "00:11:22:33:44:55", **kw) -> str:
        self.objects[path] = {ADAPTER_INTERFACE: adapter_props(address, **kw)}
        return path

    def add_device(self, address: str, name: str, adapter: str = HCI0, **kw) -> str:
        path = device_path(address, adapter)
        self.objects[path] = {DEVICE_INTERFACE: device_props(address, name, adapter, **kw)}
        return path

    def emit(self, msg: Message) -> None:
        for handler in list(self.handlers):
            handler(msg)

    def change(self, path: str, interface: str, **changed) -> None:
        variants = {}
        for name, value in changed.items():
            signature = "b" if isinstance(value, bool) else "s"
            if isinstance(value, list):
                signature = "as"
            variants[name] = Variant(signature, value)
        self.objects.setdefault(path, {}).setdefault(interface, {}).update(variants)
        self.emit(
            Message.new_signal(
                path, PROPERTIES_INTERFACE, "PropertiesChanged",
                "sa{sv}as", [interface, variants, []],
            )
        )

    def announce(self, path: str, interfaces: dict) -> None:
        self.objects[path] = interfaces
        self.emit(
            Message.new_signal(
                "/", OBJECT_MANAGER_INTERFACE, "InterfacesAdded",
                "oa{sa{sv}}", [path, interfaces],
            )
        )

    def remove(self, path: str) -> None:
        interfaces = self.objects.pop(path, {})
        self.emit(
            Message.new_signal(
                "/", OBJECT_MANAGER_INTERFACE, "InterfacesRemoved",
                "oas", [path, sorted(interfaces) or [DEVICE_INTERFACE]],
            )
        )

    def called(self, member: str) -> list[Message]:
        return [m for m in self.calls if m.member == member]

    # -- BlueZ behaviour -----------------------------------------------

    def _on_GetManagedObjects(self, msg: Message) -> Message:
        if self.managed_objects_reply is not None:
            signature, body = self.managed_objects_reply
            return Message.new_method_return(msg, signature, body)
        return Message.new_method_return(msg, "a{oa{sa{sv}}}", [self.objects])

    def _on_Set(self, msg: Message) -> Message:
        interface, name, variant = msg.body
        if name not in self.ignored_sets:
            self.change(msg.path, interface, **{name: variant.value})
        return Message.new_method_return(msg)

    def _on_StartDiscovery(self, msg: Message) -> Message:
        self.change(msg.path, ADAPTER_INTERFACE, Discovering=True)
        for path, props in list(self.discoverable.items()):
            if path.startswith(msg.path + "/"):
                del self.discoverable[path]
                asyncio.get_running_loop().call_later(
                    0.02, self.announce, path, {DEVICE_INTERFACE: props}
                )
        return Message.new_method_return(msg)

    def _on_Pair(self, msg: Message) -> Message:
        errors = self.pair_errors.get(msg.path)
        if errors:
            error = errors.pop(0)
            if self.remove_on_pair_failure:
                self.remove(msg.path)
            return Message.new_error(msg, error, "Pairing failed")
        self.change(msg.path, DEVICE_INTERFACE, Paired=True)
        return Message.new_method_return(msg)

    def _on_ConnectProfile(self, msg: Message) -> Message:
        uuid = msg.body[0]
        error = self.connect_errors.get(uuid)
        if error:
            return Message.new_error(msg, error, f"Connecting {uuid} failed")
        self.change(msg.path, DEVICE_INTERFACE, Connected=True)
        return Message.new_method_return(msg)

    def _on_RemoveDevice(self, msg: Message) -> Message:
        self.remove(msg.body[0])
        return Message.new_method_return(msg)


def error_reply(name: str, text: str = "boom") -> Message:
    call = Message(destination="org.bluez", path=HCI0, interface="org.bluez.Adapter1", member="X")
    call.serial = 1
    return Message.new_error(call, name, text)


@pytest.fixture
def fake_bus() -> FakeBluez:
    return FakeBluez()


@pytest.fixture
def registry() -> ObjectRegistry:
    return ObjectRegistry()


@pytest.fixture
def bluez(fake_bus: FakeBluez, registry: ObjectRegistry) -> BluezBus:
    return BluezBus(fake_bus, registry, pump_interval=0.01)


@pytest.fixture
def fast_config() -> AppConfig:
    return AppConfig(
        power_timeout=0.2,
        overall_timeout=1.0,
        discovery_timeout=0.3,
        profile_timeout=0.3,
        pump_interval=0.01,
    )

