"""System bus connection, BlueZ signal dispatch and the wait primitive.

Every wait in the pairing workflow goes through :meth:`BluezBus.pump_until`:
the coroutine sleeps on an activity event that the message handler sets
after it has applied an incoming signal to the registry, then re-checks
its predicate.  dbus-next runs message handlers on the event loop, so an
update is always visible to the predicate evaluated after the wake-up.
"""

import asyncio
import logging
from collections.abc import Callable

from dbus_next import BusType, Message, MessageType
from dbus_next.aio import MessageBus

from ..registry import ObjectRegistry
from .constants import (
    ADAPTER_INTERFACE,
    BLUEZ_SERVICE,
    BLUEZ_SIGNAL_MATCH,
    DBUS_INTERFACE,
    DBUS_PATH,
    DBUS_SERVICE,
    DEVICE_INTERFACE,
    OBJECT_MANAGER_INTERFACE,
    PROPERTIES_INTERFACE,
)
from .pending import PendingCall
from .properties import apply_adapter_properties, apply_device_properties

logger = logging.getLogger(__name__)

MANAGED_OBJECTS_SIGNATURE = "a{oa{sa{sv}}}"


class SnapshotError(RuntimeError):
    """GetManagedObjects returned something other than the object tree."""


class BluezBus:
    """Keeps an :class:`ObjectRegistry` in sync with BlueZ over D-Bus."""

    def __init__(
        self,
        bus: MessageBus,
        registry: ObjectRegistry,
        pump_interval: float = 0.1,
    ):
        self._bus = bus
        self.registry = registry
        self._pump_interval = pump_interval
        self._activity = asyncio.Event()
        self._started = False

    @classmethod
    async def connect(
        cls, registry: ObjectRegistry, pump_interval: float = 0.1
    ) -> "BluezBus":
        """Connect to the system bus."""
        bus = await MessageBus(bus_type=BusType.SYSTEM).connect()
        logger.info("Connected to system D-Bus")
        return cls(bus, registry, pump_interval)

    @property
    def bus(self) -> MessageBus:
        return self._bus

    async def start(self) -> None:
        """Install the signal handler and subscribe to BlueZ signals."""
        if self._started:
            return
        self._bus.add_message_handler(self._on_message)
        self._started = True
        await self.issue(
            Message(
                destination=DBUS_SERVICE,
                path=DBUS_PATH,
                interface=DBUS_INTERFACE,
                member="AddMatch",
                signature="s",
                body=[BLUEZ_SIGNAL_MATCH],
            )
        ).result()
        logger.debug("Subscribed to %s", BLUEZ_SIGNAL_MATCH)

    async def load_managed_objects(self) -> None:
        """Populate the registry from ObjectManager.GetManagedObjects.

        Raises SnapshotError if the reply does not have the documented shape.
        """
        call = self.issue(
            Message(
                destination=BLUEZ_SERVICE,
                path="/",
                interface=OBJECT_MANAGER_INTERFACE,
                member="GetManagedObjects",
            )
        )
        reply = await call.result()
        signature = call.reply.signature
        if signature != MANAGED_OBJECTS_SIGNATURE or len(reply) != 1:
            raise SnapshotError(
                f"GetManagedObjects replied with signature {signature!r}"
            )
        objects = reply[0]
        if not isinstance(objects, dict):
            raise SnapshotError("GetManagedObjects reply is not an object dictionary")
        for path, interfaces in objects.items():
            self._apply_interfaces(path, interfaces)
        logger.info(
            "BlueZ reports %d adapter(s) and %d device(s)",
            len(self.registry.adapters), len(self.registry.devices),
        )

    def issue(self, message: Message) -> PendingCall:
        return PendingCall.issue(self._bus, message)

    async def pump(self, timeout: float | None = None) -> None:
        """Let the bus dispatch messages for at most ``timeout`` seconds.

        Returns early as soon as a BlueZ signal has been applied.
        """
        if timeout is None:
            timeout = self._pump_interval
        self._activity.clear()
        try:
            await asyncio.wait_for(self._activity.wait(), timeout)
        except asyncio.TimeoutError:
            pass

    async def pump_until(self, predicate: Callable[[], bool], timeout: float) -> bool:
        """Pump until ``predicate()`` is true or ``timeout`` seconds pass.

        The predicate is checked before the first pump and after each one.
        Returns the final value of the predicate.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            remaining = deadline - loop.time()
            if remaining <= 0:
                return False
            await self.pump(min(remaining, self._pump_interval))
        return True

    def disconnect(self) -> None:
        if self._started:
            self._bus.remove_message_handler(self._on_message)
            self._started = False
        self._bus.disconnect()

    def _on_message(self, msg: Message) -> None:
        if msg.message_type != MessageType.SIGNAL:
            return
        try:
            if msg.interface == PROPERTIES_INTERFACE and msg.member == "PropertiesChanged":
                self._on_properties_changed(msg)
            elif msg.interface == OBJECT_MANAGER_INTERFACE and msg.member == "InterfacesAdded":
                path, interfaces = msg.body[0], msg.body[1]
                logger.debug("InterfacesAdded %s: %s", path, sorted(interfaces))
                self._apply_interfaces(path, interfaces)
            elif msg.interface == OBJECT_MANAGER_INTERFACE and msg.member == "InterfacesRemoved":
                self._on_interfaces_removed(msg.body[0], msg.body[1])
            else:
                return
        except (IndexError, TypeError, AttributeError) as e:
            logger.warning(
                "Malformed %s.%s signal from %s: %s",
                msg.interface, msg.member, msg.path, e,
            )
            return
        self._activity.set()

    def _on_properties_changed(self, msg: Message) -> None:
        interface, changed = msg.body[0], msg.body[1]
        if interface == ADAPTER_INTERFACE:
            logger.debug("Adapter %s changed: %s", msg.path, sorted(changed))
            apply_adapter_properties(self.registry.get_or_create_adapter(msg.path), changed)
        elif interface == DEVICE_INTERFACE:
            logger.debug("Device %s changed: %s", msg.path, sorted(changed))
            apply_device_properties(
                self.registry, self.registry.get_or_create_device(msg.path), changed
            )

    def _apply_interfaces(self, path: str, interfaces: dict) -> None:
        if ADAPTER_INTERFACE in interfaces:
            apply_adapter_properties(
                self.registry.get_or_create_adapter(path), interfaces[ADAPTER_INTERFACE]
            )
        if DEVICE_INTERFACE in interfaces:
            apply_device_properties(
                self.registry,
                self.registry.get_or_create_device(path),
                interfaces[DEVICE_INTERFACE],
            )

    def _on_interfaces_removed(self, path: str, interfaces: list) -> None:
        if ADAPTER_INTERFACE in interfaces:
            self.registry.remove_adapter(path)
        if DEVICE_INTERFACE in interfaces:
            self.registry.remove_device(path)
