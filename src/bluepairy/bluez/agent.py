"""BlueZ Agent1 implementation answering authentication requests while pairing."""

import asyncio
import logging

from dbus_next import Message
from dbus_next.service import ServiceInterface, method

from ..pin import PinPolicy, guess_pin
from ..registry import ObjectRegistry
from .constants import (
    AGENT_CAPABILITY,
    AGENT_INTERFACE,
    AGENT_MANAGER_INTERFACE,
    BLUEZ_ROOT_PATH,
    BLUEZ_SERVICE,
    DEFAULT_AGENT_PATH,
)
from .errors import BluezError

logger = logging.getLogger(__name__)


class AgentHandler:
    """Decides the answers to BlueZ agent requests.

    Holds no state of its own; device names come from the registry.
    """

    def __init__(self, registry: ObjectRegistry, pin_policy: PinPolicy = guess_pin):
        self._registry = registry
        self._pin_policy = pin_policy

    def request_pin_code(self, device_path: str) -> str:
        device = self._registry.get_or_create_device(device_path)
        pin = self._pin_policy(device.name)
        logger.info("PIN code requested for %s, answering %s", device, pin)
        return pin

    def request_confirmation(self, device_path: str, passkey: int) -> None:
        device = self._registry.get_or_create_device(device_path)
        logger.info("Confirming passkey %06d for %s", passkey, device)

    def ignore(self, request: str, *args) -> None:
        logger.info("Ignoring agent request %s%r", request, args)


class AgentInterface(ServiceInterface):
    """D-Bus face of :class:`AgentHandler` (org.bluez.Agent1)."""

    def __init__(self, handler: AgentHandler):
        super().__init__(AGENT_INTERFACE)
        self._handler = handler

    @method()
    def RequestPinCode(self, device: "o") -> "s":
        return self._handler.request_pin_code(device)

    @method()
    def RequestConfirmation(self, device: "o", passkey: "u") -> None:
        self._handler.request_confirmation(device, passkey)

    @method()
    def DisplayPinCode(self, device: "o", pincode: "s") -> None:
        self._handler.ignore("DisplayPinCode", device, pincode)

    @method()
    def DisplayPasskey(self, device: "o", passkey: "u", entered: "q") -> None:
        self._handler.ignore("DisplayPasskey", device, passkey, entered)

    @method()
    def RequestAuthorization(self, device: "o") -> None:
        self._handler.ignore("RequestAuthorization", device)

    @method()
    def AuthorizeService(self, device: "o", uuid: "s") -> None:
        self._handler.ignore("AuthorizeService", device, uuid)

    @method()
    def Release(self) -> None:
        self._handler.ignore("Release")

    @method()
    def Cancel(self) -> None:
        self._handler.ignore("Cancel")


class PairingAgent:
    """Exports the agent and registers it with BlueZ for this process."""

    def __init__(self, bluez, handler: AgentHandler, path: str = DEFAULT_AGENT_PATH):
        self._bluez = bluez
        self._path = path
        self._agent = AgentInterface(handler)
        self._registered = False

    def _agent_manager_call(self, member: str, signature: str, body: list) -> Message:
        return Message(
            destination=BLUEZ_SERVICE,
            path=BLUEZ_ROOT_PATH,
            interface=AGENT_MANAGER_INTERFACE,
            member=member,
            signature=signature,
            body=body,
        )

    async def register(self) -> None:
        """Export the agent interface and register it with BlueZ."""
        self._bluez.bus.export(self._path, self._agent)
        try:
            await self._bluez.issue(
                self._agent_manager_call(
                    "RegisterAgent", "os", [self._path, AGENT_CAPABILITY]
                )
            ).result()
        except BluezError:
            self._bluez.bus.unexport(self._path, self._agent)
            raise
        self._registered = True
        logger.info(
            "Pairing agent registered at %s (capability: %s)",
            self._path, AGENT_CAPABILITY,
        )

    async def unregister(self) -> None:
        """Unregister the agent from BlueZ."""
        if not self._registered:
            return
        try:
            await self._bluez.issue(
                self._agent_manager_call("UnregisterAgent", "o", [self._path])
            ).result(timeout=5)
        except (BluezError, asyncio.TimeoutError) as e:
            logger.debug("Agent unregister failed (may already be gone): %s", e)
        finally:
            self._bluez.bus.unexport(self._path, self._agent)
            self._registered = False
        logger.info("Pairing agent unregistered")
