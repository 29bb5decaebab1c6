"""Pairing workflow: power adapters, discover, pair, trust, connect.

Every step issues calls through :class:`~bluepairy.bluez.bus.BluezBus`
and then waits with ``pump_until`` for BlueZ to report the resulting
state, so the registry stays current and agent requests are answered
while the workflow waits.
"""

import asyncio
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass

from .bluez.adapter import (
    Adapter,
    remove_device_message,
    set_powered_message,
    start_discovery_message,
)
from .bluez.bus import BluezBus
from .bluez.device import (
    Device,
    connect_profile_message,
    pair_message,
    set_trusted_message,
)
from .bluez.errors import AUTHENTICATION_ERRORS, AlreadyConnected, AlreadyExists, BluezError
from .config import AppConfig

logger = logging.getLogger(__name__)


class PairingError(Exception):
    """The workflow could not produce a usable device."""


class NoAdapterError(PairingError):
    pass


class PowerUpError(PairingError):
    pass


class DiscoveryError(PairingError):
    pass


class WorkflowTimeout(PairingError):
    pass


class ProfileConnectError(PairingError):
    pass


@dataclass
class PairingResult:
    """Devices found usable; profiles are only connected for a single match."""

    usable: list[Device]
    profiles_connected: bool = False

    @property
    def ambiguous(self) -> bool:
        return len(self.usable) > 1


def normalize_uuids(uuids: Iterable[str]) -> tuple[str, ...]:
    """Sorted, deduplicated, lowercase profile UUIDs."""
    return tuple(sorted({uuid.strip().lower() for uuid in uuids}))


class PairingWorkflow:
    """Finds, pairs and connects the device matching a name and profile set."""

    def __init__(
        self,
        bluez: BluezBus,
        pattern: re.Pattern,
        expected_uuids: Iterable[str] = (),
        config: AppConfig | None = None,
    ):
        self._bluez = bluez
        self._registry = bluez.registry
        self.pattern = pattern
        self.expected_uuids = normalize_uuids(expected_uuids)
        self.config = config or AppConfig()
        # (device path, missing UUIDs) already logged
        self._reported_misses: set[tuple[str, tuple[str, ...]]] = set()

    # -- device classification -------------------------------------------

    def name_matches(self, device: Device) -> bool:
        """True if the pattern finds a non-empty match in the device name."""
        return any(match.group() for match in self.pattern.finditer(device.name))

    def missing_profiles(self, device: Device) -> tuple[str, ...]:
        return tuple(uuid for uuid in self.expected_uuids if uuid not in device.uuids)

    def _is_candidate(self, device: Device) -> bool:
        adapter = self._registry.adapter_of(device)
        return (
            adapter is not None
            and adapter.powered
            and self.name_matches(device)
            and not self.missing_profiles(device)
        )

    def is_usable(self, device: Device) -> bool:
        return device.paired and self._is_candidate(device)

    def is_pairable(self, device: Device) -> bool:
        return not device.paired and self._is_candidate(device)

    def usable_devices(self) -> list[Device]:
        return [d for d in self._registry.devices if self.is_usable(d)]

    def pairable_devices(self) -> list[Device]:
        return [d for d in self._registry.devices if self.is_pairable(d)]

    def powered_adapters(self) -> list[Adapter]:
        return [a for a in self._registry.adapters if a.powered]

    def is_discovering(self) -> bool:
        return any(a.discovering for a in self.powered_adapters())

    # -- workflow ----------------------------------------------------------

    async def run(self) -> PairingResult:
        """Run the whole workflow; raises PairingError on failure."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.overall_timeout

        if not self._registry.adapters:
            raise NoAdapterError("No Bluetooth adapter present")

        await self.power_up_adapters()
        if not self.powered_adapters():
            raise PowerUpError("Failed to power up any Bluetooth adapter")

        usable = await self.find_usable_devices(deadline)
        for device in usable:
            logger.info(
                "Usable device %s via adapter %s",
                device, self._registry.adapter_of(device),
            )
        if len(usable) > 1:
            logger.warning(
                "%d devices match, not connecting profiles to any of them",
                len(usable),
            )
            return PairingResult(usable)

        await self.connect_profiles(usable[0])
        return PairingResult(usable, profiles_connected=True)

    async def power_up_adapters(self) -> None:
        for adapter in self._registry.adapters:
            if not adapter.powered:
                await self._power_up(adapter)

    async def _power_up(self, adapter: Adapter) -> bool:
        loop = asyncio.get_running_loop()
        window_end = loop.time() + self.config.power_timeout
        logger.info("Powering up adapter %s", adapter)
        call = self._bluez.issue(set_powered_message(adapter, True))
        try:
            if not await call.block(self.config.power_timeout):
                logger.warning("Adapter %s did not answer the power-up request", adapter)
                return False
            call.resolve()
        except BluezError as e:
            logger.warning("Failed to power up adapter %s: %s", adapter, e)
            return False

        powered = await self._bluez.pump_until(
            lambda: adapter.powered or not self._registry.exists(adapter),
            window_end - loop.time(),
        )
        if not self._registry.exists(adapter):
            logger.warning("Adapter %s disappeared while powering up", adapter)
            return False
        if not powered:
            logger.warning(
                "Adapter %s not powered after %.1fs, skipping it",
                adapter, self.config.power_timeout,
            )
            return False
        logger.info("Adapter %s powered", adapter)
        return True

    async def find_usable_devices(self, deadline: float) -> list[Device]:
        """Scan, pair and discover until at least one device is usable."""
        loop = asyncio.get_running_loop()
        while True:
            usable = self.usable_devices()
            if usable:
                return usable
            if loop.time() >= deadline:
                raise WorkflowTimeout(
                    f"No usable device found within {self.config.overall_timeout:.0f}s"
                )

            pairable = self.pairable_devices()
            for device in pairable:
                if self._registry.exists(device):
                    await self.pair_device(device, deadline)

            if not pairable:
                self._report_profile_misses()
                if not self.is_discovering():
                    await self.start_discovery()

            await self._bluez.pump()

    async def pair_device(self, device: Device, deadline: float) -> bool:
        """Pair and trust one device; failures are logged, never raised."""
        loop = asyncio.get_running_loop()
        logger.info("Trying to pair with %s", device)
        call = self._bluez.issue(pair_message(device))
        try:
            if not await call.block(max(deadline - loop.time(), 0)):
                logger.warning("Pairing with %s did not finish in time", device)
                return False
            call.resolve()
        except AlreadyExists:
            logger.info("%s is already paired", device)
        except AUTHENTICATION_ERRORS as e:
            logger.warning("Authentication with %s failed: %s", device, e)
            if self.config.forget_failed:
                await self.forget_device(device, deadline)
            return False
        except BluezError as e:
            logger.warning("Pairing with %s failed: %s", device, e)
            return False
        else:
            logger.info("Paired with %s", device)

        await self.trust_device(device, deadline)
        return True

    async def trust_device(self, device: Device, deadline: float) -> bool:
        loop = asyncio.get_running_loop()
        if not self._registry.exists(device):
            logger.warning("%s disappeared after pairing", device)
            return False
        if device.trusted:
            return True

        call = self._bluez.issue(set_trusted_message(device, True))
        try:
            if not await call.block(max(deadline - loop.time(), 0)):
                logger.warning("Trusting %s did not finish in time", device)
                return False
            call.resolve()
        except BluezError as e:
            logger.warning("Failed to trust %s: %s", device, e)
            return False

        trusted = await self._bluez.pump_until(
            lambda: device.trusted or not self._registry.exists(device),
            deadline - loop.time(),
        )
        if trusted and self._registry.exists(device):
            logger.info("%s trusted", device)
            return True
        logger.warning("%s did not become trusted", device)
        return False

    async def forget_device(self, device: Device, deadline: float) -> None:
        """Ask the owning adapter to remove ``device``."""
        loop = asyncio.get_running_loop()
        adapter = self._registry.adapter_of(device)
        if adapter is None or not self._registry.exists(device):
            return
        logger.info("Removing %s from adapter %s", device, adapter)
        try:
            await self._bluez.issue(
                remove_device_message(adapter, device.path)
            ).result(max(deadline - loop.time(), 0))
        except (BluezError, asyncio.TimeoutError) as e:
            logger.warning("Failed to remove %s: %s", device, e)

    async def start_discovery(self) -> None:
        """Start discovery on every powered adapter and wait until it runs.

        Raises DiscoveryError if no adapter ends up discovering.
        """
        timeout = self.config.discovery_timeout
        calls = [
            (adapter, self._bluez.issue(start_discovery_message(adapter)))
            for adapter in self.powered_adapters()
        ]
        started = []
        for adapter, call in calls:
            try:
                await call.result(timeout)
            except (BluezError, asyncio.TimeoutError) as e:
                logger.warning("Failed to start discovery on %s: %s", adapter, e)
            else:
                started.append(adapter)
        if not started:
            raise DiscoveryError("Failed to start discovery on any adapter")

        await self._bluez.pump_until(
            lambda: all(
                a.discovering or not self._registry.exists(a) for a in started
            ),
            timeout,
        )
        discovering = [
            a for a in started if a.discovering and self._registry.exists(a)
        ]
        if not discovering:
            raise DiscoveryError("No adapter reports discovering")
        for adapter in discovering:
            logger.info("Adapter %s is discovering", adapter)

    async def connect_profiles(self, device: Device) -> None:
        """Connect every expected profile; any failure is fatal."""
        for uuid in self.expected_uuids:
            logger.info("Connecting profile %s on %s", uuid, device)
            try:
                await self._bluez.issue(
                    connect_profile_message(device, uuid)
                ).result(self.config.profile_timeout)
            except AlreadyConnected:
                logger.info("Profile %s already connected on %s", uuid, device)
            except BluezError as e:
                raise ProfileConnectError(
                    f"Connecting profile {uuid} on {device} failed: {e}"
                ) from e
            except asyncio.TimeoutError as e:
                raise ProfileConnectError(
                    f"Connecting profile {uuid} on {device} timed out"
                ) from e

    def _report_profile_misses(self) -> None:
        """Log name matches that lack required profiles, once per change."""
        for device in self._registry.devices:
            if not self.name_matches(device):
                continue
            missing = self.missing_profiles(device)
            if not missing or (device.path, missing) in self._reported_misses:
                continue
            self._reported_misses.add((device.path, missing))
            logger.warning(
                "Device %s matches but does not offer %s",
                device, ", ".join(missing),
            )
