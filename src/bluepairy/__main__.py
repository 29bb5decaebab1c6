"""Entry point for bluepairy."""

import asyncio
import logging
import re
import sys

from dbus_next.errors import DBusError

from .bluez.agent import AgentHandler, PairingAgent
from .bluez.bus import BluezBus, SnapshotError
from .cli import UsageError, compile_pattern, parse_args, required_uuids
from .config import AppConfig
from .registry import ObjectRegistry
from .workflow import PairingError, PairingResult, PairingWorkflow

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger(__name__)


def setup_logging(level_name: str) -> None:
    """Configure logging to stderr; stdout carries the result."""
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )
    # Quiet noisy libraries
    logging.getLogger("dbus_next").setLevel(logging.WARNING)


def report(bluez: BluezBus, result: PairingResult) -> None:
    for device in result.usable:
        adapter = bluez.registry.adapter_of(device)
        print(
            f"Apparently usable pairing with {device.name} ({device.address}) "
            f"via {adapter.address if adapter else device.adapter_path} found"
        )
    if result.ambiguous:
        print(f"{len(result.usable)} devices match, no profiles connected.")
    elif result.profiles_connected:
        print("All required profiles connected, good luck!")


async def pair(
    bluez: BluezBus,
    config: AppConfig,
    pattern: re.Pattern,
    uuids: tuple[str, ...],
) -> int:
    """Run the pairing workflow on an open bus; returns the exit code."""
    agent = PairingAgent(bluez, AgentHandler(bluez.registry), config.agent_path)
    try:
        await bluez.start()
        await bluez.load_managed_objects()
        await agent.register()
        result = await PairingWorkflow(bluez, pattern, uuids, config).run()
    except PairingError as e:
        logger.error("%s", e)
        print(f"Failed: {e}")
        return 1
    except (SnapshotError, DBusError, asyncio.TimeoutError) as e:
        logger.error("D-Bus failure: %s", e)
        print(f"Failed: {e}")
        return 1
    finally:
        await agent.unregister()

    report(bluez, result)
    return 0


async def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    config = AppConfig.load(args.config)
    if args.forget_failed:
        config.forget_failed = True
    setup_logging("debug" if args.verbose else config.log_level)
    logger.debug("Effective options: %s", config.as_dict())

    try:
        pattern = compile_pattern(args.name)
        uuids = required_uuids(args)
    except UsageError as e:
        print(e, file=sys.stderr)
        return 1

    if uuids:
        print("Bluetooth Profile UUIDs required to be offered by the device:")
        for uuid in uuids:
            print(uuid)

    try:
        bluez = await BluezBus.connect(ObjectRegistry(), config.pump_interval)
    except (OSError, DBusError) as e:
        logger.error("Cannot connect to the system bus: %s", e)
        print(f"Failed: {e}")
        return 1

    try:
        return await pair(bluez, config, pattern, uuids)
    except Exception as e:
        logger.error("Fatal error: %s", e, exc_info=True)
        return 1
    finally:
        bluez.disconnect()


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
