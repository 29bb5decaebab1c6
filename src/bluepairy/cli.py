"""Command-line arguments for bluepairy."""

import argparse
import re
from pathlib import Path

from .bluez.constants import HID_UUID
from .workflow import normalize_uuids


class UsageError(ValueError):
    """Arguments that parse but cannot be used."""


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="bluepairy",
        description=(
            "Find a Bluetooth device by name and required profiles, "
            "then pair, trust and connect it through BlueZ."
        ),
    )
    parser.add_argument(
        "name",
        help="Device name (regular expression, searched anywhere in the name)",
    )
    parser.add_argument(
        "-u", "--profile-uuid",
        dest="uuids",
        action="append",
        default=[],
        metavar="UUID",
        help="Profile UUID the device must offer (repeatable)",
    )
    parser.add_argument(
        "--hid",
        action="store_true",
        help=f"Require the HID profile ({HID_UUID})",
    )
    parser.add_argument(
        "--forget-failed",
        action="store_true",
        help="Remove devices from BlueZ when pairing fails authentication",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to JSON options file (default: /etc/bluepairy/options.json)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def compile_pattern(name: str) -> re.Pattern:
    if not name:
        raise UsageError("Empty friendly name is not allowed.")
    try:
        return re.compile(name)
    except re.error as e:
        raise UsageError(f"Invalid name pattern {name!r}: {e}") from e


def required_uuids(args: argparse.Namespace) -> tuple[str, ...]:
    uuids = list(args.uuids)
    if any(not uuid.strip() for uuid in uuids):
        raise UsageError("Empty UUIDs are not allowed.")
    if args.hid:
        uuids.append(HID_UUID)
    return normalize_uuids(uuids)
