"""Configuration loader for bluepairy.

Defaults are built in; a JSON options file may override any of them.
Command-line flags override the file.
"""

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path

from .bluez.constants import DEFAULT_AGENT_PATH

logger = logging.getLogger(__name__)

OPTIONS_PATH = "/etc/bluepairy/options.json"


@dataclass
class AppConfig:
    """Timeouts and tunables for one pairing run."""

    log_level: str = "info"

    # Seconds an adapter gets to report Powered after we switch it on
    power_timeout: float = 1.0
    # Seconds from start until a usable device must have been found
    overall_timeout: float = 300.0
    # Seconds adapters get to report Discovering after StartDiscovery
    discovery_timeout: float = 5.0
    # Seconds allowed for each ConnectProfile call
    profile_timeout: float = 30.0
    # Longest single wait for bus activity
    pump_interval: float = 0.1

    agent_path: str = DEFAULT_AGENT_PATH
    # Remove devices from BlueZ when pairing fails authentication
    forget_failed: bool = False

    def as_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def load(cls, path: str | Path | None = None) -> "AppConfig":
        """Load configuration, falling back to defaults.

        A missing default options file is normal; a missing file that was
        asked for explicitly is logged as a warning.
        """
        config = cls()
        explicit = path is not None
        opts_path = Path(path) if explicit else Path(OPTIONS_PATH)
        if not opts_path.exists():
            if explicit:
                logger.warning("Options file %s not found, using defaults", opts_path)
            return config

        try:
            data = json.loads(opts_path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to parse options %s: %s, using defaults", opts_path, e)
            return config
        if not isinstance(data, dict):
            logger.error("Options %s must hold a JSON object, using defaults", opts_path)
            return config

        known = {f.name: f.type for f in fields(cls)}
        for key, value in data.items():
            if key not in known:
                logger.warning("Ignoring unknown option %r in %s", key, opts_path)
                continue
            try:
                setattr(config, key, _coerce(known[key], value))
            except (TypeError, ValueError) as e:
                logger.error("Invalid value for %s in %s: %s", key, opts_path, e)
        logger.info("Loaded options from %s", opts_path)
        return config


def _coerce(type_name, value):
    # dataclass field types are strings when annotations are postponed
    name = getattr(type_name, "__name__", type_name)
    if name == "float":
        if isinstance(value, bool):
            raise TypeError(f"expected a number, got {value!r}")
        result = float(value)
        if result <= 0:
            raise ValueError(f"must be positive, got {value!r}")
        return result
    if name == "bool":
        if not isinstance(value, bool):
            raise TypeError(f"expected true/false, got {value!r}")
        return value
    if not isinstance(value, str):
        raise TypeError(f"expected a string, got {value!r}")
    return value
