"""PIN codes for devices that use legacy (PIN based) pairing.

Handy Tech braille displays derive their PIN from the serial number in
their Bluetooth name, e.g. ``Active Braille AB4/B1-12345``.  Anything we
do not recognise gets the conventional ``0000``.
"""

import re
from collections.abc import Callable

DEFAULT_PIN = "0000"

HANDY_TECH_MODELS = (
    "Actilino ALO",
    "Active Braille AB4",
    "Active Star AS4",
    "Basic Braille BB4",
    "Basic Braille Plus BP4",
    "Braille Star 40 BS4",
    "Braille Wave BW1",
    "Braillino BL2",
    "Connect Braille CB4",
    "Easy Braille EBR",
)

_HANDY_TECH_NAME = re.compile(
    "(?:{})/[A-Za-z][0-9]-(?P<serial>[0-9]+)".format(
        "|".join(re.escape(model) for model in HANDY_TECH_MODELS)
    )
)

PinPolicy = Callable[[str], str]


def guess_pin(name: str) -> str:
    """Return the PIN for a device called ``name``."""
    match = _HANDY_TECH_NAME.fullmatch(name)
    if match is None:
        return DEFAULT_PIN
    serial = match.group("serial")
    if len(serial) != 5:
        return DEFAULT_PIN
    return "".join(str((int(digit) + i + 1) % 10) for i, digit in enumerate(serial))
