"""Pair a Bluetooth device matching a name and profile set through BlueZ."""

__version__ = "1.0.0"
