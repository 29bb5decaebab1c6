"""BlueZ D-Bus records, commands, signal dispatch and pairing agent."""
