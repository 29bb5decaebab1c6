"""BlueZ D-Bus names and well-known profile UUIDs."""

# BlueZ D-Bus service and interface names
BLUEZ_SERVICE = "org.bluez"
BLUEZ_ROOT_PATH = "/org/bluez"
ADAPTER_INTERFACE = "org.bluez.Adapter1"
DEVICE_INTERFACE = "org.bluez.Device1"
AGENT_INTERFACE = "org.bluez.Agent1"
AGENT_MANAGER_INTERFACE = "org.bluez.AgentManager1"
PROPERTIES_INTERFACE = "org.freedesktop.DBus.Properties"
OBJECT_MANAGER_INTERFACE = "org.freedesktop.DBus.ObjectManager"

# Message bus daemon (signal subscription)
DBUS_SERVICE = "org.freedesktop.DBus"
DBUS_PATH = "/org/freedesktop/DBus"
DBUS_INTERFACE = "org.freedesktop.DBus"
BLUEZ_SIGNAL_MATCH = "type='signal',sender='org.bluez'"

# BlueZ error names share this prefix (org.bluez.Error.Failed, ...)
BLUEZ_ERROR_PREFIX = "org.bluez.Error."

# Agent registered while pairing; DisplayYesNo lets BlueZ ask for a
# PIN (legacy pairing) or a numeric comparison (SSP).
AGENT_CAPABILITY = "DisplayYesNo"
DEFAULT_AGENT_PATH = "/bluepairy/agent"

# Human Interface Device profile, required by --hid
HID_UUID = "00000011-0000-1000-8000-00805f9b34fb"
# Serial Port Profile
SPP_UUID = "00001101-0000-1000-8000-00805f9b34fb"
