"""Typed BlueZ errors decoded from D-Bus error replies.

BlueZ reports failures as error replies named ``org.bluez.Error.<Name>``
with a single string argument.  Every error raised from a remote call is
a :class:`BluezError` (itself a ``dbus_next`` ``DBusError``), so callers
can catch either the specific subclass or the whole family.
"""

from dbus_next import Message, MessageType
from dbus_next.errors import DBusError

from .constants import BLUEZ_ERROR_PREFIX


class BluezError(DBusError):
    """Error reply from BlueZ (or any other remote peer).

    Used directly for error names without a dedicated subclass; the
    original name is kept in ``error_name``.
    """

    error_name = BLUEZ_ERROR_PREFIX + "Unknown"

    def __init__(self, text: str, reply: Message | None = None, error_name: str | None = None):
        if error_name is not None:
            self.error_name = error_name
        super().__init__(self.error_name, text, reply)


class AlreadyConnected(BluezError):
    error_name = BLUEZ_ERROR_PREFIX + "AlreadyConnected"


class AlreadyExists(BluezError):
    error_name = BLUEZ_ERROR_PREFIX + "AlreadyExists"


class AuthenticationFailed(BluezError):
    error_name = BLUEZ_ERROR_PREFIX + "AuthenticationFailed"


class AuthenticationRejected(BluezError):
    error_name = BLUEZ_ERROR_PREFIX + "AuthenticationRejected"


class AuthenticationTimeout(BluezError):
    error_name = BLUEZ_ERROR_PREFIX + "AuthenticationTimeout"


class ConnectionAttemptFailed(BluezError):
    error_name = BLUEZ_ERROR_PREFIX + "ConnectionAttemptFailed"


class Failed(BluezError):
    error_name = BLUEZ_ERROR_PREFIX + "Failed"


_ERROR_TYPES = {
    cls.error_name: cls
    for cls in (
        AlreadyConnected,
        AlreadyExists,
        AuthenticationFailed,
        AuthenticationRejected,
        AuthenticationTimeout,
        ConnectionAttemptFailed,
        Failed,
    )
}

# Failures after which the remote side has rejected our credentials
AUTHENTICATION_ERRORS = (AuthenticationFailed, AuthenticationRejected)


def error_from_reply(reply: Message) -> BluezError:
    """Build the typed error for an ERROR message."""
    if reply.message_type != MessageType.ERROR:
        raise ValueError(f"not an error reply: {reply.message_type}")
    text = ""
    if reply.signature.startswith("s") and reply.body:
        text = reply.body[0]
    name = reply.error_name or ""
    cls = _ERROR_TYPES.get(name)
    if cls is None:
        return BluezError(text or name, reply, error_name=name or None)
    return cls(text, reply)
