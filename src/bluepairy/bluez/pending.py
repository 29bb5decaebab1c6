"""In-flight D-Bus method calls."""

import asyncio
import logging

from dbus_next import Message, MessageType

from .errors import error_from_reply

logger = logging.getLogger(__name__)


class PendingCallNotReady(RuntimeError):
    """Raised when resolve() is called before the reply has arrived."""


class PendingCall:
    """One issued method call whose reply may not have arrived yet.

    Exactly one reply is expected.  While a caller waits in :meth:`block`
    the event loop keeps dispatching bus messages, so registry updates and
    agent requests are served in the meantime.  A handle that is never
    resolved simply drops its reply when it arrives.
    """

    def __init__(self, message: Message, future: asyncio.Future):
        self._message = message
        self._future = future
        future.add_done_callback(self._consume_late_failure)

    @classmethod
    def issue(cls, bus, message: Message) -> "PendingCall":
        """Send ``message`` on ``bus`` and return a handle for the reply."""
        logger.debug(
            "Calling %s.%s on %s", message.interface, message.member, message.path,
        )
        return cls(message, asyncio.ensure_future(bus.call(message)))

    @property
    def reply(self) -> Message | None:
        """The reply message, once it has arrived."""
        if not self._future.done() or self._future.exception() is not None:
            return None
        return self._future.result()

    def is_ready(self) -> bool:
        return self._future.done()

    async def block(self, timeout: float | None = None) -> bool:
        """Wait until the reply arrives or ``timeout`` seconds pass.

        Returns whether the reply is ready.  The call itself is never
        cancelled.
        """
        if not self._future.done():
            await asyncio.wait({self._future}, timeout=timeout)
        return self._future.done()

    def resolve(self) -> list:
        """Return the reply body, or raise the typed error it carries."""
        if not self._future.done():
            raise PendingCallNotReady(
                f"{self._message.interface}.{self._message.member} has no reply yet"
            )
        reply = self._future.result()
        if reply.message_type == MessageType.ERROR:
            raise error_from_reply(reply)
        return reply.body

    async def result(self, timeout: float | None = None) -> list:
        """block() then resolve(); raises asyncio.TimeoutError on timeout."""
        if not await self.block(timeout):
            raise asyncio.TimeoutError(
                f"{self._message.interface}.{self._message.member} timed out after {timeout}s"
            )
        return self.resolve()

    def _consume_late_failure(self, future: asyncio.Future) -> None:
        # Keeps asyncio from reporting transport errors on abandoned calls
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.debug(
                "%s.%s failed in transport: %s",
                self._message.interface, self._message.member, exc,
            )
