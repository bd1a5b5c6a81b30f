"""One-way control channel from the application to the engine.

The only recognised message is ``"skipWaiting"``: it forces a version that
finished installing out of ``WAITING`` and into activation, without waiting
for consumers of the previous version. Every other value is ignored.
Delivery is fire-and-forget; nothing is sent back.
"""

from __future__ import annotations

from typing import Any

from offlinecache.events import EventContext, EventDispatcher, EventType
from offlinecache.lifecycle import VersionLifecycleManager
from offlinecache.output import debug
from offlinecache.tasks import BackgroundTasks

SKIP_WAITING = "skipWaiting"


class UpdateChannel:
    """Accepts control messages and hands them to the ``message`` event.

    Args:
        lifecycle: The manager that ``skipWaiting`` acts on.
        dispatcher: Dispatcher carrying ``message`` events. The channel
            registers its handler there.
        background: Where fire-and-forget deliveries run.
    """

    def __init__(
        self,
        lifecycle: VersionLifecycleManager,
        dispatcher: EventDispatcher,
        background: BackgroundTasks,
    ) -> None:
        self._lifecycle = lifecycle
        self._dispatcher = dispatcher
        self._background = background
        self._dispatcher.on(EventType.MESSAGE, self._on_message)

    def post(self, message: Any) -> None:
        """Deliver *message* in the background. Requires a running event loop."""
        self._background.spawn(self.deliver(message), name=f"message {message!r}")

    async def deliver(self, message: Any) -> None:
        """Deliver *message* and wait until the engine has acted on it."""
        await self._dispatcher.dispatch(EventContext(EventType.MESSAGE, data=message))

    async def _on_message(self, ctx: EventContext) -> None:
        if ctx.data != SKIP_WAITING:
            debug(f"Ignoring control message {ctx.data!r}")
            return
        debug("skipWaiting received")
        await self._lifecycle.skip_waiting()
