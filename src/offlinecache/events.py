"""Event types, context dataclass, and dispatcher for the engine lifecycle.

The engine is driven by discrete events -- ``install``, ``activate``,
``fetch``, ``message`` and ``statechange`` -- each handled by asynchronous
handlers registered against an :class:`EventDispatcher`:

* :class:`EventContext` -- a mutable dataclass threaded through the
  handlers of one event. A ``fetch`` handler answers the request by setting
  :attr:`EventContext.response`.
* :class:`EventDispatcher` -- runs the handlers of an event in registration
  order. The engine registers its own handlers first; the application can
  add observers for diagnostics or update prompts.

Handlers registered as observers cannot break the engine: an exception
raised by an observer is reported and swallowed so it never masks the
outcome of the event. Handlers registered without ``observer=True`` are
part of the event's outcome and their exceptions propagate.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

import httpx

from offlinecache.output import warning


class EventType(str, enum.Enum):
    """Events the engine reacts to or emits."""

    INSTALL = "install"
    ACTIVATE = "activate"
    FETCH = "fetch"
    MESSAGE = "message"
    STATECHANGE = "statechange"


@dataclass
class EventContext:
    """Mutable state of one event as it passes through the handlers.

    Attributes:
        type: Which event this is.
        request: The intercepted request (``fetch``).
        response: The answer (``fetch``); set by the handler that responds.
        data: Payload (``message``) or transition details (``statechange``).
        error: Exception raised while handling the event, if any.
    """

    type: EventType
    request: Optional[httpx.Request] = None
    response: Optional[httpx.Response] = None
    data: Any = None
    details: dict[str, Any] = field(default_factory=dict)
    error: Optional[BaseException] = None

    def respond_with(self, response: httpx.Response) -> None:
        self.response = response

    @property
    def responded(self) -> bool:
        return self.response is not None


Handler = Callable[[EventContext], Awaitable[None]]


class EventDispatcher:
    """Registry of asynchronous handlers keyed by :class:`EventType`."""

    def __init__(self) -> None:
        self._handlers: dict[EventType, list[tuple[Handler, bool]]] = {t: [] for t in EventType}

    def on(self, event: EventType, handler: Handler, observer: bool = False) -> Handler:
        """Register *handler* for *event*.

        Args:
            event: The event type.
            handler: Coroutine function receiving the :class:`EventContext`.
            observer: Report and swallow exceptions raised by this handler.

        Returns:
            The handler.
        """
        self._handlers[event].append((handler, observer))
        return handler

    def off(self, event: EventType, handler: Handler) -> None:
        self._handlers[event] = [(h, o) for h, o in self._handlers[event] if h is not handler]

    def handlers(self, event: EventType) -> list[Handler]:
        return [h for h, _ in self._handlers[event]]

    async def dispatch(self, ctx: EventContext) -> EventContext:
        """Run every handler of ``ctx.type`` in registration order."""
        for handler, observer in list(self._handlers[ctx.type]):
            if not observer:
                await handler(ctx)
                continue
            try:
                await handler(ctx)
            except Exception as exc:
                warning(f"{ctx.type.value} observer {getattr(handler, '__name__', handler)} failed: {exc}")
        return ctx
