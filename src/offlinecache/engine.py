"""The caching engine: lifecycle, routing and strategies behind one dispatch point.

:class:`OfflineCacheEngine` plays the role of a single event-driven worker.
It owns one :class:`~offlinecache.events.EventDispatcher` and registers the
handlers that make up the engine:

* ``install`` / ``activate`` -- :class:`~offlinecache.lifecycle.VersionLifecycleManager`
* ``message`` -- :class:`~offlinecache.channel.UpdateChannel`
* ``fetch`` -- :meth:`OfflineCacheEngine._on_fetch`, which routes the request
  and either passes it through or runs a strategy

Until the current version is active the engine does not intercept anything;
requests go straight to the network and no store is touched.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from offlinecache.channel import UpdateChannel
from offlinecache.events import EventContext, EventDispatcher, EventType
from offlinecache.exceptions import PrecacheFailure
from offlinecache.lifecycle import VersionLifecycleManager
from offlinecache.models import CacheVersion, EngineConfig, LifecycleState
from offlinecache.network import NetworkFetcher, NetworkStatus
from offlinecache.output import debug, info
from offlinecache.routing import Bypass, RequestRouter, RouteDecision
from offlinecache.store import CacheStorage, create_storage
from offlinecache.strategies import StrategyExecutor
from offlinecache.tasks import BackgroundTasks


class OfflineCacheEngine:
    """Offline-resilience cache in front of the network.

    Must be used as an async context manager. Leaving the context waits for
    outstanding background work (revalidations, control messages) before
    closing the network client.

    Args:
        config: Build-time configuration. Defaults to :class:`EngineConfig`.
        storage: Store registry. Built from ``config.storage`` when omitted;
            a storage built here is closed on exit.
        transport: Transport for live fetches (e.g. :class:`httpx.MockTransport`).

    Example::

        async with OfflineCacheEngine(EngineConfig(origin="https://example.com")) as engine:
            await engine.start()
            response = await engine.handle(httpx.Request("GET", "https://example.com/app.js"))
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        storage: Optional[CacheStorage] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config or EngineConfig()
        self._owns_storage = storage is None
        self._storage = storage if storage is not None else create_storage(self._config.storage)
        self._background = BackgroundTasks()
        self.events = EventDispatcher()

        self._fetcher = NetworkFetcher(
            self._config.request, origin=self._config.origin, transport=transport
        )
        self.router = RequestRouter(self._config)
        self.lifecycle = VersionLifecycleManager(
            self._config, self._storage, self._fetcher, self.events
        )
        self.channel = UpdateChannel(self.lifecycle, self.events, self._background)

        shell_url = self._fetcher.resolve(self._config.shell_path) if self._config.shell_path else None
        self._executor = StrategyExecutor(
            self._storage,
            self._config.cache_version,
            self._fetcher,
            self._background,
            shell_url=shell_url,
        )
        self.events.on(EventType.FETCH, self._on_fetch)

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> OfflineCacheEngine:
        await self._fetcher.__aenter__()
        return self

    async def __aexit__(self, *args: object) -> None:
        try:
            await self.drain()
        finally:
            await self._fetcher.__aexit__(*args)
            if self._owns_storage:
                await self._storage.close()

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def version(self) -> CacheVersion:
        return self._config.cache_version

    @property
    def state(self) -> LifecycleState:
        return self.lifecycle.state

    @property
    def storage(self) -> CacheStorage:
        return self._storage

    @property
    def network_status(self) -> NetworkStatus:
        return self._fetcher.status

    @property
    def pending_tasks(self) -> int:
        """Background tasks that have not settled yet."""
        return len(self._background)

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    async def start(self) -> LifecycleState:
        """Install the current version and, if skip-waiting applies, activate it.

        A failed precache is reported and leaves the engine ``FAILED``; it is
        not raised, because an older generation may keep serving. When the
        current store is already complete from an earlier run the engine
        still activates, so a restart without network keeps serving.
        """
        if not self._config.enabled:
            info("Offline cache disabled; requests pass through")
            return self.lifecycle.state
        try:
            return await self.lifecycle.install()
        except PrecacheFailure:
            return self.lifecycle.state

    def route(self, request: httpx.Request) -> RouteDecision:
        """The tagged routing decision for *request* in the current state."""
        if not self._config.enabled:
            return Bypass("disabled")
        if not self.lifecycle.controlling:
            return Bypass("not-controlling")
        return self.router.route(request)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        """Answer *request* through the ``fetch`` event.

        Raises:
            NetworkFailure: When neither network, store nor fallback could
                produce a response.
        """
        ctx = await self.events.dispatch(EventContext(EventType.FETCH, request=request))
        assert ctx.response is not None, "fetch event finished without a response"
        return ctx.response

    def post_message(self, message: Any) -> None:
        """Fire-and-forget control message (``"skipWaiting"``)."""
        self.channel.post(message)

    async def drain(self) -> None:
        """Wait for background revalidations and control messages to settle."""
        await self._background.drain()

    # ------------------------------------------------------------------ #
    # Event handlers
    # ------------------------------------------------------------------ #

    async def _on_fetch(self, ctx: EventContext) -> None:
        assert ctx.request is not None
        request = ctx.request
        decision = self.route(request)
        if isinstance(decision, Bypass):
            debug(f"{request.method} {request.url} -> bypass ({decision.reason})")
            ctx.respond_with(await self._fetcher.fetch(request))
            return

        debug(f"{request.method} {request.url} -> {decision.value}")
        try:
            ctx.respond_with(await self._executor.execute(decision, request))
        except Exception as exc:
            ctx.error = exc
            raise
