"""Install / activate lifecycle of one cache version.

State machine::

    INSTALLING --install ok--> WAITING --activate--> ACTIVE
        |
        +--install failed--> FAILED  (install may be retried)

``install`` precaches the manifest into the current version's store as a
unit: every manifest resource is fetched before anything is written, so a
single failure persists nothing. When the store did not exist before the
attempt it is deleted again, leaving it absent; any older generation keeps
serving. A store that already holds the whole manifest from an earlier
install counts as installed even when the refresh fails, so a restarted
engine keeps serving offline.

``activate`` deletes every orphaned generation of the namespace (stores
that carry the prefix but not the current version; stores outside the
namespace are never touched) and then takes control of all requests.

Both transitions run as handlers of the ``install`` and ``activate``
events on an :class:`~offlinecache.events.EventDispatcher`, and every state
change is announced as a ``statechange`` event.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import httpx

from offlinecache.events import EventContext, EventDispatcher, EventType
from offlinecache.exceptions import LifecycleError, NetworkFailure, PrecacheFailure, StoreFailure
from offlinecache.models import CacheVersion, EngineConfig, LifecycleState
from offlinecache.network import NetworkFetcher
from offlinecache.output import debug, error, info, success, warning
from offlinecache.responses import is_storable, request_key, snapshot_response
from offlinecache.store.base import CacheStorage


class VersionLifecycleManager:
    """Owns the install and activate transitions and the readiness state.

    Args:
        config: Engine configuration (version, manifest, skip-waiting policy).
        storage: Store registry. This class is the only one that creates or
            deletes whole stores.
        fetcher: Network access used to precache the manifest.
        dispatcher: Event dispatcher to register the transition handlers on.
            A private one is created when omitted.

    Example::

        manager = VersionLifecycleManager(config, storage, fetcher)
        await manager.install()      # -> WAITING, or ACTIVE with auto skip-waiting
        await manager.skip_waiting() # WAITING -> ACTIVE
    """

    def __init__(
        self,
        config: EngineConfig,
        storage: CacheStorage,
        fetcher: NetworkFetcher,
        dispatcher: Optional[EventDispatcher] = None,
    ) -> None:
        self._version = config.cache_version
        self._manifest = list(config.precache)
        self._auto_skip_waiting = config.auto_skip_waiting
        self._storage = storage
        self._fetcher = fetcher
        self._dispatcher = dispatcher or EventDispatcher()
        self._state = LifecycleState.INSTALLING
        self._skip_waiting = False
        self._controlling = False
        self._activation_lock = asyncio.Lock()
        self.last_error: Optional[PrecacheFailure] = None
        self.update_available = False

        self._dispatcher.on(EventType.INSTALL, self._on_install)
        self._dispatcher.on(EventType.ACTIVATE, self._on_activate)

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def version(self) -> CacheVersion:
        return self._version

    @property
    def controlling(self) -> bool:
        """``True`` once activation has claimed all requests."""
        return self._controlling

    @property
    def skip_waiting_requested(self) -> bool:
        return self._skip_waiting

    @property
    def dispatcher(self) -> EventDispatcher:
        return self._dispatcher

    # ------------------------------------------------------------------ #
    # Transitions
    # ------------------------------------------------------------------ #

    async def install(self) -> LifecycleState:
        """Precache the manifest into the current store.

        Safe to call again: from ``FAILED`` it retries the install, from
        ``WAITING`` or ``ACTIVE`` it overwrites the entries and keeps the
        state. A failed refresh of a store that is already complete is only
        reported and ``last_error`` is set.

        Returns:
            The state after the install (and after activation, when
            skip-waiting applies).

        Raises:
            PrecacheFailure: When a manifest resource could not be fetched
                with a storable response, or could not be written, and the
                store does not already hold the whole manifest.
        """
        await self._dispatcher.dispatch(EventContext(EventType.INSTALL))
        return self._state

    async def activate(self) -> list[str]:
        """Delete orphaned generations and take control.

        A no-op when already ``ACTIVE``.

        Returns:
            The names of the stores that were deleted.

        Raises:
            LifecycleError: When called before a successful install.
        """
        async with self._activation_lock:
            if self._state is LifecycleState.ACTIVE:
                return []
            if self._state is not LifecycleState.WAITING:
                raise LifecycleError(
                    f"Cannot activate {self._version.store_name} while {self._state.value}"
                )
            ctx = await self._dispatcher.dispatch(EventContext(EventType.ACTIVATE))
        return list(ctx.details.get("deleted", []))

    async def skip_waiting(self) -> None:
        """Activate without waiting for consumers of the previous version.

        From ``WAITING`` this activates immediately; while ``INSTALLING`` the
        request is remembered and honoured as soon as the install succeeds.
        """
        self._skip_waiting = True
        if self._state is LifecycleState.WAITING:
            await self.activate()

    # ------------------------------------------------------------------ #
    # Event handlers
    # ------------------------------------------------------------------ #

    async def _on_install(self, ctx: EventContext) -> None:
        name = self._version.store_name
        if self._state is LifecycleState.FAILED:
            await self._transition(LifecycleState.INSTALLING)
        info(f"Installing {name} ({len(self._manifest)} resources to precache)")

        existed = await self._storage.has(name)
        try:
            await self._precache()
        except PrecacheFailure as exc:
            self.last_error = exc
            if not (existed and await self._is_complete(name)):
                error(f"Precache failed for {name}: {exc}")
                if not existed:
                    await self._discard_store(name)
                if self._state is LifecycleState.INSTALLING:
                    await self._transition(LifecycleState.FAILED, reason=str(exc))
                ctx.error = exc
                raise
            info(f"Could not refresh {name} ({exc}); serving the entries installed earlier")
        else:
            self.last_error = None
            success(f"Installed {name}")

        if self._state is LifecycleState.INSTALLING:
            self.update_available = await self._has_other_generation()
            if self.update_available:
                info(f"New version {self._version.version} available")
            await self._transition(LifecycleState.WAITING, update_available=self.update_available)

        if self._auto_skip_waiting:
            self._skip_waiting = True
        if self._skip_waiting and self._state is LifecycleState.WAITING:
            await self.activate()

    async def _on_activate(self, ctx: EventContext) -> None:
        info(f"Activating {self._version.store_name}")
        orphans = [n for n in await self._storage.keys() if self._version.is_orphan(n)]
        for name in orphans:
            info(f"Deleting old store {name}")
        results = await asyncio.gather(
            *(self._storage.delete(name) for name in orphans), return_exceptions=True
        )
        deleted: list[str] = []
        for name, result in zip(orphans, results):
            if isinstance(result, BaseException):
                warning(f"Could not delete old store {name}: {result}")
            elif result:
                deleted.append(name)
        ctx.details["deleted"] = deleted

        self._controlling = True
        await self._transition(LifecycleState.ACTIVE, deleted=deleted)
        success(f"Activated {self._version.store_name}")

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    async def _precache(self) -> None:
        """Fetch every manifest entry, then write them all, or nothing."""
        urls = [self._fetcher.resolve(path) for path in self._manifest]
        results = await asyncio.gather(
            *(self._fetcher.fetch(httpx.Request("GET", url)) for url in urls),
            return_exceptions=True,
        )

        failed: list[str] = []
        fetched: list[tuple[str, httpx.Response]] = []
        for path, url, result in zip(self._manifest, urls, results):
            if isinstance(result, NetworkFailure):
                failed.append(path)
            elif isinstance(result, BaseException):
                raise result
            elif not is_storable(result):
                debug(f"Precache of {path} returned HTTP {result.status_code}")
                failed.append(path)
            else:
                fetched.append((request_key("GET", url), result))
        if failed:
            raise PrecacheFailure(
                f"{len(failed)} of {len(self._manifest)} resources unavailable: "
                + ", ".join(failed),
                failed=failed,
            )

        store = await self._storage.open(self._version.store_name)
        written: list[str] = []
        try:
            for key, response in fetched:
                await store.put(key, snapshot_response(response))
                written.append(key)
        except StoreFailure as exc:
            for key in written:
                try:
                    await store.delete(key)
                except StoreFailure:
                    pass
            raise PrecacheFailure(f"Could not write precache entries: {exc}") from exc

    async def _is_complete(self, name: str) -> bool:
        """Whether store *name* already holds every manifest entry."""
        try:
            store = await self._storage.open(name)
            for path in self._manifest:
                key = request_key("GET", self._fetcher.resolve(path))
                if await store.match(key) is None:
                    return False
        except StoreFailure as exc:
            warning(f"Could not inspect store {name}: {exc}")
            return False
        return True

    async def _discard_store(self, name: str) -> None:
        try:
            await self._storage.delete(name)
        except StoreFailure as exc:
            warning(f"Could not remove incomplete store {name}: {exc}")

    async def _has_other_generation(self) -> bool:
        return any(self._version.is_orphan(n) for n in await self._storage.keys())

    async def _transition(self, new_state: LifecycleState, **details: Any) -> None:
        old_state = self._state
        self._state = new_state
        debug(f"{self._version.store_name}: {old_state.value} -> {new_state.value}")
        await self._dispatcher.dispatch(
            EventContext(
                EventType.STATECHANGE,
                data=new_state,
                details={"from": old_state, "to": new_state, **details},
            )
        )
