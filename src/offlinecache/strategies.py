"""The three retrieval strategies.

All strategies share one write rule: a network response goes into the
current store only when :func:`~offlinecache.responses.is_storable`, and
the store always receives a snapshot while the caller keeps the live
response. Unstorable responses (4xx/5xx, opaque) are still returned.

Failure policy:

* a store read that fails counts as a miss;
* a store write that fails is reported with :func:`~offlinecache.output.warning`
  and dropped;
* a :class:`~offlinecache.exceptions.NetworkFailure` reaches the caller only
  when no cached copy or fallback exists.

Concurrent revalidations of the same key are not serialised; whichever
store write completes last wins.
"""

from __future__ import annotations

from typing import Optional

import httpx

from offlinecache.exceptions import NetworkFailure, StoreFailure
from offlinecache.models import CacheVersion, Strategy
from offlinecache.network import NetworkFetcher
from offlinecache.output import debug, error, warning
from offlinecache.responses import (
    is_storable,
    key_for,
    request_key,
    restore_response,
    snapshot_response,
)
from offlinecache.store.base import CacheStorage
from offlinecache.tasks import BackgroundTasks


class StrategyExecutor:
    """Runs a :class:`~offlinecache.models.Strategy` for one request.

    Args:
        storage: Store registry. Only the current version's store is used.
        version: The current cache version.
        fetcher: Live network access.
        background: Tracker for stale-while-revalidate refreshes.
        shell_url: Absolute URL of the offline shell document, or ``None``
            to disable the navigation fallback.
    """

    def __init__(
        self,
        storage: CacheStorage,
        version: CacheVersion,
        fetcher: NetworkFetcher,
        background: BackgroundTasks,
        shell_url: Optional[httpx.URL] = None,
    ) -> None:
        self._storage = storage
        self._store_name = version.store_name
        self._fetcher = fetcher
        self._background = background
        self._shell_url = shell_url

    async def execute(self, strategy: Strategy, request: httpx.Request) -> httpx.Response:
        if strategy is Strategy.NETWORK_FIRST:
            response = await self.network_first(request)
        elif strategy is Strategy.CACHE_FIRST:
            response = await self.cache_first(request)
        else:
            response = await self.stale_while_revalidate(request)
        response.extensions["strategy"] = strategy.value
        return response

    # ------------------------------------------------------------------ #
    # Strategies
    # ------------------------------------------------------------------ #

    async def network_first(self, request: httpx.Request) -> httpx.Response:
        """Network, then the cached copy, then the offline shell.

        Raises:
            NetworkFailure: When the fetch failed and neither the request
                nor the shell document is cached.
        """
        try:
            return await self._fetch_and_store(request)
        except NetworkFailure:
            debug(f"Network failed for {request.url}, trying cache")
            cached = await self._lookup(key_for(request), request)
            if cached is not None:
                return cached
            if self._shell_url is not None:
                shell = await self._lookup(request_key("GET", self._shell_url), request)
                if shell is not None:
                    debug(f"Serving offline shell {self._shell_url} for {request.url}")
                    return shell
            raise

    async def cache_first(self, request: httpx.Request) -> httpx.Response:
        """Cached copy without touching the network; fetch and store on a miss.

        Raises:
            NetworkFailure: On a miss when the fetch fails.
        """
        cached = await self._lookup(key_for(request), request)
        if cached is not None:
            return cached

        try:
            return await self._fetch_and_store(request)
        except NetworkFailure:
            error(f"Resource failed to load: {request.url}")
            raise

    async def stale_while_revalidate(self, request: httpx.Request) -> httpx.Response:
        """Cached copy now, refreshed store for next time.

        On a hit the refresh keeps running in the background and its outcome
        only ever lands in the store. On a miss the caller waits for the
        refresh and receives its result, failure included.
        """
        cached = await self._lookup(key_for(request), request)
        name = f"revalidate {request.url}"
        if cached is not None:
            self._background.spawn(self._fetch_into_store(request), name=name)
            return cached
        return await self._background.run(self._fetch_into_store(request), name=name)

    # ------------------------------------------------------------------ #
    # Store access
    # ------------------------------------------------------------------ #

    async def _fetch_and_store(self, request: httpx.Request) -> httpx.Response:
        """Fetch and write back as tracked work that a cancelled caller cannot stop."""
        return await self._background.run(
            self._fetch_into_store(request), name=f"fetch {request.url}"
        )

    async def _fetch_into_store(self, request: httpx.Request) -> httpx.Response:
        try:
            response = await self._fetcher.fetch(request)
        except NetworkFailure as exc:
            debug(f"Fetch failed: {exc}")
            raise
        await self._write(request, response)
        return response

    async def _lookup(self, key: str, request: httpx.Request) -> Optional[httpx.Response]:
        """Read one entry; a failing store counts as a miss."""
        try:
            store = await self._storage.open(self._store_name)
            snapshot = await store.match(key)
        except StoreFailure as exc:
            warning(f"Cache read failed for {request.url}: {exc}")
            return None
        if snapshot is None:
            return None
        response = restore_response(snapshot, request)
        response.extensions["from_cache"] = True
        return response

    async def _write(self, request: httpx.Request, response: httpx.Response) -> None:
        """Store a snapshot of *response* if storable; failures are only reported."""
        if not is_storable(response):
            debug(f"Not storing {request.url} (HTTP {response.status_code})")
            return
        try:
            store = await self._storage.open(self._store_name)
            await store.put(key_for(request), snapshot_response(response))
        except StoreFailure as exc:
            warning(f"Cache write failed for {request.url}: {exc}")
            return
        debug(f"Stored {request.url} in {self._store_name}")
