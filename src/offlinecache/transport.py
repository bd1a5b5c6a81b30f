"""An ``httpx`` transport that sends a client's requests through the engine.

Wrapping the engine in :class:`OfflineCacheTransport` puts it between the
application and the network without changing application code::

    async with OfflineCacheEngine(config) as engine:
        await engine.start()
        async with create_client(engine) as client:
            page = await client.get("/song/", headers={"Accept": "text/html"})

Engine failures are re-raised as :class:`httpx.ConnectError`, so callers
handle an unrecoverable offline load the same way as any other connection
failure.
"""

from __future__ import annotations

from typing import Any

import httpx

from offlinecache.engine import OfflineCacheEngine
from offlinecache.exceptions import NetworkFailure
from offlinecache.responses import duplicate_response


class OfflineCacheTransport(httpx.AsyncBaseTransport):
    """Routes every request of an :class:`httpx.AsyncClient` through an engine."""

    def __init__(self, engine: OfflineCacheEngine) -> None:
        self._engine = engine

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        await request.aread()
        try:
            response = await self._engine.handle(request)
        except NetworkFailure as exc:
            raise httpx.ConnectError(str(exc), request=request) from exc
        return duplicate_response(response, request)


def create_client(engine: OfflineCacheEngine, **kwargs: Any) -> httpx.AsyncClient:
    """Build an :class:`httpx.AsyncClient` whose requests go through *engine*.

    ``base_url`` defaults to the engine's origin; other keyword arguments
    are passed to :class:`httpx.AsyncClient`.
    """
    kwargs.setdefault("base_url", engine.config.origin or "")
    return httpx.AsyncClient(transport=OfflineCacheTransport(engine), **kwargs)
