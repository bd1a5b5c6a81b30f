"""Live network access for the engine.

:class:`NetworkFetcher` wraps :class:`httpx.AsyncClient` the way the rest
of the engine expects the network to behave:

* redirects are followed transparently, so a redirect never reaches the
  strategies as a response of its own;
* every response is fully read before it is returned, so it can be
  duplicated into a store;
* transport-level failures (DNS, refused connection, timeout, protocol
  errors) become :class:`~offlinecache.exceptions.NetworkFailure`;
* cross-origin ``no-cors`` responses are marked opaque.

It also keeps :class:`NetworkStatus`, the engine's view of whether the
origin is currently reachable.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import httpx

from offlinecache.exceptions import NetworkFailure
from offlinecache.models import RequestConfig
from offlinecache.output import debug
from offlinecache.responses import OPAQUE_EXTENSION


@dataclass
class NetworkStatus:
    """Connectivity as observed from live fetch outcomes.

    Attributes:
        is_online: ``False`` after a fetch failed at the transport level,
            ``True`` again after the next fetch that got any response.
        last_online_at: When connectivity was last regained.
    """

    is_online: bool = True
    last_online_at: Optional[datetime] = None

    def mark_online(self) -> None:
        if not self.is_online:
            self.last_online_at = datetime.now(timezone.utc)
        self.is_online = True

    def mark_offline(self) -> None:
        self.is_online = False


def same_origin(url: httpx.URL, origin: Optional[str]) -> bool:
    """Return ``True`` if *url* shares scheme, host and port with *origin*."""
    if not origin:
        return True
    base = httpx.URL(origin)
    return (url.scheme, url.host, url.port) == (base.scheme, base.host, base.port)


class NetworkFetcher:
    """Asynchronous fetcher used by the strategies and the installer.

    Must be used as an async context manager.

    Args:
        config: Timeout, TLS verification and retry settings.
        origin: The engine's origin; used to resolve relative paths and to
            decide which responses are opaque.
        transport: Optional transport for the underlying client. Tests pass
            an :class:`httpx.MockTransport` here.

    Example::

        async with NetworkFetcher(RequestConfig(), origin="https://example.com") as net:
            response = await net.fetch(httpx.Request("GET", "https://example.com/song/"))
    """

    def __init__(
        self,
        config: Optional[RequestConfig] = None,
        origin: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config or RequestConfig()
        self._origin = origin
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.status = NetworkStatus()

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> NetworkFetcher:
        self._client = httpx.AsyncClient(
            timeout=self._config.timeout,
            verify=self._config.verify_ssl,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def resolve(self, path: str) -> httpx.URL:
        """Resolve a manifest path (``/song/``) against the origin."""
        if self._origin:
            return httpx.URL(self._origin).join(path)
        return httpx.URL(path)

    async def fetch(self, request: httpx.Request) -> httpx.Response:
        """Send *request* and return the fully read response.

        Any HTTP status is a successful fetch; only transport failures raise.

        Raises:
            NetworkFailure: When the request could not be completed after
                ``max_retries`` additional attempts.
        """
        assert self._client is not None, "Fetcher not initialised -- use as async context manager"

        body = await request.aread()
        max_retries = self._config.max_retries
        for attempt in range(max_retries + 1):
            try:
                outbound = httpx.Request(
                    request.method, request.url, headers=request.headers, content=body
                )
                response = await self._client.send(outbound)
                break
            except httpx.TransportError as exc:
                if attempt < max_retries:
                    delay = 2 ** attempt
                    debug(
                        f"Fetch of {request.url} failed: {exc!r}, retrying in {delay}s "
                        f"(attempt {attempt + 1}/{max_retries})"
                    )
                    await asyncio.sleep(delay)
                    continue
                self.status.mark_offline()
                raise NetworkFailure(
                    f"Fetch of {request.url} failed: {exc!r}", url=str(request.url)
                ) from exc

        self.status.mark_online()
        if self._is_no_cors_cross_origin(request):
            response.extensions[OPAQUE_EXTENSION] = True
        return response

    async def get(self, path: str) -> httpx.Response:
        """Fetch *path* (resolved against the origin) with a plain GET."""
        return await self.fetch(httpx.Request("GET", self.resolve(path)))

    def _is_no_cors_cross_origin(self, request: httpx.Request) -> bool:
        mode = request.headers.get("sec-fetch-mode", "").lower()
        return mode == "no-cors" and not same_origin(request.url, self._origin)
