"""Exclusion filter and request classifier.

Routing produces one tagged decision per request, consumed at a single
dispatch point in :class:`~offlinecache.engine.OfflineCacheEngine`:

* :class:`Bypass` -- the engine does not intercept. The request goes to the
  network untouched and no store is read or written.
* a :class:`~offlinecache.models.Strategy` member -- the strategy that
  answers the request.

Bypass is checked first, in this order: exclusion patterns, request method,
URL scheme. Classification then checks navigation before static-asset
extensions, so a navigation to ``/logo.png`` is still network-first.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from posixpath import splitext
from typing import Iterable, Union

import httpx

from offlinecache.models import EngineConfig, Strategy

_NETWORK_SCHEMES = ("http", "https")


@dataclass(frozen=True)
class Bypass:
    """Decision to leave a request to the default network path.

    Attributes:
        reason: ``"excluded"``, ``"method"``, ``"scheme"``, ``"disabled"``
            or ``"not-controlling"``.
    """

    reason: str


RouteDecision = Union[Bypass, Strategy]


class ExclusionFilter:
    """Static set of URL patterns that are never intercepted.

    Patterns are regular expressions searched anywhere in the full request
    URL, so a plain substring such as ``sockjs-node`` works as-is.
    """

    def __init__(self, patterns: Iterable[str]) -> None:
        self._patterns = [re.compile(p) for p in patterns]

    @property
    def patterns(self) -> list[str]:
        return [p.pattern for p in self._patterns]

    def matches(self, url: str | httpx.URL) -> bool:
        """Return ``True`` if *url* matches any exclusion pattern."""
        text = str(url)
        return any(p.search(text) for p in self._patterns)

    def should_bypass(self, request: httpx.Request) -> bool:
        return self.bypass_reason(request) is not None

    def bypass_reason(self, request: httpx.Request) -> str | None:
        """Why *request* must not be intercepted, or ``None`` if it may be."""
        if self.matches(request.url):
            return "excluded"
        if request.method.upper() != "GET":
            return "method"
        if request.url.scheme not in _NETWORK_SCHEMES:
            return "scheme"
        return None


def is_navigation(request: httpx.Request) -> bool:
    """True for a top-level document load.

    Recognised from ``Sec-Fetch-Mode: navigate``, ``Sec-Fetch-Dest:
    document`` or an ``Accept`` header that asks for HTML.
    """
    headers = request.headers
    if headers.get("sec-fetch-mode", "").lower() == "navigate":
        return True
    if headers.get("sec-fetch-dest", "").lower() == "document":
        return True
    return "text/html" in headers.get("accept", "").lower()


class RequestClassifier:
    """Assigns a :class:`~offlinecache.models.Strategy` to an interceptable request."""

    def __init__(self, static_extensions: Iterable[str]) -> None:
        self._extensions = frozenset(ext.lower() for ext in static_extensions)

    def is_static_asset(self, path: str) -> bool:
        """Case-insensitive extension match on the URL path."""
        return splitext(path)[1].lower() in self._extensions

    def classify(self, request: httpx.Request) -> Strategy:
        if is_navigation(request):
            return Strategy.NETWORK_FIRST
        if self.is_static_asset(request.url.path):
            return Strategy.CACHE_FIRST
        return Strategy.STALE_WHILE_REVALIDATE


class RequestRouter:
    """Combines :class:`ExclusionFilter` and :class:`RequestClassifier`."""

    def __init__(self, config: EngineConfig) -> None:
        self.exclusions = ExclusionFilter(config.exclude_patterns)
        self.classifier = RequestClassifier(config.static_extensions)

    def route(self, request: httpx.Request) -> RouteDecision:
        reason = self.exclusions.bypass_reason(request)
        if reason is not None:
            return Bypass(reason)
        return self.classifier.classify(request)
