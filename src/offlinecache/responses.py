"""Response snapshots, request identity and the storability rule.

A stored entry is a plain ``dict`` snapshot of a fully read
:class:`httpx.Response`::

    {
        "status_code": 200,
        "reason_phrase": "OK",
        "headers": [["content-type", "text/html"], ...],
        "body": b"...",
        "url": "https://example.com/song/",
    }

Response bodies are single-read streams, so a response that must go both
to the caller and into a store is duplicated: the store receives a
snapshot and the caller a response whose content is already in memory.
:func:`restore_response` always builds a fresh :class:`httpx.Response`.

The body in a snapshot is already decoded by httpx, so ``content-encoding``
and length/framing headers are dropped along with connection-specific
ones; a restored response recomputes ``content-length`` from the body.
"""

from __future__ import annotations

import hashlib
from typing import Any, Optional

import httpx

OPAQUE_EXTENSION = "opaque"

_UNSTORABLE_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-connection",
        "transfer-encoding",
        "upgrade",
        "te",
        "trailer",
        "proxy-authenticate",
        "proxy-authorization",
        "content-encoding",
        "content-length",
    }
)


def request_key(method: str, url: str | httpx.URL) -> str:
    """Return the store key for a request identity (method + full URL)."""
    raw = f"{method.upper()}|{url}"
    return hashlib.sha256(raw.encode()).hexdigest()


def key_for(request: httpx.Request) -> str:
    """Store key of *request*."""
    return request_key(request.method, request.url)


def is_opaque(response: httpx.Response) -> bool:
    """True for an uninspectable cross-origin placeholder response."""
    return response.status_code == 0 or bool(response.extensions.get(OPAQUE_EXTENSION))


def is_storable(response: httpx.Response) -> bool:
    """A response is written to a store only when successful and not opaque.

    Redirects are followed by the network layer and never stored as such;
    4xx/5xx responses go back to the caller unstored.
    """
    return 200 <= response.status_code < 300 and not is_opaque(response)


def snapshot_response(response: httpx.Response) -> dict[str, Any]:
    """Capture a read response as a storable dict.

    The response content must already be loaded (``await response.aread()``).
    """
    headers = [
        [name, value]
        for name, value in response.headers.multi_items()
        if name.lower() not in _UNSTORABLE_HEADERS
    ]
    url: Optional[str] = None
    try:
        url = str(response.request.url)
    except RuntimeError:
        pass
    return {
        "status_code": response.status_code,
        "reason_phrase": response.reason_phrase,
        "headers": headers,
        "body": response.content,
        "url": url,
    }


def restore_response(
    snapshot: dict[str, Any],
    request: Optional[httpx.Request] = None,
) -> httpx.Response:
    """Build a new, fully loaded :class:`httpx.Response` from a snapshot."""
    headers = [(name, value) for name, value in snapshot.get("headers", [])]
    response = httpx.Response(
        status_code=snapshot["status_code"],
        headers=headers,
        content=snapshot.get("body", b""),
        request=request,
    )
    reason = snapshot.get("reason_phrase")
    if reason:
        response.extensions["reason_phrase"] = reason.encode("ascii", "replace")
    return response


def duplicate_response(
    response: httpx.Response,
    request: Optional[httpx.Request] = None,
) -> httpx.Response:
    """Return an independent copy of a read response."""
    if request is None:
        try:
            request = response.request
        except RuntimeError:
            request = None
    copy = restore_response(snapshot_response(response), request)
    for name in (OPAQUE_EXTENSION, "from_cache", "strategy"):
        if name in response.extensions:
            copy.extensions[name] = response.extensions[name]
    return copy
