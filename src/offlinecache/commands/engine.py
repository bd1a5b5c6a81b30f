"""Engine commands -- ``install``, ``fetch`` and ``classify``.

These commands build an :class:`~offlinecache.engine.OfflineCacheEngine`
from the resolved configuration (see :func:`~offlinecache.config.resolve_config`)
and drive it for one process lifetime. ``install`` precaches the manifest
into the current version's store and activates it; ``fetch`` does the same
and then answers one request; ``classify`` only reports the routing
decision and never touches the network.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import httpx
import typer

from offlinecache.engine import OfflineCacheEngine
from offlinecache.exceptions import InvalidUsageError, OfflineCacheError
from offlinecache.exit_codes import EXIT_INVALID_USAGE, EXIT_PRECACHE_FAILURE
from offlinecache.models import EngineConfig, LifecycleState
from offlinecache.output import error, format_response, info, success, warning


def resolve_engine_config(ctx: typer.Context) -> EngineConfig:
    """Resolve the engine config for a command, exiting on invalid input."""
    from offlinecache.config import resolve_config

    cli_config = ctx.obj.get("config") if ctx.obj else None
    try:
        _, engine_cfg = resolve_config(cli_config=cli_config)
    except OfflineCacheError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    return engine_cfg


def _require_origin(config: EngineConfig) -> str:
    if not config.origin:
        error("No origin configured. Run 'offlinecache init --origin URL' or set OFFLINECACHE_ORIGIN.")
        raise typer.Exit(code=EXIT_INVALID_USAGE)
    return config.origin


def build_request(
    config: EngineConfig,
    url: str,
    method: str = "GET",
    accept: Optional[str] = None,
    navigate: bool = False,
) -> httpx.Request:
    """Build the request a browser would send for *url*.

    Relative URLs resolve against the configured origin. ``navigate`` adds
    the headers of a top-level page load.
    """
    target = httpx.URL(url)
    if config.origin:
        target = httpx.URL(config.origin).join(url)
    elif not target.is_absolute_url:
        raise InvalidUsageError(f"Relative URL {url!r} needs a configured origin")
    headers: dict[str, str] = {}
    if accept:
        headers["Accept"] = accept
    if navigate:
        headers["Sec-Fetch-Mode"] = "navigate"
        headers["Sec-Fetch-Dest"] = "document"
        headers.setdefault("Accept", "text/html")
    return httpx.Request(method.upper(), target, headers=headers)


# ------------------------------------------------------------------ #
# install
# ------------------------------------------------------------------ #


def _make_engine(config: EngineConfig) -> OfflineCacheEngine:
    return OfflineCacheEngine(config)


async def _install(config: EngineConfig) -> dict[str, object]:
    from offlinecache.events import EventContext, EventType

    deleted: list[str] = []

    async def _record_deleted(ctx: EventContext) -> None:
        deleted.extend(ctx.details.get("deleted", []))

    async with _make_engine(config) as engine:
        engine.events.on(EventType.ACTIVATE, _record_deleted, observer=True)
        state = await engine.start()
        entries = 0
        if state != LifecycleState.FAILED:
            store = await engine.storage.open(engine.version.store_name)
            entries = await store.size()
        summary: dict[str, object] = {
            "store": engine.version.store_name,
            "state": state.value,
            "entries": entries,
            "deleted": deleted,
            "update_available": engine.lifecycle.update_available,
        }
        if engine.lifecycle.last_error is not None:
            summary["failed"] = engine.lifecycle.last_error.failed
        return summary


def install_command(ctx: typer.Context) -> None:
    """Precache the manifest and activate the configured version.

    Exits with code 7 when any manifest resource is unavailable; the store
    of the new version is then left untouched or removed.

    Example::

        offlinecache install
        offlinecache --json install
    """
    config = resolve_engine_config(ctx)
    _require_origin(config)
    info(f"Installing {config.cache_version.store_name} from {config.origin}")

    summary = asyncio.run(_install(config))
    if summary["state"] == LifecycleState.FAILED.value:
        failed = summary.get("failed") or []
        error(f"Install failed: {', '.join(failed)}")  # type: ignore[arg-type]
        format_response(summary)
        raise typer.Exit(code=EXIT_PRECACHE_FAILURE)

    format_response(summary)
    if summary["state"] == LifecycleState.ACTIVE.value:
        success(f"{summary['store']} is active")
    else:
        info(f"{summary['store']} installed and waiting")


# ------------------------------------------------------------------ #
# fetch
# ------------------------------------------------------------------ #


async def _fetch(config: EngineConfig, request: httpx.Request) -> dict[str, object]:
    from offlinecache.routing import Bypass

    async with _make_engine(config) as engine:
        state = await engine.start()
        if state != LifecycleState.ACTIVE:
            warning(f"Engine is {state.value}; the request goes straight to the network")
        decision = engine.route(request)
        response = await engine.handle(request)
        if isinstance(decision, Bypass):
            route = f"bypass ({decision.reason})"
        else:
            route = decision.value
        return {
            "url": str(request.url),
            "status": response.status_code,
            "route": route,
            "from_cache": bool(response.extensions.get("from_cache", False)),
            "content_type": response.headers.get("content-type", ""),
            "body": response.text,
        }


def fetch_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="URL or origin-relative path to request."),
    accept: Optional[str] = typer.Option(None, "--accept", help="Accept header value."),
    navigate: bool = typer.Option(False, "--navigate", help="Send as a page navigation."),
) -> None:
    """Run one GET request through the engine and print the outcome.

    Example::

        offlinecache fetch /app.js
        offlinecache fetch /song/42 --navigate
    """
    config = resolve_engine_config(ctx)
    _require_origin(config)
    try:
        request = build_request(config, url, accept=accept, navigate=navigate)
        result = asyncio.run(_fetch(config, request))
    except OfflineCacheError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    format_response(result)


# ------------------------------------------------------------------ #
# classify
# ------------------------------------------------------------------ #


def classify_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="URL or origin-relative path to classify."),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method."),
    accept: Optional[str] = typer.Option(None, "--accept", help="Accept header value."),
    navigate: bool = typer.Option(False, "--navigate", help="Classify as a page navigation."),
) -> None:
    """Print the routing decision an active engine would make for a request.

    Example::

        offlinecache classify /api/songs
        offlinecache classify /logo.png
        offlinecache classify /song/42 --navigate
    """
    from offlinecache.routing import Bypass, RequestRouter

    config = resolve_engine_config(ctx)
    try:
        request = build_request(config, url, method=method, accept=accept, navigate=navigate)
    except InvalidUsageError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    decision = RequestRouter(config).route(request)
    if isinstance(decision, Bypass):
        result = {"url": str(request.url), "method": request.method, "decision": "bypass", "reason": decision.reason}
    else:
        result = {"url": str(request.url), "method": request.method, "decision": decision.value}
    format_response(result)
