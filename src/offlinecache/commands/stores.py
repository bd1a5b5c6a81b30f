"""Store commands -- inspect and clean up cache stores.

``offlinecache stores`` works on the store registry selected by the
resolved engine config (``storage: disk`` keeps stores under the XDG cache
directory). Each store is tagged relative to the configured version:

* ``current`` -- the store of the configured version;
* ``orphan`` -- another generation of the same namespace, which the next
  activation would delete;
* ``foreign`` -- a store outside the namespace, never touched by the engine.
"""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine, TypeVar

import typer

from offlinecache.commands.engine import resolve_engine_config
from offlinecache.exceptions import OfflineCacheError
from offlinecache.exit_codes import EXIT_INVALID_USAGE
from offlinecache.models import CacheVersion, EngineConfig
from offlinecache.output import error, info, print_table, success
from offlinecache.store import CacheStorage, create_storage

stores_app = typer.Typer(no_args_is_help=True)

T = TypeVar("T")


def _open_storage(config: EngineConfig) -> CacheStorage:
    return create_storage(config.storage)


def _tag(version: CacheVersion, name: str) -> str:
    if version.owns(name):
        return "current"
    if version.is_orphan(name):
        return "orphan"
    return "foreign"


def _run(coro: Coroutine[Any, Any, T]) -> T:
    try:
        return asyncio.run(coro)
    except OfflineCacheError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


async def _list(config: EngineConfig) -> list[list[str]]:
    storage = _open_storage(config)
    try:
        stats = await storage.stats()
        return [
            [name, _tag(config.cache_version, name), str(entries)]
            for name, entries in stats["stores"].items()
        ]
    finally:
        await storage.close()


async def _orphans(config: EngineConfig) -> list[str]:
    storage = _open_storage(config)
    try:
        return [name for name in await storage.keys() if config.cache_version.is_orphan(name)]
    finally:
        await storage.close()


async def _delete(config: EngineConfig, names: list[str]) -> list[str]:
    storage = _open_storage(config)
    try:
        return [name for name in names if await storage.delete(name)]
    finally:
        await storage.close()


@stores_app.command("list")
def stores_list(ctx: typer.Context) -> None:
    """List stores with their entry counts.

    Example::

        offlinecache stores list
        offlinecache --json stores list
    """
    config = resolve_engine_config(ctx)
    rows = _run(_list(config))
    if not rows:
        info("No cache stores.")
        return
    print_table(["name", "status", "entries"], rows, title="Cache stores")


@stores_app.command("purge")
def stores_purge(ctx: typer.Context) -> None:
    """Delete every orphaned generation of the configured namespace.

    Asks for confirmation unless ``--force`` is active.
    """
    config = resolve_engine_config(ctx)
    orphans = _run(_orphans(config))
    if not orphans:
        info("No orphaned stores.")
        return

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force and not typer.confirm(f"Delete {', '.join(orphans)}?"):
        info("Cancelled.")
        raise typer.Exit()

    for name in _run(_delete(config, orphans)):
        success(f"Deleted {name}")


@stores_app.command("clear")
def stores_clear(
    ctx: typer.Context,
    name: str = typer.Argument(help="Name of the store to delete."),
) -> None:
    """Delete one store by name.

    Raises:
        typer.Exit: With code 2 if no store has that name.
    """
    config = resolve_engine_config(ctx)
    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force and not typer.confirm(f"Delete store {name}?"):
        info("Cancelled.")
        raise typer.Exit()

    if not _run(_delete(config, [name])):
        error(f"No such store: {name}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)
    success(f"Deleted {name}")
