"""Disk-backed store backend built on :mod:`diskcache`.

Each named store is its own :class:`diskcache.Cache` directory under a
common root::

    <root>/
        guitar-song-v0.9.0/
        guitar-song-v1.0.0/

Entries never expire; a stale entry is only replaced by a newer write or
removed together with its whole store. Blocking diskcache calls run in a
worker thread so a slow disk never stalls the event loop; diskcache is safe
to use from several threads.
"""

from __future__ import annotations

import asyncio
import shutil
import sqlite3
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

import diskcache

from offlinecache.exceptions import StoreFailure
from offlinecache.store.base import CacheStorage, CacheStore

T = TypeVar("T")

_BACKEND_ERRORS = (OSError, sqlite3.Error, diskcache.Timeout)


async def _run(name: str, func: Callable[..., T], *args: Any) -> T:
    """Run a blocking diskcache call in a thread, mapping backend errors."""
    try:
        return await asyncio.to_thread(func, *args)
    except _BACKEND_ERRORS as exc:
        raise StoreFailure(f"Store '{name}' unavailable: {exc}") from exc


class DiskCacheStore(CacheStore):
    """A :class:`~offlinecache.store.base.CacheStore` over one diskcache directory."""

    def __init__(self, name: str, cache: diskcache.Cache) -> None:
        super().__init__(name)
        self._cache = cache

    async def match(self, key: str) -> Optional[dict[str, Any]]:
        return await _run(self.name, self._cache.get, key)

    async def put(self, key: str, snapshot: dict[str, Any]) -> None:
        await _run(self.name, self._cache.set, key, snapshot)

    async def delete(self, key: str) -> bool:
        return await _run(self.name, self._cache.delete, key)

    async def keys(self) -> list[str]:
        return await _run(self.name, lambda: list(self._cache.iterkeys()))

    async def clear(self) -> None:
        await _run(self.name, self._cache.clear)

    async def size(self) -> int:
        return await _run(self.name, len, self._cache)

    def close(self) -> None:
        self._cache.close()


class DiskCacheStorage(CacheStorage):
    """A :class:`~offlinecache.store.base.CacheStorage` rooted at a directory.

    Args:
        root: Directory that holds one subdirectory per store.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        self._open: dict[str, DiskCacheStore] = {}

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, name: str) -> Path:
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            raise StoreFailure(f"Invalid store name: {name!r}")
        return self._root / name

    async def open(self, name: str) -> CacheStore:
        path = self._path(name)
        store = self._open.get(name)
        if store is not None:
            if await _run(name, path.is_dir):
                return store
            # directory was removed externally
            if self._open.get(name) is store:
                del self._open[name]
            store.close()
        cache = await _run(name, diskcache.Cache, str(path))
        store = DiskCacheStore(name, cache)
        self._open[name] = store
        return store

    async def has(self, name: str) -> bool:
        return await _run(name, self._path(name).is_dir)

    async def keys(self) -> list[str]:
        return await _run(
            str(self._root), lambda: sorted(p.name for p in self._root.iterdir() if p.is_dir())
        )

    async def delete(self, name: str) -> bool:
        path = self._path(name)
        store = self._open.pop(name, None)
        if store is not None:
            store.close()
        if not await _run(name, path.is_dir):
            return False
        await _run(name, shutil.rmtree, path)
        return True

    async def stats(self) -> dict[str, Any]:
        stats = await super().stats()
        return {"backend": "disk", "directory": str(self._root), **stats}

    async def close(self) -> None:
        for store in self._open.values():
            store.close()
        self._open.clear()
