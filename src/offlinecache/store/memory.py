"""Process-local store backend.

Entries live in plain dicts. The storage counts how often stores are
opened, read and written, which makes it the backend of choice for tests
and for embedding the engine where persistence across restarts is not
needed.
"""

from __future__ import annotations

import asyncio
import copy
from typing import Any, Optional

from offlinecache.store.base import CacheStorage, CacheStore


class _Counters:
    def __init__(self) -> None:
        self.opens = 0
        self.reads = 0
        self.writes = 0

    def as_dict(self) -> dict[str, int]:
        return {"opens": self.opens, "reads": self.reads, "writes": self.writes}


class MemoryCacheStore(CacheStore):
    """In-memory :class:`~offlinecache.store.base.CacheStore`."""

    def __init__(self, name: str, counters: _Counters) -> None:
        super().__init__(name)
        self._entries: dict[str, dict[str, Any]] = {}
        self._counters = counters

    async def match(self, key: str) -> Optional[dict[str, Any]]:
        self._counters.reads += 1
        await asyncio.sleep(0)
        entry = self._entries.get(key)
        return copy.deepcopy(entry) if entry is not None else None

    async def put(self, key: str, snapshot: dict[str, Any]) -> None:
        self._counters.writes += 1
        await asyncio.sleep(0)
        self._entries[key] = copy.deepcopy(snapshot)

    async def delete(self, key: str) -> bool:
        self._counters.writes += 1
        return self._entries.pop(key, None) is not None

    async def keys(self) -> list[str]:
        return list(self._entries)

    async def clear(self) -> None:
        self._counters.writes += 1
        self._entries.clear()


class MemoryCacheStorage(CacheStorage):
    """In-memory :class:`~offlinecache.store.base.CacheStorage`.

    Example::

        storage = MemoryCacheStorage()
        store = await storage.open("guitar-song-v1.0.0")
        await store.put(key, snapshot)
        assert (await storage.stats())["writes"] == 1
    """

    def __init__(self) -> None:
        self._stores: dict[str, MemoryCacheStore] = {}
        self._counters = _Counters()

    @property
    def opens(self) -> int:
        return self._counters.opens

    @property
    def reads(self) -> int:
        return self._counters.reads

    @property
    def writes(self) -> int:
        return self._counters.writes

    async def open(self, name: str) -> CacheStore:
        self._counters.opens += 1
        store = self._stores.get(name)
        if store is None:
            store = MemoryCacheStore(name, self._counters)
            self._stores[name] = store
        return store

    async def has(self, name: str) -> bool:
        return name in self._stores

    async def keys(self) -> list[str]:
        return sorted(self._stores)

    async def delete(self, name: str) -> bool:
        return self._stores.pop(name, None) is not None

    async def stats(self) -> dict[str, Any]:
        stores = {name: len(store._entries) for name, store in sorted(self._stores.items())}
        return {"backend": "memory", "stores": stores, **self._counters.as_dict()}
