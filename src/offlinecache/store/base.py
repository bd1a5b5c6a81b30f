"""Abstract interfaces for cache stores.

Every method is a coroutine: store reads and writes are suspension points
of the engine, and their completion order across concurrent requests is
unspecified. Backends raise :class:`~offlinecache.exceptions.StoreFailure`
when the underlying medium cannot be read or written.

Only :class:`~offlinecache.lifecycle.VersionLifecycleManager` creates or
deletes whole stores; strategies only touch entries of the current store.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional


class CacheStore(ABC):
    """One named store mapping request keys to response snapshots.

    A handle stays usable after its store has been deleted from the
    storage; operations on it then complete as wasted work or fail with
    :class:`~offlinecache.exceptions.StoreFailure`.
    """

    def __init__(self, name: str) -> None:
        self.name = name

    @abstractmethod
    async def match(self, key: str) -> Optional[dict[str, Any]]:
        """Return the snapshot stored under *key*, or ``None``."""

    @abstractmethod
    async def put(self, key: str, snapshot: dict[str, Any]) -> None:
        """Store *snapshot* under *key*, overwriting any previous entry."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove one entry. Returns ``True`` if it existed."""

    @abstractmethod
    async def keys(self) -> list[str]:
        """Return every key in the store."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove every entry, keeping the store itself."""

    async def size(self) -> int:
        return len(await self.keys())


class CacheStorage(ABC):
    """Registry of independently named stores."""

    @abstractmethod
    async def open(self, name: str) -> CacheStore:
        """Return the store called *name*, creating it if absent."""

    @abstractmethod
    async def has(self, name: str) -> bool:
        """Return ``True`` if a store called *name* exists."""

    @abstractmethod
    async def keys(self) -> list[str]:
        """Return the names of all existing stores, sorted."""

    @abstractmethod
    async def delete(self, name: str) -> bool:
        """Delete the store called *name*. Returns ``True`` if it existed."""

    async def stats(self) -> dict[str, Any]:
        """Backend-specific diagnostics. Default: store names and entry counts."""
        stores: dict[str, int] = {}
        for name in await self.keys():
            stores[name] = await (await self.open(name)).size()
        return {"stores": stores}

    async def close(self) -> None:
        """Release backend resources."""
