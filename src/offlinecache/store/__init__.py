"""Named, asynchronous key-value stores for response snapshots.

A :class:`CacheStorage` is the registry of independently named stores; a
:class:`CacheStore` maps request keys to response snapshots (see
:mod:`offlinecache.responses`). Two backends are provided:

* :class:`MemoryCacheStorage` -- process-local, with access counters.
* :class:`DiskCacheStorage` -- one :mod:`diskcache` directory per store.

Use :func:`create_storage` to build the backend named by
:attr:`~offlinecache.models.EngineConfig.storage`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from offlinecache.store.base import CacheStorage, CacheStore
from offlinecache.store.disk import DiskCacheStorage
from offlinecache.store.memory import MemoryCacheStorage


def create_storage(kind: str, root: Optional[str | Path] = None) -> CacheStorage:
    """Build a storage backend by name (``"disk"`` or ``"memory"``).

    Args:
        kind: Backend name.
        root: Directory for the disk backend. Defaults to
            :func:`~offlinecache.config.get_stores_dir`.
    """
    if kind == "memory":
        return MemoryCacheStorage()
    if kind == "disk":
        if root is None:
            from offlinecache.config import get_stores_dir

            root = get_stores_dir()
        return DiskCacheStorage(root)
    raise ValueError(f"Unknown storage backend: {kind}")


__all__ = [
    "CacheStorage",
    "CacheStore",
    "DiskCacheStorage",
    "MemoryCacheStorage",
    "create_storage",
]
