"""Tests for offlinecache.store -- memory and disk backends."""

from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from offlinecache.exceptions import StoreFailure
from offlinecache.store import (
    CacheStorage,
    DiskCacheStorage,
    MemoryCacheStorage,
    create_storage,
)


SNAPSHOT = {
    "status_code": 200,
    "reason_phrase": "OK",
    "headers": [["content-type", "text/html"]],
    "body": b"<html>shell</html>",
    "url": "https://songs.example.com/song/index.html",
}


@pytest.fixture(params=["memory", "disk"])
def any_storage(request: pytest.FixtureRequest, tmp_path: Path) -> CacheStorage:
    if request.param == "memory":
        return MemoryCacheStorage()
    return DiskCacheStorage(tmp_path / "stores")


# ------------------------------------------------------------------ #
# Behaviour shared by both backends
# ------------------------------------------------------------------ #


class TestStorageContract:
    @pytest.mark.asyncio
    async def test_open_creates_store(self, any_storage: CacheStorage) -> None:
        assert not await any_storage.has("guitar-song-v1.0.0")
        await any_storage.open("guitar-song-v1.0.0")
        assert await any_storage.has("guitar-song-v1.0.0")
        assert await any_storage.keys() == ["guitar-song-v1.0.0"]
        await any_storage.close()

    @pytest.mark.asyncio
    async def test_put_and_match(self, any_storage: CacheStorage) -> None:
        store = await any_storage.open("guitar-song-v1.0.0")
        await store.put("k", SNAPSHOT)
        assert await store.match("k") == SNAPSHOT
        assert await store.match("missing") is None
        assert await store.size() == 1
        await any_storage.close()

    @pytest.mark.asyncio
    async def test_put_overwrites(self, any_storage: CacheStorage) -> None:
        store = await any_storage.open("s")
        await store.put("k", SNAPSHOT)
        await store.put("k", {**SNAPSHOT, "body": b"new"})
        assert (await store.match("k"))["body"] == b"new"
        assert await store.size() == 1
        await any_storage.close()

    @pytest.mark.asyncio
    async def test_entry_delete_and_clear(self, any_storage: CacheStorage) -> None:
        store = await any_storage.open("s")
        await store.put("a", SNAPSHOT)
        await store.put("b", SNAPSHOT)
        assert await store.delete("a") is True
        assert await store.delete("a") is False
        await store.clear()
        assert await store.keys() == []
        await any_storage.close()

    @pytest.mark.asyncio
    async def test_stores_are_independent(self, any_storage: CacheStorage) -> None:
        old = await any_storage.open("guitar-song-v0.9.0")
        new = await any_storage.open("guitar-song-v1.0.0")
        await old.put("k", SNAPSHOT)
        assert await new.match("k") is None
        await any_storage.close()

    @pytest.mark.asyncio
    async def test_delete_store(self, any_storage: CacheStorage) -> None:
        store = await any_storage.open("guitar-song-v0.9.0")
        await store.put("k", SNAPSHOT)
        assert await any_storage.delete("guitar-song-v0.9.0") is True
        assert await any_storage.delete("guitar-song-v0.9.0") is False
        assert not await any_storage.has("guitar-song-v0.9.0")
        reopened = await any_storage.open("guitar-song-v0.9.0")
        assert await reopened.match("k") is None
        await any_storage.close()

    @pytest.mark.asyncio
    async def test_stats_lists_entry_counts(self, any_storage: CacheStorage) -> None:
        store = await any_storage.open("s")
        await store.put("k", SNAPSHOT)
        stats = await any_storage.stats()
        assert stats["stores"] == {"s": 1}
        await any_storage.close()


# ------------------------------------------------------------------ #
# Memory backend specifics
# ------------------------------------------------------------------ #


class TestMemoryCounters:
    @pytest.mark.asyncio
    async def test_counts_opens_reads_writes(self) -> None:
        storage = MemoryCacheStorage()
        store = await storage.open("s")
        await store.put("k", SNAPSHOT)
        await store.match("k")
        await store.match("other")
        assert (storage.opens, storage.reads, storage.writes) == (1, 2, 1)
        stats = await storage.stats()
        assert stats["backend"] == "memory"
        assert stats["writes"] == 1

    @pytest.mark.asyncio
    async def test_match_returns_a_copy(self) -> None:
        storage = MemoryCacheStorage()
        store = await storage.open("s")
        await store.put("k", SNAPSHOT)
        entry = await store.match("k")
        entry["status_code"] = 500
        assert (await store.match("k"))["status_code"] == 200


# ------------------------------------------------------------------ #
# Disk backend specifics
# ------------------------------------------------------------------ #


class TestDiskStorage:
    @pytest.mark.asyncio
    async def test_entries_survive_reopen(self, tmp_path: Path) -> None:
        first = DiskCacheStorage(tmp_path)
        await (await first.open("guitar-song-v1.0.0")).put("k", SNAPSHOT)
        await first.close()

        second = DiskCacheStorage(tmp_path)
        store = await second.open("guitar-song-v1.0.0")
        assert await store.match("k") == SNAPSHOT
        await second.close()

    @pytest.mark.asyncio
    async def test_delete_removes_directory(self, tmp_path: Path) -> None:
        storage = DiskCacheStorage(tmp_path)
        await storage.open("guitar-song-v0.9.0")
        assert (tmp_path / "guitar-song-v0.9.0").is_dir()
        await storage.delete("guitar-song-v0.9.0")
        assert not (tmp_path / "guitar-song-v0.9.0").exists()
        await storage.close()

    @pytest.mark.asyncio
    async def test_reopen_after_external_removal_closes_old_handle(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        storage = DiskCacheStorage(tmp_path)
        first = await storage.open("guitar-song-v1.0.0")
        closed: list[bool] = []
        original_close = first.close

        def record_close() -> None:
            closed.append(True)
            original_close()

        monkeypatch.setattr(first, "close", record_close)
        shutil.rmtree(tmp_path / "guitar-song-v1.0.0")

        second = await storage.open("guitar-song-v1.0.0")
        assert second is not first
        assert closed == [True]
        assert (tmp_path / "guitar-song-v1.0.0").is_dir()
        await storage.close()

    @pytest.mark.asyncio
    async def test_missing_root_is_a_store_failure(self, tmp_path: Path) -> None:
        storage = DiskCacheStorage(tmp_path / "stores")
        shutil.rmtree(tmp_path / "stores")
        with pytest.raises(StoreFailure):
            await storage.keys()

    @pytest.mark.asyncio
    async def test_invalid_store_name(self, tmp_path: Path) -> None:
        storage = DiskCacheStorage(tmp_path)
        with pytest.raises(StoreFailure):
            await storage.open("../escape")

    @pytest.mark.asyncio
    async def test_stats_include_directory(self, tmp_path: Path) -> None:
        storage = DiskCacheStorage(tmp_path)
        stats = await storage.stats()
        assert stats["backend"] == "disk"
        assert stats["directory"] == str(tmp_path)


class TestCreateStorage:
    def test_memory(self) -> None:
        assert isinstance(create_storage("memory"), MemoryCacheStorage)

    def test_disk_with_root(self, tmp_path: Path) -> None:
        storage = create_storage("disk", tmp_path / "s")
        assert isinstance(storage, DiskCacheStorage)
        assert storage.root == tmp_path / "s"

    def test_disk_defaults_to_stores_dir(self, isolated_config: Path) -> None:
        from offlinecache.config import get_stores_dir

        storage = create_storage("disk")
        assert storage.root == get_stores_dir()

    def test_unknown(self) -> None:
        with pytest.raises(ValueError):
            create_storage("tape")
