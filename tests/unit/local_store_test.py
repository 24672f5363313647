"""SQLite blob store, sync map and JSON folder store on a temp directory."""

import logging
from collections.abc import AsyncIterator
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from filehub.db import JsonFolderStore, SqliteBlobStore, SqliteSyncMap, get_local_engine
from filehub.errors import CapacityExceededError, TransientIOError
from filehub.models import BlobLocation, FileRecord, FolderColor, FolderRecord, TargetKind


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    instance = get_local_engine(tmp_path / "nested" / "local.sqlite3")
    yield instance
    await instance.dispose()


def _inline(name: str, payload: bytes, **kwargs: object) -> FileRecord:
    return FileRecord(name=name, size_bytes=len(payload), payload=payload, **kwargs)  # type: ignore[arg-type]


class TestSqliteBlobStore:
    @pytest.mark.asyncio
    async def test_put_then_get_all_is_bit_identical(self, engine: AsyncEngine) -> None:
        store = SqliteBlobStore(engine)
        record = _inline(
            "notes.txt",
            bytes(range(256)),
            mime_type="text/plain",
            text_preview="notes",
        )
        await store.put(record)

        assert await store.get_all() == [record]
        assert await store.get(record.id) == record

    @pytest.mark.asyncio
    async def test_put_overwrites_by_id(self, engine: AsyncEngine) -> None:
        store = SqliteBlobStore(engine)
        record = _inline("a.txt", b"one")
        await store.put(record)
        await store.put(record.model_copy(update={"name": "b.txt", "folder_id": "f1"}))

        records = await store.get_all()
        assert [(r.name, r.folder_id) for r in records] == [("b.txt", "f1")]

    @pytest.mark.asyncio
    async def test_device_record_keeps_locator_without_payload(self, engine: AsyncEngine) -> None:
        store = SqliteBlobStore(engine)
        record = FileRecord(
            name="video.mp4",
            size_bytes=10,
            blob_location=BlobLocation.DEVICE_STORAGE,
            blob_locator="abc.blob",
        )
        await store.put(record)

        stored = await store.get(record.id)
        assert stored is not None
        assert stored.payload is None
        assert stored.blob_locator == "abc.blob"
        assert stored.blob_location is BlobLocation.DEVICE_STORAGE

    @pytest.mark.asyncio
    async def test_capacity_counts_other_payloads_only(self, engine: AsyncEngine) -> None:
        store = SqliteBlobStore(engine, capacity=10)
        first = _inline("a", b"123456")
        await store.put(first)
        # Rewriting the same record does not count its old payload twice.
        await store.put(first.model_copy(update={"payload": b"1234567890"}))

        with pytest.raises(CapacityExceededError) as excinfo:
            await store.put(_inline("b", b"x"))
        assert excinfo.value.tier == "inline-local"
        assert excinfo.value.available_bytes == 0

    @pytest.mark.asyncio
    async def test_remove_unknown_id_is_a_no_op(self, engine: AsyncEngine) -> None:
        store = SqliteBlobStore(engine)
        await store.put(_inline("a", b"data"))
        before = await store.usage()

        await store.remove("does-not-exist")

        assert await store.usage() == before

    @pytest.mark.asyncio
    async def test_usage_counts_payload_and_name_bytes(self, engine: AsyncEngine) -> None:
        store = SqliteBlobStore(engine)
        await store.put(_inline("é.txt", b"12345"))
        await store.put(
            FileRecord(name="far.bin", size_bytes=99, blob_location=BlobLocation.DEVICE_STORAGE, blob_locator="x.blob")
        )

        assert await store.usage() == 5 + len("é.txt".encode()) + len(b"far.bin")

    @pytest.mark.asyncio
    async def test_clear_removes_everything(self, engine: AsyncEngine) -> None:
        store = SqliteBlobStore(engine)
        await store.put(_inline("a", b"1"))
        await store.clear()

        assert await store.get_all() == []
        assert await store.usage() == 0


class TestSqliteSyncMap:
    @pytest.mark.asyncio
    async def test_entries_are_keyed_by_kind(self, engine: AsyncEngine) -> None:
        sync_map = SqliteSyncMap(engine)
        await sync_map.put(TargetKind.FILE, "local-1", "remote-1")
        await sync_map.put(TargetKind.FOLDER, "local-1", "remote-folder")

        assert await sync_map.get(TargetKind.FILE, "local-1") == "remote-1"
        assert await sync_map.get(TargetKind.FOLDER, "local-1") == "remote-folder"
        assert await sync_map.items(TargetKind.FILE) == {"local-1": "remote-1"}

    @pytest.mark.asyncio
    async def test_put_replaces_and_forget_removes(self, engine: AsyncEngine) -> None:
        sync_map = SqliteSyncMap(engine)
        await sync_map.put(TargetKind.FILE, "a", "r1")
        await sync_map.put(TargetKind.FILE, "a", "r2")
        assert await sync_map.get(TargetKind.FILE, "a") == "r2"

        await sync_map.forget(TargetKind.FILE, "a")
        assert await sync_map.get(TargetKind.FILE, "a") is None

    @pytest.mark.asyncio
    async def test_survives_a_new_engine(self, tmp_path: Path) -> None:
        path = tmp_path / "map.sqlite3"
        first = get_local_engine(path)
        await SqliteSyncMap(first).put(TargetKind.FILE, "a", "r1")
        await first.dispose()

        second = get_local_engine(path)
        try:
            assert await SqliteSyncMap(second).items(TargetKind.FILE) == {"a": "r1"}
        finally:
            await second.dispose()

    @pytest.mark.asyncio
    async def test_clear(self, engine: AsyncEngine) -> None:
        sync_map = SqliteSyncMap(engine)
        await sync_map.put(TargetKind.FOLDER, "a", "r1")
        await sync_map.clear()

        assert await sync_map.items(TargetKind.FOLDER) == {}

    @pytest.mark.asyncio
    async def test_database_errors_become_transient(self, engine: AsyncEngine) -> None:
        sync_map = SqliteSyncMap(engine)
        await sync_map.put(TargetKind.FILE, "a", "r1")
        async with engine.begin() as conn:
            await conn.execute(text("DROP TABLE sync_map"))

        with pytest.raises(TransientIOError):
            await sync_map.get(TargetKind.FILE, "a")
        with pytest.raises(TransientIOError):
            await sync_map.items(TargetKind.FILE)
        with pytest.raises(TransientIOError):
            await sync_map.clear()


class TestJsonFolderStore:
    @pytest.mark.asyncio
    async def test_save_then_load(self, tmp_path: Path) -> None:
        store = JsonFolderStore(tmp_path / "folders.json")
        folders = [FolderRecord(name="Invoices"), FolderRecord(name="Photos", color=FolderColor.PINK)]
        await store.save(folders)

        assert await store.load() == folders
        assert await store.size_bytes() > 0
        assert not (tmp_path / "folders.json.tmp").exists()

    @pytest.mark.asyncio
    async def test_missing_file_loads_empty(self, tmp_path: Path) -> None:
        store = JsonFolderStore(tmp_path / "absent.json")

        assert await store.load() == []
        assert await store.size_bytes() == 0

    @pytest.mark.asyncio
    async def test_corrupt_file_loads_empty_with_warning(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        path = tmp_path / "folders.json"
        path.write_text("{not json", encoding="utf-8")
        store = JsonFolderStore(path)

        with caplog.at_level(logging.WARNING, logger="filehub.db.local"):
            assert await store.load() == []
        assert "corrupt" in caplog.text

    @pytest.mark.asyncio
    async def test_clear_deletes_the_file(self, tmp_path: Path) -> None:
        store = JsonFolderStore(tmp_path / "folders.json")
        await store.save([FolderRecord(name="A")])
        await store.clear()
        await store.clear()

        assert await store.load() == []
