from pathlib import Path

import pytest

from filehub.db import FileSystemDeviceStore
from filehub.errors import CapacityExceededError, NotFoundError


@pytest.mark.asyncio
async def test_write_then_read(tmp_path: Path) -> None:
    store = FileSystemDeviceStore(tmp_path / "blobs")
    locator = await store.write("abc123", b"payload")

    assert locator == "abc123.blob"
    assert await store.read(locator) == b"payload"
    assert await store.usage() == len(b"payload")
    assert sorted(p.name for p in (tmp_path / "blobs").iterdir()) == ["abc123.blob"]


@pytest.mark.asyncio
async def test_capacity_is_enforced(tmp_path: Path) -> None:
    store = FileSystemDeviceStore(tmp_path, capacity=8)
    await store.write("a", b"12345")

    with pytest.raises(CapacityExceededError) as excinfo:
        await store.write("b", b"6789")
    assert excinfo.value.tier == "device-storage"
    assert excinfo.value.available_bytes == 3


@pytest.mark.asyncio
async def test_overwrite_does_not_count_old_bytes(tmp_path: Path) -> None:
    store = FileSystemDeviceStore(tmp_path, capacity=8)
    await store.write("a", b"12345")
    await store.write("a", b"12345678")

    assert await store.read("a.blob") == b"12345678"


@pytest.mark.asyncio
async def test_missing_blob_is_not_found(tmp_path: Path) -> None:
    store = FileSystemDeviceStore(tmp_path)

    with pytest.raises(NotFoundError):
        await store.read("nope.blob")


@pytest.mark.asyncio
async def test_locator_cannot_escape_the_root(tmp_path: Path) -> None:
    store = FileSystemDeviceStore(tmp_path / "blobs")

    with pytest.raises(NotFoundError):
        await store.read("../secrets.blob")


@pytest.mark.asyncio
async def test_delete_and_clear(tmp_path: Path) -> None:
    store = FileSystemDeviceStore(tmp_path)
    first = await store.write("a", b"1")
    await store.write("b", b"2")

    await store.delete(first)
    await store.delete(first)
    assert await store.usage() == 1

    await store.clear()
    assert await store.usage() == 0


@pytest.mark.asyncio
async def test_usage_of_missing_root_is_zero(tmp_path: Path) -> None:
    store = FileSystemDeviceStore(tmp_path / "never-created")

    assert await store.usage() == 0
    assert store.quota() is None
