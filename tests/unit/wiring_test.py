"""Sessions built from settings on a temp data directory."""

from pathlib import Path

import pytest

from filehub.config import Settings
from filehub.errors import NotFoundError
from filehub.models import BlobLocation, IncomingFile
from filehub.wiring import create_hub


def _settings(data_dir: Path) -> Settings:
    return Settings(
        data_dir=data_dir,
        principal_email="alice@example.com",
        inline_threshold=10,
        local_ceiling=20,
        sync_debounce=0,
    )


@pytest.mark.asyncio
async def test_in_memory_remote_never_holds_file_bytes(tmp_path: Path) -> None:
    hub = await create_hub(_settings(tmp_path))
    await hub.load()
    try:
        big, medium = await hub.add_files(
            [
                IncomingFile(name="big.bin", data=b"b" * 100),
                IncomingFile(name="medium.bin", data=b"m" * 15),
            ]
        )
    finally:
        await hub.aclose()

    assert not big.ok
    assert big.error is not None and "no storage tier accepted" in big.error
    assert medium.record is not None
    assert medium.record.blob_location is BlobLocation.DEVICE_STORAGE


@pytest.mark.asyncio
async def test_files_survive_a_restart(tmp_path: Path) -> None:
    first = await create_hub(_settings(tmp_path))
    await first.load()
    try:
        [result] = await first.add_files([IncomingFile(name="medium.bin", data=b"m" * 15)])
    finally:
        await first.aclose()
    assert result.record is not None

    second = await create_hub(_settings(tmp_path))
    await second.load()
    try:
        assert [f.name for f in second.files] == ["medium.bin"]
        assert await second.read_file(result.record.id) == b"m" * 15
        with pytest.raises(NotFoundError):
            await second.read_file("no-such-id")
    finally:
        await second.aclose()
