import errno
import logging
import os
import re
from pathlib import Path

import aiofiles
import aiofiles.os

from filehub.errors import CapacityExceededError, NotFoundError, TransientIOError
from filehub.models import BlobLocation

logger = logging.getLogger(__name__)

_DEVICE_TIER = BlobLocation.DEVICE_STORAGE.value
_FULL_ERRNOS = frozenset({errno.ENOSPC, errno.EFBIG, getattr(errno, "EDQUOT", errno.ENOSPC)})
_LOCATOR_PATTERN = re.compile(r"^[A-Za-z0-9_-]+\.blob$")


class FileSystemDeviceStore:
    """One file per blob under ``root``; locators are bare file names.

    Writes go to a temp file that is fsynced and then renamed into place,
    so a blob is either fully present or absent.
    """

    def __init__(self, root: str | Path, capacity: int | None = None) -> None:
        self._root = Path(root)
        self._capacity = capacity

    def _path_for(self, locator: str) -> Path:
        if not _LOCATOR_PATTERN.match(locator):
            raise NotFoundError(f"Invalid device locator: {locator!r}")
        return self._root / locator

    async def write(self, blob_id: str, data: bytes) -> str:
        locator = f"{blob_id}.blob"
        path = self._path_for(locator)
        if self._capacity is not None:
            used = await self.usage()
            existing = await self._size_of(path)
            available = self._capacity - (used - existing)
            if len(data) > available:
                raise CapacityExceededError(_DEVICE_TIER, len(data), max(0, available))

        tmp_path = path.with_suffix(".tmp")
        try:
            await aiofiles.os.makedirs(self._root, exist_ok=True)
            async with aiofiles.open(tmp_path, "wb") as f:
                await f.write(data)
                await f.flush()
                os.fsync(f.fileno())
            await aiofiles.os.replace(tmp_path, path)
        except OSError as exc:
            await self._unlink_quietly(tmp_path)
            if exc.errno in _FULL_ERRNOS:
                raise CapacityExceededError(_DEVICE_TIER, len(data)) from exc
            raise TransientIOError(f"device write failed for {locator}: {exc}") from exc
        return locator

    async def read(self, locator: str) -> bytes:
        path = self._path_for(locator)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except FileNotFoundError as exc:
            raise NotFoundError(f"Device blob {locator} is missing") from exc
        except OSError as exc:
            raise TransientIOError(f"device read failed for {locator}: {exc}") from exc

    async def delete(self, locator: str) -> None:
        path = self._path_for(locator)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return
        except OSError as exc:
            raise TransientIOError(f"device delete failed for {locator}: {exc}") from exc

    async def usage(self) -> int:
        try:
            names = await aiofiles.os.listdir(self._root)
        except FileNotFoundError:
            return 0
        total = 0
        for name in names:
            if name.endswith(".blob"):
                total += await self._size_of(self._root / name)
        return total

    async def clear(self) -> None:
        try:
            names = await aiofiles.os.listdir(self._root)
        except FileNotFoundError:
            return
        for name in names:
            if name.endswith((".blob", ".tmp")):
                await self._unlink_quietly(self._root / name)
        logger.info("Cleared device blobs under %s", self._root)

    def quota(self) -> int | None:
        return self._capacity

    @staticmethod
    async def _size_of(path: Path) -> int:
        try:
            stat = await aiofiles.os.stat(path)
        except FileNotFoundError:
            return 0
        return stat.st_size

    @staticmethod
    async def _unlink_quietly(path: Path) -> None:
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return
