"""Blob placement across the inline, device and remote tiers.

Tiers form a strictly escalating chain. ``StorageRouter.plan`` picks the
slice of the chain a file may use from its size alone, and
``StorageRouter.place`` walks that slice until one tier accepts the file.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from filehub.core.ports.local import DeviceBlobStore, LocalBlobStore
from filehub.core.ports.remote import RemoteService
from filehub.errors import (
    CapacityExceededError,
    FileHubError,
    NotFoundError,
    StorageExhaustedError,
    TransientIOError,
    UnauthenticatedError,
)
from filehub.models import BlobLocation, FileRecord

logger = logging.getLogger(__name__)


class StorageTier(Protocol):
    location: BlobLocation
    escalates_on: tuple[type[Exception], ...]

    async def store(self, record: FileRecord, data: bytes) -> FileRecord: ...

    async def read(self, record: FileRecord) -> bytes: ...

    async def discard(self, record: FileRecord) -> None: ...


class InlineTier:
    """Bytes live in the local blob store row itself."""

    location = BlobLocation.INLINE_LOCAL
    escalates_on: tuple[type[Exception], ...] = (CapacityExceededError,)

    def __init__(self, blob_store: LocalBlobStore) -> None:
        self._blob_store = blob_store

    async def store(self, record: FileRecord, data: bytes) -> FileRecord:
        placed = record.model_copy(update={"blob_location": self.location, "blob_locator": None, "payload": data})
        await self._blob_store.put(placed)
        return placed

    async def read(self, record: FileRecord) -> bytes:
        if record.payload is not None:
            return record.payload
        stored = await self._blob_store.get(record.id)
        if stored is None or stored.payload is None:
            raise TransientIOError(f"inline payload missing for {record.name}")
        return stored.payload

    async def discard(self, record: FileRecord) -> None:
        # The payload goes away with the row.
        return None


class DeviceTier:
    location = BlobLocation.DEVICE_STORAGE
    escalates_on: tuple[type[Exception], ...] = (CapacityExceededError, TransientIOError)

    def __init__(self, blob_store: LocalBlobStore, device: DeviceBlobStore) -> None:
        self._blob_store = blob_store
        self._device = device

    async def store(self, record: FileRecord, data: bytes) -> FileRecord:
        locator = await self._device.write(record.id, data)
        placed = record.model_copy(update={"blob_location": self.location, "blob_locator": locator, "payload": None})
        try:
            await self._blob_store.put(placed)
        except FileHubError:
            await self._device.delete(locator)
            raise
        return placed

    async def read(self, record: FileRecord) -> bytes:
        assert record.blob_locator is not None
        return await self._device.read(record.blob_locator)

    async def discard(self, record: FileRecord) -> None:
        if record.blob_locator:
            await self._device.delete(record.blob_locator)


class RemoteTier:
    location = BlobLocation.REMOTE_OBJECT_STORE
    escalates_on: tuple[type[Exception], ...] = ()

    def __init__(self, blob_store: LocalBlobStore, remote: RemoteService) -> None:
        self._blob_store = blob_store
        self._remote = remote

    async def store(self, record: FileRecord, data: bytes) -> FileRecord:
        principal = await self._remote.current_principal()
        if principal is None:
            raise UnauthenticatedError("remote storage needs a signed-in principal")
        locator = await self._remote.upload_blob(data, principal.id)
        placed = record.model_copy(update={"blob_location": self.location, "blob_locator": locator, "payload": None})
        try:
            await self._blob_store.put(placed)
        except FileHubError:
            await self._remote.delete_blob(locator)
            raise
        return placed

    async def read(self, record: FileRecord) -> bytes:
        assert record.blob_locator is not None
        return await self._remote.download_blob(record.blob_locator)

    async def discard(self, record: FileRecord) -> None:
        if record.blob_locator:
            await self._remote.delete_blob(record.blob_locator)


@dataclass(frozen=True)
class Placement:
    record: FileRecord
    attempted: tuple[BlobLocation, ...]

    @property
    def location(self) -> BlobLocation:
        return self.record.blob_location


class StorageRouter:
    def __init__(
        self,
        tiers: Sequence[StorageTier],
        inline_threshold: int,
        local_ceiling: int,
    ) -> None:
        if local_ceiling < inline_threshold:
            raise ValueError("local_ceiling must be >= inline_threshold")
        self._tiers = {tier.location: tier for tier in tiers}
        self.inline_threshold = inline_threshold
        self.local_ceiling = local_ceiling

    def tier_for(self, location: BlobLocation) -> StorageTier:
        try:
            return self._tiers[location]
        except KeyError:
            raise NotFoundError(f"No {location.value} tier is configured") from None

    def plan(self, size: int) -> list[BlobLocation]:
        """Return the tiers a file of ``size`` bytes may try, smallest first."""
        if size > self.local_ceiling:
            chain = [BlobLocation.REMOTE_OBJECT_STORE]
        elif size > self.inline_threshold:
            chain = [BlobLocation.DEVICE_STORAGE, BlobLocation.REMOTE_OBJECT_STORE]
        else:
            chain = [BlobLocation.INLINE_LOCAL, BlobLocation.DEVICE_STORAGE, BlobLocation.REMOTE_OBJECT_STORE]
        return [location for location in chain if location in self._tiers]

    async def place(self, record: FileRecord, data: bytes) -> Placement:
        attempts: dict[str, Exception] = {}
        attempted: list[BlobLocation] = []
        for location in self.plan(len(data)):
            tier = self._tiers[location]
            attempted.append(location)
            try:
                placed = await tier.store(record, data)
            except tier.escalates_on as exc:
                logger.info("Tier %s refused %s (%s), escalating", location.value, record.name, exc)
                attempts[location.value] = exc
                continue
            except FileHubError as exc:
                if location is not BlobLocation.REMOTE_OBJECT_STORE:
                    raise
                attempts[location.value] = exc
                break
            logger.debug("Placed %s (%d bytes) in %s", record.name, len(data), location.value)
            return Placement(record=placed, attempted=tuple(attempted))
        raise StorageExhaustedError(len(data), attempts)
