from typing import Protocol

from filehub.models import FileRecord, FolderRecord, TargetKind


class LocalBlobStore(Protocol):
    async def put(self, record: FileRecord) -> None: ...

    async def get(self, file_id: str) -> FileRecord | None: ...

    async def get_all(self) -> list[FileRecord]: ...

    async def remove(self, file_id: str) -> None: ...

    async def clear(self) -> None: ...

    async def usage(self) -> int: ...

    def quota(self) -> int | None: ...

    async def dispose(self) -> None: ...


class LocalMetadataStore(Protocol):
    async def save(self, folders: list[FolderRecord]) -> None: ...

    async def load(self) -> list[FolderRecord]: ...

    async def clear(self) -> None: ...

    async def size_bytes(self) -> int: ...


class DeviceBlobStore(Protocol):
    async def write(self, blob_id: str, data: bytes) -> str: ...

    async def read(self, locator: str) -> bytes: ...

    async def delete(self, locator: str) -> None: ...

    async def usage(self) -> int: ...

    async def clear(self) -> None: ...

    def quota(self) -> int | None: ...


class SyncMap(Protocol):
    async def get(self, kind: TargetKind, local_id: str) -> str | None: ...

    async def put(self, kind: TargetKind, local_id: str, remote_id: str) -> None: ...

    async def forget(self, kind: TargetKind, local_id: str) -> None: ...

    async def items(self, kind: TargetKind) -> dict[str, str]: ...

    async def clear(self) -> None: ...
