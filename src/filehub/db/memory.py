from typing import Any
from uuid import uuid4

from filehub.errors import (
    AlreadyExistsError,
    CapacityExceededError,
    NotFoundError,
    UnauthenticatedError,
)
from filehub.models import (
    BlobLocation,
    FileRecord,
    FolderRecord,
    NewRemoteFile,
    Principal,
    RemoteFile,
    RemoteFolder,
    ShareGrant,
    TargetKind,
)

_REMOTE_FILE_FIELDS = frozenset({"name", "folder_id", "text_preview", "mime_type", "size_bytes", "blob_locator"})


class InMemoryBlobStore:
    def __init__(self, capacity: int | None = None) -> None:
        self.records: dict[str, FileRecord] = {}
        self.capacity = capacity

    async def put(self, record: FileRecord) -> None:
        if record.payload is not None and self.capacity is not None:
            used = sum(len(r.payload or b"") for r in self.records.values() if r.id != record.id)
            if used + len(record.payload) > self.capacity:
                raise CapacityExceededError(
                    BlobLocation.INLINE_LOCAL.value, len(record.payload), max(0, self.capacity - used)
                )
        self.records[record.id] = record

    async def get(self, file_id: str) -> FileRecord | None:
        return self.records.get(file_id)

    async def get_all(self) -> list[FileRecord]:
        return list(self.records.values())

    async def remove(self, file_id: str) -> None:
        self.records.pop(file_id, None)

    async def clear(self) -> None:
        self.records.clear()

    async def usage(self) -> int:
        return sum(len(r.payload or b"") + len(r.name.encode("utf-8")) for r in self.records.values())

    def quota(self) -> int | None:
        return self.capacity

    async def dispose(self) -> None:
        pass


class InMemoryFolderStore:
    def __init__(self) -> None:
        self.folders: list[FolderRecord] = []

    async def save(self, folders: list[FolderRecord]) -> None:
        self.folders = list(folders)

    async def load(self) -> list[FolderRecord]:
        return list(self.folders)

    async def clear(self) -> None:
        self.folders = []

    async def size_bytes(self) -> int:
        return sum(len(f.model_dump_json()) for f in self.folders)


class InMemoryDeviceStore:
    def __init__(self, capacity: int | None = None) -> None:
        self.blobs: dict[str, bytes] = {}
        self.capacity = capacity

    async def write(self, blob_id: str, data: bytes) -> str:
        locator = f"{blob_id}.blob"
        if self.capacity is not None:
            used = sum(len(b) for key, b in self.blobs.items() if key != locator)
            if used + len(data) > self.capacity:
                raise CapacityExceededError(
                    BlobLocation.DEVICE_STORAGE.value, len(data), max(0, self.capacity - used)
                )
        self.blobs[locator] = data
        return locator

    async def read(self, locator: str) -> bytes:
        try:
            return self.blobs[locator]
        except KeyError as exc:
            raise NotFoundError(f"Device blob {locator} is missing") from exc

    async def delete(self, locator: str) -> None:
        self.blobs.pop(locator, None)

    async def usage(self) -> int:
        return sum(len(b) for b in self.blobs.values())

    async def clear(self) -> None:
        self.blobs.clear()

    def quota(self) -> int | None:
        return self.capacity


class InMemorySyncMap:
    def __init__(self) -> None:
        self.entries: dict[tuple[TargetKind, str], str] = {}

    async def get(self, kind: TargetKind, local_id: str) -> str | None:
        return self.entries.get((kind, local_id))

    async def put(self, kind: TargetKind, local_id: str, remote_id: str) -> None:
        self.entries[(kind, local_id)] = remote_id

    async def forget(self, kind: TargetKind, local_id: str) -> None:
        self.entries.pop((kind, local_id), None)

    async def items(self, kind: TargetKind) -> dict[str, str]:
        return {local_id: remote_id for (k, local_id), remote_id in self.entries.items() if k == kind}

    async def clear(self) -> None:
        self.entries.clear()


class InMemoryRemoteService:
    """Dictionary-backed stand-in for the remote row store and object store."""

    def __init__(self) -> None:
        self.principals: dict[str, Principal] = {}
        self.folders: dict[str, RemoteFolder] = {}
        self.files: dict[str, RemoteFile] = {}
        self.blobs: dict[str, bytes] = {}
        self.grants: list[ShareGrant] = []
        self.calls: list[str] = []
        self._principal: Principal | None = None

    # -- identity ---------------------------------------------------------

    def register_principal(self, email: str, display_name: str | None = None) -> Principal:
        if any(p.email.lower() == email.lower() for p in self.principals.values()):
            raise AlreadyExistsError(f"Principal {email} already exists")
        principal = Principal(id=uuid4().hex, email=email, display_name=display_name)
        self.principals[principal.id] = principal
        return principal

    def sign_in(self, principal: Principal) -> None:
        self._principal = principal

    async def current_principal(self) -> Principal | None:
        return self._principal

    async def sign_out(self) -> None:
        self._principal = None

    def _require_principal(self) -> Principal:
        if self._principal is None:
            raise UnauthenticatedError()
        return self._principal

    # -- folders ----------------------------------------------------------

    async def list_folders(self, owner_id: str) -> list[RemoteFolder]:
        self.calls.append("list_folders")
        return sorted(
            (f for f in self.folders.values() if f.owner_id == owner_id),
            key=lambda f: f.created_at,
            reverse=True,
        )

    async def get_folder(self, folder_id: str) -> RemoteFolder | None:
        return self.folders.get(folder_id)

    async def create_folder(self, name: str, color: str) -> RemoteFolder:
        self.calls.append("create_folder")
        principal = self._require_principal()
        folder = RemoteFolder(id=uuid4().hex, owner_id=principal.id, name=name, color=color)
        self.folders[folder.id] = folder
        return folder

    async def rename_folder(self, folder_id: str, name: str) -> None:
        self.calls.append("rename_folder")
        folder = self._folder_or_raise(folder_id)
        self.folders[folder_id] = folder.model_copy(update={"name": name})

    async def update_folder_color(self, folder_id: str, color: str) -> None:
        self.calls.append("update_folder_color")
        folder = self._folder_or_raise(folder_id)
        self.folders[folder_id] = folder.model_copy(update={"color": color})

    async def delete_folder(self, folder_id: str) -> None:
        self.calls.append("delete_folder")
        self.folders.pop(folder_id, None)
        for file_id, remote_file in list(self.files.items()):
            if remote_file.folder_id == folder_id:
                self.files[file_id] = remote_file.model_copy(update={"folder_id": None})
        self.grants = [g for g in self.grants if g.target_id != folder_id]

    def _folder_or_raise(self, folder_id: str) -> RemoteFolder:
        folder = self.folders.get(folder_id)
        if folder is None:
            raise NotFoundError(f"Remote folder {folder_id} not found")
        return folder

    # -- files and blobs --------------------------------------------------

    async def list_files(self, owner_id: str, folder_id: str | None = None) -> list[RemoteFile]:
        self.calls.append("list_files")
        rows = [f for f in self.files.values() if f.owner_id == owner_id]
        if folder_id is not None:
            rows = [f for f in rows if f.folder_id == folder_id]
        return sorted(rows, key=lambda f: f.created_at, reverse=True)

    async def get_file_record(self, file_id: str) -> RemoteFile | None:
        return self.files.get(file_id)

    async def upload_blob(self, data: bytes, owner_id: str) -> str:
        self.calls.append("upload_blob")
        locator = f"{owner_id}/{uuid4().hex}"
        self.blobs[locator] = data
        return locator

    async def download_blob(self, locator: str) -> bytes:
        try:
            return self.blobs[locator]
        except KeyError as exc:
            raise NotFoundError(f"Remote blob {locator} not found") from exc

    async def delete_blob(self, locator: str) -> None:
        self.calls.append("delete_blob")
        self.blobs.pop(locator, None)

    async def create_file_record(self, metadata: NewRemoteFile) -> RemoteFile:
        self.calls.append("create_file_record")
        self._require_principal()
        if metadata.folder_id is not None and metadata.folder_id not in self.folders:
            raise NotFoundError(f"Remote folder {metadata.folder_id} not found")
        remote_file = RemoteFile(id=uuid4().hex, **metadata.model_dump())
        self.files[remote_file.id] = remote_file
        return remote_file

    async def update_file_record(self, file_id: str, patch: dict[str, Any]) -> None:
        self.calls.append("update_file_record")
        remote_file = self.files.get(file_id)
        if remote_file is None:
            raise NotFoundError(f"Remote file {file_id} not found")
        unknown = set(patch) - _REMOTE_FILE_FIELDS
        if unknown:
            raise ValueError(f"Cannot patch fields: {sorted(unknown)}")
        self.files[file_id] = remote_file.model_copy(update=patch)

    async def delete_file_record(self, file_id: str) -> None:
        self.calls.append("delete_file_record")
        self.files.pop(file_id, None)
        self.grants = [g for g in self.grants if g.target_id != file_id]

    # -- principals and grants --------------------------------------------

    async def find_principal_by_email(self, email: str) -> Principal:
        for principal in self.principals.values():
            if principal.email.lower() == email.lower():
                return principal
        raise NotFoundError(f"No user with email {email}")

    async def find_principals(self, principal_ids: list[str]) -> list[Principal]:
        return [self.principals[pid] for pid in principal_ids if pid in self.principals]

    async def insert_grant(self, grant: ShareGrant) -> ShareGrant:
        if any(g.target_id == grant.target_id and g.recipient_id == grant.recipient_id for g in self.grants):
            raise AlreadyExistsError("Grant already exists")
        self.grants.append(grant)
        return grant

    async def delete_grant(self, target_id: str, recipient_id: str) -> bool:
        before = len(self.grants)
        self.grants = [g for g in self.grants if not (g.target_id == target_id and g.recipient_id == recipient_id)]
        return len(self.grants) != before

    async def list_grants(self, target_id: str) -> list[ShareGrant]:
        return [g for g in self.grants if g.target_id == target_id]

    async def set_shared_with(self, target_id: str, recipient_ids: list[str]) -> None:
        if target_id in self.files:
            self.files[target_id] = self.files[target_id].model_copy(update={"shared_with": list(recipient_ids)})
        elif target_id in self.folders:
            self.folders[target_id] = self.folders[target_id].model_copy(update={"shared_with": list(recipient_ids)})
        else:
            raise NotFoundError(f"Share target {target_id} not found")

    async def list_shared_with(self, principal_id: str) -> list[RemoteFile | RemoteFolder]:
        targets: list[RemoteFile | RemoteFolder] = []
        targets.extend(f for f in self.folders.values() if principal_id in f.shared_with)
        targets.extend(f for f in self.files.values() if principal_id in f.shared_with)
        return targets

    async def ping(self) -> bool:
        return True

    async def dispose(self) -> None:
        pass
