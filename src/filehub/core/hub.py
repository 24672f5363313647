"""The session object callers talk to.

``FileHub`` owns one instance of every store plus the router, the
reconciliation engine and the sharing ledger. Local writes are awaited
and become visible in the in-memory projection at once; the remote side
catches up through reconciliation.
"""

import logging
import shutil
from pathlib import Path

from filehub.core.files import build_text_preview, sniff_mime
from filehub.core.ports.local import DeviceBlobStore, LocalBlobStore, LocalMetadataStore, SyncMap
from filehub.core.ports.remote import RemoteService
from filehub.core.reconcile import ReconciliationEngine
from filehub.core.router import StorageRouter
from filehub.core.sharing import SharingLedger
from filehub.errors import (
    AlreadyExistsError,
    FileHubError,
    NotFoundError,
    TransientIOError,
    UnauthenticatedError,
)
from filehub.models import (
    AddResult,
    BlobLocation,
    FileRecord,
    FolderColor,
    FolderRecord,
    GrantView,
    IncomingFile,
    Permission,
    RemoteFile,
    RemoteFolder,
    ShareGrant,
    StorageUsage,
    SyncReport,
    TargetKind,
    new_id,
)

logger = logging.getLogger(__name__)


class FileHub:
    def __init__(
        self,
        *,
        blob_store: LocalBlobStore,
        folder_store: LocalMetadataStore,
        device: DeviceBlobStore,
        sync_map: SyncMap,
        remote: RemoteService,
        router: StorageRouter,
        reconciler: ReconciliationEngine,
        ledger: SharingLedger,
        data_dir: Path | None = None,
        preview_chars: int = 500,
    ) -> None:
        self._blob_store = blob_store
        self._folder_store = folder_store
        self._device = device
        self._sync_map = sync_map
        self._remote = remote
        self._router = router
        self._reconciler = reconciler
        self._ledger = ledger
        self._data_dir = data_dir
        self._preview_chars = preview_chars
        self._files: dict[str, FileRecord] = {}
        self._folders: list[FolderRecord] = []

    @property
    def remote(self) -> RemoteService:
        return self._remote

    @property
    def reconciler(self) -> ReconciliationEngine:
        return self._reconciler

    # -- projection -------------------------------------------------------

    @property
    def files(self) -> list[FileRecord]:
        """Every file, payload stripped, in insertion order."""
        return list(self._files.values())

    @property
    def folders(self) -> list[FolderRecord]:
        return list(self._folders)

    def get_file(self, file_id: str) -> FileRecord:
        try:
            return self._files[file_id]
        except KeyError:
            raise NotFoundError(f"File {file_id} not found") from None

    def get_folder(self, folder_id: str) -> FolderRecord:
        for folder in self._folders:
            if folder.id == folder_id:
                return folder
        raise NotFoundError(f"Folder {folder_id} not found")

    def _has_folder(self, folder_id: str | None) -> bool:
        return folder_id is not None and any(f.id == folder_id for f in self._folders)

    def files_in(self, folder_id: str | None) -> list[FileRecord]:
        """Files whose folder is ``folder_id``; ``None`` also collects dangling references."""
        if folder_id is None:
            return [f for f in self._files.values() if not self._has_folder(f.folder_id)]
        return [f for f in self._files.values() if f.folder_id == folder_id]

    async def load(self) -> None:
        self._folders = await self._folder_store.load()
        self._files = {record.id: record.without_payload() for record in await self._blob_store.get_all()}
        logger.info("Loaded %d files and %d folders", len(self._files), len(self._folders))
        self._reconciler.notify_changed()

    # -- files ------------------------------------------------------------

    async def add_files(self, incoming: list[IncomingFile]) -> list[AddResult]:
        results: list[AddResult] = []
        for item in incoming:
            try:
                record = await self._add_one(item)
            except FileHubError as exc:
                logger.warning("Could not add %s (%s): %s", item.name, type(exc).__name__, exc)
                results.append(AddResult(name=item.name, error=str(exc)))
                continue
            self._files[record.id] = record
            results.append(AddResult(name=item.name, record=record))
        if any(result.ok for result in results):
            self._reconciler.notify_changed()
        return results

    async def _add_one(self, item: IncomingFile) -> FileRecord:
        mime_type = sniff_mime(item.name, item.mime_type)
        record = FileRecord(
            id=item.id or new_id(),
            name=item.name,
            size_bytes=len(item.data),
            mime_type=mime_type,
            folder_id=item.folder_id if self._has_folder(item.folder_id) else None,
            text_preview=build_text_preview(item.data, mime_type, self._preview_chars),
        )
        placement = await self._router.place(record, item.data)
        logger.info(
            "Stored %s (%d bytes) in %s", record.name, record.size_bytes, placement.location.value
        )
        return placement.record.without_payload()

    async def remove_file(self, file_id: str) -> None:
        record = await self._blob_store.get(file_id)
        if record is None:
            self._files.pop(file_id, None)
            return
        await self._blob_store.remove(file_id)
        self._files.pop(file_id, None)
        await self._discard(record)
        self._reconciler.notify_changed()

    async def _discard(self, record: FileRecord) -> None:
        """Drop a removed record's bytes. The row is already gone, so a failure only orphans a blob."""
        if record.blob_location is BlobLocation.REMOTE_OBJECT_STORE:
            # A synced remote file shares this blob; the next pass deletes both.
            if await self._sync_map.get(TargetKind.FILE, record.id) is not None:
                return
        try:
            await self._router.tier_for(record.blob_location).discard(record)
        except FileHubError as exc:
            logger.warning("Could not discard bytes of %s (%s): %s", record.name, type(exc).__name__, exc)

    async def read_file(self, file_id: str) -> bytes:
        record = await self._blob_store.get(file_id)
        if record is None:
            raise NotFoundError(f"File {file_id} not found")
        return await self._router.tier_for(record.blob_location).read(record)

    async def move_file(self, file_id: str, folder_id: str | None) -> FileRecord:
        if folder_id is not None and not self._has_folder(folder_id):
            raise NotFoundError(f"Folder {folder_id} not found")
        stored = await self._blob_store.get(file_id)
        if stored is None:
            raise NotFoundError(f"File {file_id} not found")
        moved = stored.model_copy(update={"folder_id": folder_id})
        await self._blob_store.put(moved)
        self._files[file_id] = moved.without_payload()
        self._reconciler.notify_changed()
        return self._files[file_id]

    async def clear_all(self) -> None:
        """Drop every local file and folder. Synced items are deleted remotely on the next pass."""
        records = await self._blob_store.get_all()
        await self._blob_store.clear()
        await self._folder_store.clear()
        self._files = {}
        self._folders = []
        for record in records:
            await self._discard(record)
        await self._device.clear()
        logger.info("Cleared all local files and folders")
        self._reconciler.notify_changed()

    # -- folders ----------------------------------------------------------

    def _check_unique_name(self, name: str, exclude_id: str | None = None) -> None:
        wanted = name.casefold()
        for folder in self._folders:
            if folder.id != exclude_id and folder.name.casefold() == wanted:
                raise AlreadyExistsError(f"A folder named {folder.name!r} already exists")

    async def _save_folders(self, folders: list[FolderRecord]) -> None:
        await self._folder_store.save(folders)
        self._folders = folders
        self._reconciler.notify_changed()

    async def create_folder(self, name: str, color: FolderColor = FolderColor.BLUE) -> FolderRecord:
        name = name.strip()
        if not name:
            raise ValueError("Folder name must not be empty")
        self._check_unique_name(name)
        folder = FolderRecord(name=name, color=color)
        await self._save_folders([*self._folders, folder])
        return folder

    async def rename_folder(self, folder_id: str, name: str) -> FolderRecord:
        return await self.update_folder(folder_id, name=name)

    async def update_folder(
        self, folder_id: str, name: str | None = None, color: FolderColor | None = None
    ) -> FolderRecord:
        current = self.get_folder(folder_id)
        update: dict[str, object] = {}
        if name is not None:
            name = name.strip()
            if not name:
                raise ValueError("Folder name must not be empty")
            self._check_unique_name(name, exclude_id=folder_id)
            update["name"] = name
        if color is not None:
            update["color"] = color
        updated = current.model_copy(update=update)
        await self._save_folders([updated if f.id == folder_id else f for f in self._folders])
        return updated

    async def delete_folder(self, folder_id: str) -> None:
        self.get_folder(folder_id)
        for record in self.files_in(folder_id):
            stored = await self._blob_store.get(record.id)
            if stored is None:
                continue
            moved = stored.model_copy(update={"folder_id": None})
            await self._blob_store.put(moved)
            self._files[record.id] = moved.without_payload()
        await self._save_folders([f for f in self._folders if f.id != folder_id])

    # -- sharing ----------------------------------------------------------

    async def _remote_id_for(self, target_id: str) -> str:
        if target_id in self._files:
            kind = TargetKind.FILE
        elif self._has_folder(target_id):
            kind = TargetKind.FOLDER
        else:
            # Not a local item; assume the caller already holds a remote id.
            return target_id
        if await self._remote.current_principal() is None:
            raise UnauthenticatedError()
        remote_id = await self._sync_map.get(kind, target_id)
        if remote_id is None:
            await self._reconciler.reconcile_now()
            remote_id = await self._sync_map.get(kind, target_id)
        if remote_id is None:
            raise TransientIOError(f"{kind.value} {target_id} is not synced yet")
        return remote_id

    async def share(
        self, target_id: str, recipient_email: str, permission: Permission = Permission.VIEW
    ) -> ShareGrant:
        remote_id = await self._remote_id_for(target_id)
        return await self._ledger.share(remote_id, recipient_email, permission)

    async def revoke(self, target_id: str, recipient_id: str) -> None:
        remote_id = await self._remote_id_for(target_id)
        await self._ledger.revoke(remote_id, recipient_id)

    async def list_grants(self, target_id: str) -> list[GrantView]:
        remote_id = await self._remote_id_for(target_id)
        return await self._ledger.list_grants(remote_id)

    async def list_shared_with_me(self) -> list[RemoteFile | RemoteFolder]:
        return await self._ledger.list_shared_with_me()

    # -- usage, sync and lifecycle ---------------------------------------

    async def get_storage_usage(self) -> StorageUsage:
        used = (
            await self._blob_store.usage()
            + await self._device.usage()
            + await self._folder_store.size_bytes()
        )
        return StorageUsage(used_bytes=used, quota_bytes=self._quota())

    def _quota(self) -> int | None:
        inline_quota = self._blob_store.quota()
        device_quota = self._device.quota()
        if inline_quota is not None and device_quota is not None:
            return inline_quota + device_quota
        if self._data_dir is None:
            return None
        try:
            return shutil.disk_usage(self._data_dir).total
        except OSError:
            return None

    async def sync_now(self) -> SyncReport:
        return await self._reconciler.reconcile_now()

    async def sign_out(self) -> None:
        await self._reconciler.clear_state()
        await self._remote.sign_out()
        logger.info("Signed out")

    async def aclose(self) -> None:
        await self._reconciler.aclose()
        await self._blob_store.dispose()
        await self._remote.dispose()
