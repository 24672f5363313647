"""Background convergence of the local stores with the remote service.

Local writes never wait on the remote side. Every mutation calls
``ReconciliationEngine.notify_changed``; after a quiet period one pass
diffs the local snapshot against the remote listing and pushes the
difference. The persisted sync map decides which remote item a local
item corresponds to.
"""

import asyncio
import logging

from filehub.core.ports.local import LocalBlobStore, LocalMetadataStore, SyncMap
from filehub.core.ports.remote import RemoteService
from filehub.core.router import StorageRouter
from filehub.errors import FileHubError
from filehub.models import (
    BlobLocation,
    FileRecord,
    FolderRecord,
    NewRemoteFile,
    Principal,
    RemoteFile,
    RemoteFolder,
    SyncFailure,
    SyncReport,
    TargetKind,
)

logger = logging.getLogger(__name__)


class ReconciliationEngine:
    """Debounced, single-flight reconciliation passes.

    At most one pass runs at a time. Notifications that arrive while a
    pass runs collapse into one follow-up pass.
    """

    def __init__(
        self,
        blob_store: LocalBlobStore,
        folder_store: LocalMetadataStore,
        remote: RemoteService,
        sync_map: SyncMap,
        router: StorageRouter,
        debounce: float = 1.0,
    ) -> None:
        self._blob_store = blob_store
        self._folder_store = folder_store
        self._remote = remote
        self._sync_map = sync_map
        self._router = router
        self._debounce = debounce
        self._timer: asyncio.Task[None] | None = None
        self._running = False
        self._rerun = False
        self._idle = asyncio.Event()
        self._idle.set()
        self.last_report: SyncReport | None = None

    # -- scheduling -------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    def notify_changed(self) -> None:
        """Schedule a pass after the debounce delay. Must be called from the loop."""
        if self._running:
            self._rerun = True
            return
        self._cancel_timer()
        self._timer = asyncio.create_task(self._debounced())

    async def _debounced(self) -> None:
        await asyncio.sleep(self._debounce)
        try:
            await self._run()
        except Exception:
            logger.exception("Background reconciliation pass crashed")

    def _cancel_timer(self) -> None:
        # A timer whose pass already started is left alone.
        if self._timer is not None and not self._timer.done() and not self._running:
            self._timer.cancel()
        if self._timer is not None and self._timer.done():
            self._timer = None

    async def _run(self) -> SyncReport:
        self._running = True
        self._idle.clear()
        try:
            while True:
                self._rerun = False
                report = await self.reconcile()
                self.last_report = report
                if not self._rerun:
                    return report
                logger.debug("Changes arrived during the pass, running again")
        finally:
            self._running = False
            self._idle.set()

    async def reconcile_now(self) -> SyncReport:
        """Run a pass immediately, or join the one in flight and its follow-up."""
        self._cancel_timer()
        if self._running:
            self._rerun = True
            await self._idle.wait()
            assert self.last_report is not None
            return self.last_report
        return await self._run()

    async def wait_idle(self) -> None:
        while True:
            timer = self._timer
            if timer is not None and not timer.done():
                await asyncio.wait({timer})
                continue
            if self._running:
                await self._idle.wait()
                continue
            return

    async def clear_state(self) -> None:
        self._cancel_timer()
        if self._running:
            await self._idle.wait()
        await self._sync_map.clear()
        self.last_report = None
        logger.info("Cleared sync state")

    async def aclose(self) -> None:
        self._cancel_timer()
        if self._running:
            await self._idle.wait()

    # -- one pass ---------------------------------------------------------

    async def reconcile(self) -> SyncReport:
        principal = await self._remote.current_principal()
        if principal is None:
            logger.info("No signed-in principal, skipping reconciliation")
            return SyncReport(skipped=True)

        folders = await self._folder_store.load()
        files = await self._blob_store.get_all()
        try:
            remote_folders = {f.id: f for f in await self._remote.list_folders(principal.id)}
            remote_files = {f.id: f for f in await self._remote.list_files(principal.id)}
        except FileHubError as exc:
            logger.warning("Cannot list remote state (%s: %s), skipping pass", type(exc).__name__, exc)
            return SyncReport(skipped=True)

        folder_map = await self._sync_map.items(TargetKind.FOLDER)
        file_map = await self._sync_map.items(TargetKind.FILE)

        report = SyncReport()
        await self._sync_folders(folders, remote_folders, folder_map, report)
        await self._sync_files(principal, files, remote_files, folder_map, file_map, report)
        await self._delete_files(files, remote_files, file_map, report)
        await self._delete_folders(folders, remote_folders, folder_map, report)

        logger.info(
            "Reconciliation pass finished: %d changes, %d failures",
            report.changed,
            len(report.failures),
        )
        return report

    async def _forget_if_gone(
        self,
        kind: TargetKind,
        local_id: str,
        mapping: dict[str, str],
        remote_ids: set[str],
        claimed: set[str],
    ) -> str | None:
        remote_id = mapping.get(local_id)
        if remote_id is None or remote_id in remote_ids:
            return remote_id
        logger.info("Remote %s %s disappeared, re-syncing %s", kind.value, remote_id, local_id)
        await self._sync_map.forget(kind, local_id)
        del mapping[local_id]
        claimed.discard(remote_id)
        return None

    async def _sync_folders(
        self,
        folders: list[FolderRecord],
        remote_folders: dict[str, RemoteFolder],
        folder_map: dict[str, str],
        report: SyncReport,
    ) -> None:
        claimed = set(folder_map.values())
        for folder in folders:
            try:
                remote_id = await self._forget_if_gone(
                    TargetKind.FOLDER, folder.id, folder_map, set(remote_folders), claimed
                )
                if remote_id is not None:
                    if await self._push_folder(folder, remote_folders[remote_id]):
                        report.folders_updated += 1
                    continue

                candidate = next(
                    (rf for rf in remote_folders.values() if rf.name == folder.name and rf.id not in claimed),
                    None,
                )
                if candidate is not None:
                    await self._sync_map.put(TargetKind.FOLDER, folder.id, candidate.id)
                    await self._push_folder(folder, candidate)
                    remote_id = candidate.id
                    report.folders_adopted += 1
                else:
                    created = await self._remote.create_folder(folder.name, folder.color.value)
                    await self._sync_map.put(TargetKind.FOLDER, folder.id, created.id)
                    remote_folders[created.id] = created
                    remote_id = created.id
                    report.folders_created += 1
                folder_map[folder.id] = remote_id
                claimed.add(remote_id)
            except FileHubError as exc:
                _record_failure(report, TargetKind.FOLDER, folder.id, folder.name, exc)

    async def _push_folder(self, folder: FolderRecord, remote: RemoteFolder) -> bool:
        changed = False
        if remote.name != folder.name:
            await self._remote.rename_folder(remote.id, folder.name)
            changed = True
        if remote.color != folder.color.value:
            await self._remote.update_folder_color(remote.id, folder.color.value)
            changed = True
        return changed

    async def _sync_files(
        self,
        principal: Principal,
        files: list[FileRecord],
        remote_files: dict[str, RemoteFile],
        folder_map: dict[str, str],
        file_map: dict[str, str],
        report: SyncReport,
    ) -> None:
        claimed = set(file_map.values())
        for record in files:
            # Unknown or unsynced folders land at the remote root until mapped.
            remote_folder_id = folder_map.get(record.folder_id) if record.folder_id else None
            try:
                remote_id = await self._forget_if_gone(
                    TargetKind.FILE, record.id, file_map, set(remote_files), claimed
                )
                if remote_id is not None:
                    if await self._push_file(record, remote_files[remote_id], remote_folder_id):
                        report.files_updated += 1
                    continue

                candidate = next(
                    (rf for rf in remote_files.values() if rf.name == record.name and rf.id not in claimed),
                    None,
                )
                if candidate is not None:
                    await self._sync_map.put(TargetKind.FILE, record.id, candidate.id)
                    await self._push_file(record, candidate, remote_folder_id)
                    remote_id = candidate.id
                    report.files_adopted += 1
                else:
                    created = await self._upload(principal, record, remote_folder_id)
                    await self._sync_map.put(TargetKind.FILE, record.id, created.id)
                    remote_files[created.id] = created
                    remote_id = created.id
                    report.files_uploaded += 1
                file_map[record.id] = remote_id
                claimed.add(remote_id)
            except FileHubError as exc:
                _record_failure(report, TargetKind.FILE, record.id, record.name, exc)

    async def _push_file(self, record: FileRecord, remote: RemoteFile, remote_folder_id: str | None) -> bool:
        patch: dict[str, str | None] = {}
        if remote.name != record.name:
            patch["name"] = record.name
        if remote.folder_id != remote_folder_id:
            patch["folder_id"] = remote_folder_id
        if not patch:
            return False
        await self._remote.update_file_record(remote.id, patch)
        return True

    async def _upload(self, principal: Principal, record: FileRecord, remote_folder_id: str | None) -> RemoteFile:
        uploaded = False
        if record.blob_location is BlobLocation.REMOTE_OBJECT_STORE and record.blob_locator:
            locator = record.blob_locator
        else:
            data = await self._router.tier_for(record.blob_location).read(record)
            locator = await self._remote.upload_blob(data, principal.id)
            uploaded = True

        metadata = NewRemoteFile(
            owner_id=principal.id,
            folder_id=remote_folder_id,
            name=record.name,
            size_bytes=record.size_bytes,
            mime_type=record.mime_type,
            text_preview=record.text_preview,
            blob_locator=locator,
        )
        try:
            return await self._remote.create_file_record(metadata)
        except FileHubError:
            if uploaded:
                await self._remote.delete_blob(locator)
            raise

    async def _delete_files(
        self,
        files: list[FileRecord],
        remote_files: dict[str, RemoteFile],
        file_map: dict[str, str],
        report: SyncReport,
    ) -> None:
        local_ids = {record.id for record in files}
        for local_id, remote_id in list(file_map.items()):
            if local_id in local_ids:
                continue
            remote = remote_files.get(remote_id)
            try:
                if remote is not None:
                    await self._remote.delete_file_record(remote_id)
                    await self._remote.delete_blob(remote.blob_locator)
                    report.files_deleted += 1
                await self._sync_map.forget(TargetKind.FILE, local_id)
            except FileHubError as exc:
                name = remote.name if remote is not None else local_id
                _record_failure(report, TargetKind.FILE, local_id, name, exc)

    async def _delete_folders(
        self,
        folders: list[FolderRecord],
        remote_folders: dict[str, RemoteFolder],
        folder_map: dict[str, str],
        report: SyncReport,
    ) -> None:
        local_ids = {folder.id for folder in folders}
        for local_id, remote_id in list(folder_map.items()):
            if local_id in local_ids:
                continue
            remote = remote_folders.get(remote_id)
            try:
                if remote is not None:
                    await self._remote.delete_folder(remote_id)
                    report.folders_deleted += 1
                await self._sync_map.forget(TargetKind.FOLDER, local_id)
            except FileHubError as exc:
                name = remote.name if remote is not None else local_id
                _record_failure(report, TargetKind.FOLDER, local_id, name, exc)


def _record_failure(report: SyncReport, kind: TargetKind, local_id: str, name: str, exc: FileHubError) -> None:
    logger.warning("Could not sync %s %r (%s): %s", kind.value, name, type(exc).__name__, exc)
    report.failures.append(
        SyncFailure(
            kind=kind,
            local_id=local_id,
            name=name,
            error=type(exc).__name__,
            message=str(exc),
        )
    )
