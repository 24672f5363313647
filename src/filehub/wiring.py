import logging
from pathlib import Path

from filehub.config import Settings
from filehub.core.hub import FileHub
from filehub.core.ports.local import DeviceBlobStore, LocalBlobStore, LocalMetadataStore, SyncMap
from filehub.core.ports.remote import RemoteService
from filehub.core.reconcile import ReconciliationEngine
from filehub.core.router import DeviceTier, InlineTier, RemoteTier, StorageRouter, StorageTier
from filehub.core.sharing import SharingLedger
from filehub.db import (
    FileSystemDeviceStore,
    InMemoryRemoteService,
    JsonFolderStore,
    PostgresRemoteService,
    SqliteBlobStore,
    SqliteSyncMap,
    get_local_engine,
    get_remote_engine,
)
from filehub.errors import NotFoundError

logger = logging.getLogger(__name__)


def build_hub(
    *,
    blob_store: LocalBlobStore,
    folder_store: LocalMetadataStore,
    device: DeviceBlobStore,
    sync_map: SyncMap,
    remote: RemoteService,
    inline_threshold: int,
    local_ceiling: int,
    debounce: float = 1.0,
    preview_chars: int = 500,
    data_dir: Path | None = None,
    remote_tier: bool = True,
) -> FileHub:
    tiers: list[StorageTier] = [InlineTier(blob_store), DeviceTier(blob_store, device)]
    if remote_tier:
        tiers.append(RemoteTier(blob_store, remote))
    router = StorageRouter(tiers, inline_threshold=inline_threshold, local_ceiling=local_ceiling)
    reconciler = ReconciliationEngine(blob_store, folder_store, remote, sync_map, router, debounce=debounce)
    return FileHub(
        blob_store=blob_store,
        folder_store=folder_store,
        device=device,
        sync_map=sync_map,
        remote=remote,
        router=router,
        reconciler=reconciler,
        ledger=SharingLedger(remote),
        data_dir=data_dir,
        preview_chars=preview_chars,
    )


async def connect_remote(settings: Settings) -> RemoteService:
    """PostgreSQL when a remote URL is configured, otherwise an in-process stand-in."""
    if settings.remote_url:
        service = PostgresRemoteService(get_remote_engine(settings.remote_url))
        if settings.principal_email:
            try:
                await service.sign_in(settings.principal_email)
            except NotFoundError:
                logger.warning("No remote user %s, staying signed out", settings.principal_email)
        return service

    memory = InMemoryRemoteService()
    if settings.principal_email:
        memory.sign_in(memory.register_principal(settings.principal_email))
    logger.info("No remote URL configured, using the in-memory remote without a remote storage tier")
    return memory


async def create_hub(settings: Settings, remote: RemoteService | None = None) -> FileHub:
    engine = get_local_engine(settings.local_db_path)
    if remote is None:
        remote = await connect_remote(settings)
    return build_hub(
        blob_store=SqliteBlobStore(engine, capacity=settings.inline_capacity),
        folder_store=JsonFolderStore(settings.folders_path),
        device=FileSystemDeviceStore(settings.device_dir, capacity=settings.device_capacity),
        sync_map=SqliteSyncMap(engine),
        remote=remote,
        inline_threshold=settings.inline_threshold,
        local_ceiling=settings.local_ceiling,
        debounce=settings.sync_debounce,
        preview_chars=settings.preview_chars,
        data_dir=settings.data_dir,
        # The stand-in forgets its blobs on exit, so it cannot hold file bytes.
        remote_tier=not isinstance(remote, InMemoryRemoteService),
    )
