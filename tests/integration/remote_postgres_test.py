"""PostgresRemoteService against a real database."""

import pytest

from filehub.core.sharing import SharingLedger
from filehub.db import (
    InMemoryBlobStore,
    InMemoryDeviceStore,
    InMemoryFolderStore,
    InMemorySyncMap,
    PostgresRemoteService,
)
from filehub.errors import AlreadyExistsError, NotFoundError, UnauthenticatedError
from filehub.models import FolderColor, IncomingFile, NewRemoteFile, Principal, TargetKind
from filehub.wiring import build_hub


async def _file(service: PostgresRemoteService, name: str = "q1.txt", folder_id: str | None = None) -> str:
    principal = await service.current_principal()
    assert principal is not None
    locator = await service.upload_blob(b"payload", principal.id)
    created = await service.create_file_record(
        NewRemoteFile(
            owner_id=principal.id,
            folder_id=folder_id,
            name=name,
            size_bytes=7,
            mime_type="text/plain",
            text_preview="payload",
            blob_locator=locator,
        )
    )
    return created.id


@pytest.mark.asyncio
async def test_ping(service: PostgresRemoteService) -> None:
    assert await service.ping()


@pytest.mark.asyncio
async def test_duplicate_email_is_rejected(service: PostgresRemoteService) -> None:
    with pytest.raises(AlreadyExistsError):
        await service.register_principal("ALICE@example.com")


@pytest.mark.asyncio
async def test_folder_lifecycle(service: PostgresRemoteService) -> None:
    principal = await service.current_principal()
    assert principal is not None
    folder = await service.create_folder("Invoices", "blue")

    await service.rename_folder(folder.id, "Receipts")
    await service.update_folder_color(folder.id, "green")

    [listed] = await service.list_folders(principal.id)
    assert (listed.name, listed.color) == ("Receipts", "green")
    with pytest.raises(NotFoundError):
        await service.rename_folder("missing", "X")


@pytest.mark.asyncio
async def test_delete_folder_reparents_files(service: PostgresRemoteService) -> None:
    folder = await service.create_folder("Invoices", "blue")
    file_id = await _file(service, folder_id=folder.id)

    await service.delete_folder(folder.id)

    remote_file = await service.get_file_record(file_id)
    assert remote_file is not None
    assert remote_file.folder_id is None
    assert await service.get_folder(folder.id) is None


@pytest.mark.asyncio
async def test_file_rows_and_blobs(service: PostgresRemoteService) -> None:
    file_id = await _file(service)
    remote_file = await service.get_file_record(file_id)
    assert remote_file is not None
    assert await service.download_blob(remote_file.blob_locator) == b"payload"

    await service.update_file_record(file_id, {"name": "renamed.txt"})
    renamed = await service.get_file_record(file_id)
    assert renamed is not None and renamed.name == "renamed.txt"

    await service.delete_file_record(file_id)
    await service.delete_blob(remote_file.blob_locator)
    assert await service.get_file_record(file_id) is None
    with pytest.raises(NotFoundError):
        await service.download_blob(remote_file.blob_locator)


@pytest.mark.asyncio
async def test_unknown_folder_reference_is_not_found(service: PostgresRemoteService) -> None:
    with pytest.raises(NotFoundError):
        await _file(service, folder_id="missing-folder")


@pytest.mark.asyncio
async def test_create_needs_a_principal(service: PostgresRemoteService) -> None:
    await service.sign_out()

    with pytest.raises(UnauthenticatedError):
        await service.create_folder("X", "blue")


@pytest.mark.asyncio
async def test_sharing_round_trip(service: PostgresRemoteService, bob: Principal) -> None:
    ledger = SharingLedger(service)
    file_id = await _file(service)

    grant = await ledger.share(file_id, "bob@example.com")
    assert grant.target_kind is TargetKind.FILE
    [view] = await ledger.list_grants(file_id)
    assert view.label == "bob@example.com"

    await service.sign_in("bob@example.com")
    assert [item.id for item in await ledger.list_shared_with_me()] == [file_id]

    await service.sign_in("alice@example.com")
    await ledger.revoke(file_id, bob.id)
    assert await ledger.list_grants(file_id) == []


@pytest.mark.asyncio
async def test_deleting_a_file_cascades_grants(service: PostgresRemoteService) -> None:
    ledger = SharingLedger(service)
    file_id = await _file(service)
    await ledger.share(file_id, "bob@example.com")

    await service.delete_file_record(file_id)

    assert await service.list_grants(file_id) == []


@pytest.mark.asyncio
async def test_hub_reconciles_into_postgres(service: PostgresRemoteService) -> None:
    hub = build_hub(
        blob_store=InMemoryBlobStore(),
        folder_store=InMemoryFolderStore(),
        device=InMemoryDeviceStore(),
        sync_map=InMemorySyncMap(),
        remote=service,
        inline_threshold=1024 * 1024,
        local_ceiling=5 * 1024 * 1024,
        debounce=0,
    )
    await hub.load()
    try:
        folder = await hub.create_folder("Invoices", FolderColor.BLUE)
        await hub.add_files([IncomingFile(name="q1.txt", data=b"q" * 2048, folder_id=folder.id)])

        await hub.sync_now()
        again = await hub.sync_now()
    finally:
        await hub.reconciler.aclose()

    principal = await service.current_principal()
    assert principal is not None
    assert again.changed == 0
    [remote_folder] = await service.list_folders(principal.id)
    [remote_file] = await service.list_files(principal.id)
    assert remote_file.folder_id == remote_folder.id
