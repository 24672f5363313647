from typing import Any, Protocol

from filehub.models import (
    NewRemoteFile,
    Principal,
    RemoteFile,
    RemoteFolder,
    ShareGrant,
)


class RemoteService(Protocol):
    """Authoritative row store + object store, keyed by the signed-in principal."""

    async def current_principal(self) -> Principal | None: ...

    async def sign_out(self) -> None: ...

    async def list_folders(self, owner_id: str) -> list[RemoteFolder]: ...

    async def get_folder(self, folder_id: str) -> RemoteFolder | None: ...

    async def create_folder(self, name: str, color: str) -> RemoteFolder: ...

    async def rename_folder(self, folder_id: str, name: str) -> None: ...

    async def update_folder_color(self, folder_id: str, color: str) -> None: ...

    async def delete_folder(self, folder_id: str) -> None: ...

    async def list_files(self, owner_id: str, folder_id: str | None = None) -> list[RemoteFile]: ...

    async def get_file_record(self, file_id: str) -> RemoteFile | None: ...

    async def upload_blob(self, data: bytes, owner_id: str) -> str: ...

    async def download_blob(self, locator: str) -> bytes: ...

    async def delete_blob(self, locator: str) -> None: ...

    async def create_file_record(self, metadata: NewRemoteFile) -> RemoteFile: ...

    async def update_file_record(self, file_id: str, patch: dict[str, Any]) -> None: ...

    async def delete_file_record(self, file_id: str) -> None: ...

    async def find_principal_by_email(self, email: str) -> Principal: ...

    async def find_principals(self, principal_ids: list[str]) -> list[Principal]: ...

    async def insert_grant(self, grant: ShareGrant) -> ShareGrant: ...

    async def delete_grant(self, target_id: str, recipient_id: str) -> bool: ...

    async def list_grants(self, target_id: str) -> list[ShareGrant]: ...

    async def set_shared_with(self, target_id: str, recipient_ids: list[str]) -> None: ...

    async def list_shared_with(self, principal_id: str) -> list[RemoteFile | RemoteFolder]: ...

    async def ping(self) -> bool: ...

    async def dispose(self) -> None: ...
