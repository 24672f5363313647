import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from uuid import uuid4

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from filehub.errors import AlreadyExistsError, NotFoundError, TransientIOError, UnauthenticatedError
from filehub.models import (
    NewRemoteFile,
    Principal,
    RemoteFile,
    RemoteFolder,
    ShareGrant,
    TargetKind,
)

logger = logging.getLogger(__name__)

_FILE_COLUMNS = (
    "id, owner_id, folder_id, name, size_bytes, mime_type, text_preview, blob_locator, shared_with, created_at"
)
_FOLDER_COLUMNS = "id, owner_id, name, color, shared_with, created_at"
_FOREIGN_KEY_VIOLATION = "23503"
_PATCHABLE_FILE_FIELDS = frozenset({"name", "folder_id", "text_preview", "mime_type", "size_bytes", "blob_locator"})


def _row_to_file(row: Any) -> RemoteFile:
    return RemoteFile(
        id=str(row.id),
        owner_id=str(row.owner_id),
        folder_id=str(row.folder_id) if row.folder_id is not None else None,
        name=row.name,
        size_bytes=row.size_bytes,
        mime_type=row.mime_type,
        text_preview=row.text_preview,
        blob_locator=row.blob_locator,
        shared_with=list(row.shared_with or []),
        created_at=row.created_at,
    )


def _row_to_folder(row: Any) -> RemoteFolder:
    return RemoteFolder(
        id=str(row.id),
        owner_id=str(row.owner_id),
        name=row.name,
        color=row.color,
        shared_with=list(row.shared_with or []),
        created_at=row.created_at,
    )


class PostgresRemoteService:
    """Remote row store and object store on a single PostgreSQL database.

    Blobs are kept in a ``bytea`` table keyed by an opaque locator. The
    principal is resolved by email after the external identity provider
    has authenticated the user; this class never sees credentials.
    """

    def __init__(self, engine: AsyncEngine, principal: Principal | None = None) -> None:
        self._engine = engine
        self._principal = principal

    @asynccontextmanager
    async def _begin(self) -> AsyncIterator[AsyncConnection]:
        try:
            async with self._engine.begin() as conn:
                yield conn
        except IntegrityError as exc:
            code = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
            if code == _FOREIGN_KEY_VIOLATION:
                raise NotFoundError(f"referenced row does not exist: {exc.orig}") from exc
            raise AlreadyExistsError(str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            raise TransientIOError(f"remote store unavailable: {exc}") from exc
        except OSError as exc:
            raise TransientIOError(f"remote store unreachable: {exc}") from exc

    def _require_principal(self) -> Principal:
        if self._principal is None:
            raise UnauthenticatedError()
        return self._principal

    # -- identity ---------------------------------------------------------

    async def register_principal(self, email: str, display_name: str | None = None) -> Principal:
        principal = Principal(id=uuid4().hex, email=email, display_name=display_name)
        async with self._begin() as conn:
            await conn.execute(
                text("INSERT INTO users (id, email, display_name) VALUES (:id, :email, :display_name)"),
                {"id": principal.id, "email": email, "display_name": display_name},
            )
        logger.info("Registered principal %s", email)
        return principal

    async def sign_in(self, email: str) -> Principal:
        self._principal = await self.find_principal_by_email(email)
        return self._principal

    async def current_principal(self) -> Principal | None:
        return self._principal

    async def sign_out(self) -> None:
        self._principal = None

    # -- folders ----------------------------------------------------------

    async def list_folders(self, owner_id: str) -> list[RemoteFolder]:
        async with self._begin() as conn:
            result = await conn.execute(
                text(f"SELECT {_FOLDER_COLUMNS} FROM folders WHERE owner_id = :owner ORDER BY created_at DESC"),
                {"owner": owner_id},
            )
            return [_row_to_folder(row) for row in result.fetchall()]

    async def get_folder(self, folder_id: str) -> RemoteFolder | None:
        async with self._begin() as conn:
            result = await conn.execute(
                text(f"SELECT {_FOLDER_COLUMNS} FROM folders WHERE id = :id"),
                {"id": folder_id},
            )
            row = result.fetchone()
        return _row_to_folder(row) if row is not None else None

    async def create_folder(self, name: str, color: str) -> RemoteFolder:
        principal = self._require_principal()
        async with self._begin() as conn:
            result = await conn.execute(
                text(
                    f"INSERT INTO folders (id, owner_id, name, color) VALUES (:id, :owner, :name, :color) "
                    f"RETURNING {_FOLDER_COLUMNS}"
                ),
                {"id": uuid4().hex, "owner": principal.id, "name": name, "color": color},
            )
            return _row_to_folder(result.one())

    async def rename_folder(self, folder_id: str, name: str) -> None:
        await self._update_folder(folder_id, "name", name)

    async def update_folder_color(self, folder_id: str, color: str) -> None:
        await self._update_folder(folder_id, "color", color)

    async def _update_folder(self, folder_id: str, column: str, value: str) -> None:
        async with self._begin() as conn:
            result = await conn.execute(
                text(f"UPDATE folders SET {column} = :value, updated_at = now() WHERE id = :id"),
                {"id": folder_id, "value": value},
            )
            if result.rowcount == 0:
                raise NotFoundError(f"Remote folder {folder_id} not found")

    async def delete_folder(self, folder_id: str) -> None:
        async with self._begin() as conn:
            await conn.execute(text("UPDATE files SET folder_id = NULL WHERE folder_id = :id"), {"id": folder_id})
            await conn.execute(text("DELETE FROM shares WHERE target_id = :id"), {"id": folder_id})
            await conn.execute(text("DELETE FROM folders WHERE id = :id"), {"id": folder_id})

    # -- files and blobs --------------------------------------------------

    async def list_files(self, owner_id: str, folder_id: str | None = None) -> list[RemoteFile]:
        sql = f"SELECT {_FILE_COLUMNS} FROM files WHERE owner_id = :owner"
        params: dict[str, Any] = {"owner": owner_id}
        if folder_id is not None:
            sql += " AND folder_id = :folder_id"
            params["folder_id"] = folder_id
        sql += " ORDER BY created_at DESC"
        async with self._begin() as conn:
            result = await conn.execute(text(sql), params)
            return [_row_to_file(row) for row in result.fetchall()]

    async def get_file_record(self, file_id: str) -> RemoteFile | None:
        async with self._begin() as conn:
            result = await conn.execute(text(f"SELECT {_FILE_COLUMNS} FROM files WHERE id = :id"), {"id": file_id})
            row = result.fetchone()
        return _row_to_file(row) if row is not None else None

    async def upload_blob(self, data: bytes, owner_id: str) -> str:
        locator = f"{owner_id}/{uuid4().hex}"
        async with self._begin() as conn:
            await conn.execute(
                text("INSERT INTO blobs (locator, owner_id, data) VALUES (:locator, :owner, :data)"),
                {"locator": locator, "owner": owner_id, "data": data},
            )
        logger.info("Uploaded blob %s (%d bytes)", locator, len(data))
        return locator

    async def download_blob(self, locator: str) -> bytes:
        async with self._begin() as conn:
            result = await conn.execute(text("SELECT data FROM blobs WHERE locator = :locator"), {"locator": locator})
            value = result.scalar_one_or_none()
        if value is None:
            raise NotFoundError(f"Remote blob {locator} not found")
        return bytes(value)

    async def delete_blob(self, locator: str) -> None:
        async with self._begin() as conn:
            await conn.execute(text("DELETE FROM blobs WHERE locator = :locator"), {"locator": locator})

    async def create_file_record(self, metadata: NewRemoteFile) -> RemoteFile:
        self._require_principal()
        params = metadata.model_dump()
        params["id"] = uuid4().hex
        async with self._begin() as conn:
            result = await conn.execute(
                text(
                    "INSERT INTO files "
                    "(id, owner_id, folder_id, name, size_bytes, mime_type, text_preview, blob_locator) "
                    "VALUES (:id, :owner_id, :folder_id, :name, :size_bytes, :mime_type, :text_preview, :blob_locator) "
                    f"RETURNING {_FILE_COLUMNS}"
                ),
                params,
            )
            return _row_to_file(result.one())

    async def update_file_record(self, file_id: str, patch: dict[str, Any]) -> None:
        unknown = set(patch) - _PATCHABLE_FILE_FIELDS
        if unknown:
            raise ValueError(f"Cannot patch fields: {sorted(unknown)}")
        if not patch:
            return
        assignments = ", ".join(f"{column} = :{column}" for column in sorted(patch))
        async with self._begin() as conn:
            result = await conn.execute(
                text(f"UPDATE files SET {assignments}, updated_at = now() WHERE id = :id"),
                {**patch, "id": file_id},
            )
            if result.rowcount == 0:
                raise NotFoundError(f"Remote file {file_id} not found")

    async def delete_file_record(self, file_id: str) -> None:
        async with self._begin() as conn:
            await conn.execute(text("DELETE FROM shares WHERE target_id = :id"), {"id": file_id})
            await conn.execute(text("DELETE FROM files WHERE id = :id"), {"id": file_id})

    # -- principals and grants --------------------------------------------

    async def find_principal_by_email(self, email: str) -> Principal:
        async with self._begin() as conn:
            result = await conn.execute(
                text("SELECT id, email, display_name FROM users WHERE lower(email) = lower(:email) LIMIT 1"),
                {"email": email},
            )
            row = result.fetchone()
        if row is None:
            raise NotFoundError(f"No user with email {email}")
        return Principal(id=str(row.id), email=row.email, display_name=row.display_name)

    async def find_principals(self, principal_ids: list[str]) -> list[Principal]:
        if not principal_ids:
            return []
        async with self._begin() as conn:
            result = await conn.execute(
                text("SELECT id, email, display_name FROM users WHERE id = ANY(:ids)"),
                {"ids": list(principal_ids)},
            )
            return [Principal(id=str(r.id), email=r.email, display_name=r.display_name) for r in result.fetchall()]

    async def insert_grant(self, grant: ShareGrant) -> ShareGrant:
        async with self._begin() as conn:
            await conn.execute(
                text(
                    "INSERT INTO shares (target_id, target_kind, owner_id, recipient_id, permission, created_at) "
                    "VALUES (:target_id, :target_kind, :owner_id, :recipient_id, :permission, :created_at)"
                ),
                {
                    "target_id": grant.target_id,
                    "target_kind": grant.target_kind.value,
                    "owner_id": grant.owner_id,
                    "recipient_id": grant.recipient_id,
                    "permission": grant.permission.value,
                    "created_at": grant.created_at,
                },
            )
        return grant

    async def delete_grant(self, target_id: str, recipient_id: str) -> bool:
        async with self._begin() as conn:
            result = await conn.execute(
                text("DELETE FROM shares WHERE target_id = :target_id AND recipient_id = :recipient_id"),
                {"target_id": target_id, "recipient_id": recipient_id},
            )
            return bool(result.rowcount)

    async def list_grants(self, target_id: str) -> list[ShareGrant]:
        async with self._begin() as conn:
            result = await conn.execute(
                text(
                    "SELECT target_id, target_kind, owner_id, recipient_id, permission, created_at "
                    "FROM shares WHERE target_id = :target_id ORDER BY created_at"
                ),
                {"target_id": target_id},
            )
            return [
                ShareGrant(
                    target_id=str(r.target_id),
                    target_kind=TargetKind(r.target_kind),
                    owner_id=str(r.owner_id),
                    recipient_id=str(r.recipient_id),
                    permission=r.permission,
                    created_at=r.created_at,
                )
                for r in result.fetchall()
            ]

    async def set_shared_with(self, target_id: str, recipient_ids: list[str]) -> None:
        async with self._begin() as conn:
            params = {"id": target_id, "ids": list(recipient_ids)}
            result = await conn.execute(text("UPDATE files SET shared_with = :ids WHERE id = :id"), params)
            if result.rowcount == 0:
                result = await conn.execute(text("UPDATE folders SET shared_with = :ids WHERE id = :id"), params)
            if result.rowcount == 0:
                raise NotFoundError(f"Share target {target_id} not found")

    async def list_shared_with(self, principal_id: str) -> list[RemoteFile | RemoteFolder]:
        async with self._begin() as conn:
            folders = await conn.execute(
                text(f"SELECT {_FOLDER_COLUMNS} FROM folders WHERE :pid = ANY(shared_with) ORDER BY created_at DESC"),
                {"pid": principal_id},
            )
            files = await conn.execute(
                text(f"SELECT {_FILE_COLUMNS} FROM files WHERE :pid = ANY(shared_with) ORDER BY created_at DESC"),
                {"pid": principal_id},
            )
            targets: list[RemoteFile | RemoteFolder] = [_row_to_folder(r) for r in folders.fetchall()]
            targets.extend(_row_to_file(r) for r in files.fetchall())
        return targets

    async def ping(self) -> bool:
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception:
            return False

    async def dispose(self) -> None:
        await self._engine.dispose()
