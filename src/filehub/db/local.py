import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os
from pydantic import TypeAdapter, ValidationError
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from filehub.errors import CapacityExceededError, TransientIOError
from filehub.models import BlobLocation, FileRecord, FolderRecord, TargetKind

logger = logging.getLogger(__name__)

_INLINE_TIER = BlobLocation.INLINE_LOCAL.value
_FOLDER_LIST = TypeAdapter(list[FolderRecord])


def _is_disk_full(exc: OperationalError) -> bool:
    message = str(exc.orig).lower() if exc.orig is not None else str(exc).lower()
    return "full" in message or "quota" in message


def _row_to_record(row: Any) -> FileRecord:
    return FileRecord(
        id=row.id,
        name=row.name,
        size_bytes=row.size_bytes,
        mime_type=row.mime_type,
        folder_id=row.folder_id,
        text_preview=row.text_preview,
        blob_location=BlobLocation(row.blob_location),
        blob_locator=row.blob_locator,
        payload=bytes(row.payload) if row.payload is not None else None,
        created_at=datetime.fromisoformat(row.created_at),
    )


class SqliteBlobStore:
    """File metadata plus inline payloads in the local SQLite database.

    ``capacity`` caps the summed size of inline payloads; a write that would
    go past it raises ``CapacityExceededError`` so the router can escalate.
    """

    def __init__(self, engine: AsyncEngine, capacity: int | None = None) -> None:
        self._engine = engine
        self._capacity = capacity
        self._ready = False

    async def _ensure_tables(self) -> None:
        if self._ready:
            return
        ddl = (
            "CREATE TABLE IF NOT EXISTS local_files ("
            " id TEXT PRIMARY KEY,"
            " name TEXT NOT NULL,"
            " size_bytes INTEGER NOT NULL,"
            " mime_type TEXT NOT NULL,"
            " folder_id TEXT,"
            " text_preview TEXT,"
            " blob_location TEXT NOT NULL,"
            " blob_locator TEXT,"
            " payload BLOB,"
            " created_at TEXT NOT NULL"
            ")"
        )
        try:
            async with self._engine.begin() as conn:
                await conn.execute(text(ddl))
        except SQLAlchemyError as exc:
            raise TransientIOError(f"cannot open local file store: {exc}") from exc
        self._ready = True

    async def put(self, record: FileRecord) -> None:
        await self._ensure_tables()
        payload_size = len(record.payload) if record.payload is not None else 0
        try:
            async with self._engine.begin() as conn:
                if payload_size and self._capacity is not None:
                    result = await conn.execute(
                        text("SELECT COALESCE(SUM(length(payload)), 0) FROM local_files WHERE id != :id"),
                        {"id": record.id},
                    )
                    used = int(result.scalar_one())
                    if used + payload_size > self._capacity:
                        raise CapacityExceededError(_INLINE_TIER, payload_size, max(0, self._capacity - used))
                await conn.execute(
                    text(
                        """
                        INSERT INTO local_files
                            (id, name, size_bytes, mime_type, folder_id, text_preview,
                             blob_location, blob_locator, payload, created_at)
                        VALUES
                            (:id, :name, :size_bytes, :mime_type, :folder_id, :text_preview,
                             :blob_location, :blob_locator, :payload, :created_at)
                        ON CONFLICT (id) DO UPDATE SET
                            name = excluded.name,
                            size_bytes = excluded.size_bytes,
                            mime_type = excluded.mime_type,
                            folder_id = excluded.folder_id,
                            text_preview = excluded.text_preview,
                            blob_location = excluded.blob_location,
                            blob_locator = excluded.blob_locator,
                            payload = excluded.payload,
                            created_at = excluded.created_at
                        """
                    ),
                    {
                        "id": record.id,
                        "name": record.name,
                        "size_bytes": record.size_bytes,
                        "mime_type": record.mime_type,
                        "folder_id": record.folder_id,
                        "text_preview": record.text_preview,
                        "blob_location": record.blob_location.value,
                        "blob_locator": record.blob_locator,
                        "payload": record.payload,
                        "created_at": record.created_at.isoformat(),
                    },
                )
        except OperationalError as exc:
            if _is_disk_full(exc):
                raise CapacityExceededError(_INLINE_TIER, payload_size) from exc
            raise TransientIOError(f"local write failed for {record.name}: {exc}") from exc
        except SQLAlchemyError as exc:
            raise TransientIOError(f"local write failed for {record.name}: {exc}") from exc

    async def get(self, file_id: str) -> FileRecord | None:
        await self._ensure_tables()
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(text("SELECT * FROM local_files WHERE id = :id"), {"id": file_id})
                row = result.fetchone()
        except SQLAlchemyError as exc:
            raise TransientIOError(f"local read failed: {exc}") from exc
        return _row_to_record(row) if row is not None else None

    async def get_all(self) -> list[FileRecord]:
        await self._ensure_tables()
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(text("SELECT * FROM local_files ORDER BY created_at, id"))
                rows = result.fetchall()
        except SQLAlchemyError as exc:
            raise TransientIOError(f"local read failed: {exc}") from exc
        return [_row_to_record(row) for row in rows]

    async def remove(self, file_id: str) -> None:
        await self._ensure_tables()
        try:
            async with self._engine.begin() as conn:
                await conn.execute(text("DELETE FROM local_files WHERE id = :id"), {"id": file_id})
        except SQLAlchemyError as exc:
            raise TransientIOError(f"local delete failed: {exc}") from exc

    async def clear(self) -> None:
        await self._ensure_tables()
        try:
            async with self._engine.begin() as conn:
                await conn.execute(text("DELETE FROM local_files"))
        except SQLAlchemyError as exc:
            raise TransientIOError(f"local clear failed: {exc}") from exc

    async def usage(self) -> int:
        """Inline payload bytes plus the UTF-8 size of every file name."""
        await self._ensure_tables()
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(
                    text(
                        "SELECT COALESCE(SUM(COALESCE(length(payload), 0) + length(CAST(name AS BLOB))), 0) "
                        "FROM local_files"
                    )
                )
                return int(result.scalar_one())
        except SQLAlchemyError as exc:
            raise TransientIOError(f"local read failed: {exc}") from exc

    def quota(self) -> int | None:
        return self._capacity

    async def dispose(self) -> None:
        await self._engine.dispose()


class SqliteSyncMap:
    """Persisted local-id to remote-id table, one row per synced item."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._ready = False

    async def _ensure_tables(self) -> None:
        if self._ready:
            return
        ddl = (
            "CREATE TABLE IF NOT EXISTS sync_map ("
            " kind TEXT NOT NULL,"
            " local_id TEXT NOT NULL,"
            " remote_id TEXT NOT NULL,"
            " PRIMARY KEY (kind, local_id)"
            ")"
        )
        try:
            async with self._engine.begin() as conn:
                await conn.execute(text(ddl))
        except SQLAlchemyError as exc:
            raise TransientIOError(f"cannot open sync map: {exc}") from exc
        self._ready = True

    async def get(self, kind: TargetKind, local_id: str) -> str | None:
        await self._ensure_tables()
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(
                    text("SELECT remote_id FROM sync_map WHERE kind = :kind AND local_id = :local_id"),
                    {"kind": kind.value, "local_id": local_id},
                )
                value = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise TransientIOError(f"sync map read failed: {exc}") from exc
        return str(value) if value is not None else None

    async def put(self, kind: TargetKind, local_id: str, remote_id: str) -> None:
        await self._ensure_tables()
        try:
            async with self._engine.begin() as conn:
                await conn.execute(
                    text(
                        "INSERT INTO sync_map (kind, local_id, remote_id) VALUES (:kind, :local_id, :remote_id) "
                        "ON CONFLICT (kind, local_id) DO UPDATE SET remote_id = excluded.remote_id"
                    ),
                    {"kind": kind.value, "local_id": local_id, "remote_id": remote_id},
                )
        except SQLAlchemyError as exc:
            raise TransientIOError(f"sync map write failed: {exc}") from exc

    async def forget(self, kind: TargetKind, local_id: str) -> None:
        await self._ensure_tables()
        try:
            async with self._engine.begin() as conn:
                await conn.execute(
                    text("DELETE FROM sync_map WHERE kind = :kind AND local_id = :local_id"),
                    {"kind": kind.value, "local_id": local_id},
                )
        except SQLAlchemyError as exc:
            raise TransientIOError(f"sync map write failed: {exc}") from exc

    async def items(self, kind: TargetKind) -> dict[str, str]:
        await self._ensure_tables()
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(
                    text("SELECT local_id, remote_id FROM sync_map WHERE kind = :kind"),
                    {"kind": kind.value},
                )
                rows = result.fetchall()
        except SQLAlchemyError as exc:
            raise TransientIOError(f"sync map read failed: {exc}") from exc
        return {str(row[0]): str(row[1]) for row in rows}

    async def clear(self) -> None:
        await self._ensure_tables()
        try:
            async with self._engine.begin() as conn:
                await conn.execute(text("DELETE FROM sync_map"))
        except SQLAlchemyError as exc:
            raise TransientIOError(f"sync map clear failed: {exc}") from exc


class JsonFolderStore:
    """The folder list as a single JSON document on disk."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    async def save(self, folders: list[FolderRecord]) -> None:
        payload = _FOLDER_LIST.dump_json(folders)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            await aiofiles.os.makedirs(self._path.parent, exist_ok=True)
            async with aiofiles.open(tmp_path, "wb") as f:
                await f.write(payload)
                await f.flush()
                os.fsync(f.fileno())
            await aiofiles.os.replace(tmp_path, self._path)
        except OSError as exc:
            raise TransientIOError(f"cannot save folders: {exc}") from exc

    async def load(self) -> list[FolderRecord]:
        try:
            async with aiofiles.open(self._path, "rb") as f:
                raw = await f.read()
        except FileNotFoundError:
            return []
        except OSError:
            logger.warning("Cannot read folder list at %s, starting empty", self._path, exc_info=True)
            return []
        try:
            return _FOLDER_LIST.validate_python(json.loads(raw))
        except (ValueError, ValidationError):
            logger.warning("Folder list at %s is corrupt, starting empty", self._path)
            return []

    async def clear(self) -> None:
        try:
            await aiofiles.os.remove(self._path)
        except FileNotFoundError:
            return

    async def size_bytes(self) -> int:
        try:
            stat = await aiofiles.os.stat(self._path)
        except FileNotFoundError:
            return 0
        return stat.st_size
