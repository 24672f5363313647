from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid4().hex


class BlobLocation(str, Enum):
    INLINE_LOCAL = "inline-local"
    DEVICE_STORAGE = "device-storage"
    REMOTE_OBJECT_STORE = "remote-object-store"


class Permission(str, Enum):
    VIEW = "view"
    EDIT = "edit"
    ADMIN = "admin"


class FolderColor(str, Enum):
    """Semantic color tokens; ``hsl`` holds the value the UI renders."""

    BLUE = "blue"
    PURPLE = "purple"
    GREEN = "green"
    ORANGE = "orange"
    PINK = "pink"
    TEAL = "teal"

    @property
    def hsl(self) -> str:
        return _FOLDER_HSL[self]


_FOLDER_HSL: dict[FolderColor, str] = {
    FolderColor.BLUE: "220 90% 56%",
    FolderColor.PURPLE: "260 80% 60%",
    FolderColor.GREEN: "142 70% 45%",
    FolderColor.ORANGE: "25 95% 53%",
    FolderColor.PINK: "330 80% 60%",
    FolderColor.TEAL: "180 70% 45%",
}


class TargetKind(str, Enum):
    FILE = "file"
    FOLDER = "folder"


# ---------------------------------------------------------------------------
# Local records
# ---------------------------------------------------------------------------


class FileRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    name: str
    size_bytes: int
    mime_type: str = "application/octet-stream"
    folder_id: str | None = None
    text_preview: str | None = None
    blob_location: BlobLocation = BlobLocation.INLINE_LOCAL
    blob_locator: str | None = None
    payload: bytes | None = None
    created_at: datetime = Field(default_factory=_now)

    def without_payload(self) -> "FileRecord":
        return self.model_copy(update={"payload": None})


class FolderRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    name: str
    color: FolderColor = FolderColor.BLUE
    created_at: datetime = Field(default_factory=_now)


class IncomingFile(BaseModel):
    """A file handed to ``FileHub.add_files`` before it has a tier."""

    name: str
    data: bytes
    mime_type: str | None = None
    folder_id: str | None = None
    id: str | None = None


class AddResult(BaseModel):
    name: str
    record: FileRecord | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.record is not None


class StorageUsage(BaseModel):
    used_bytes: int
    quota_bytes: int | None = None


# ---------------------------------------------------------------------------
# Remote rows
# ---------------------------------------------------------------------------


class Principal(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    display_name: str | None = None


class RemoteFolder(BaseModel):
    id: str
    owner_id: str
    name: str
    color: str
    shared_with: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)


class RemoteFile(BaseModel):
    id: str
    owner_id: str
    folder_id: str | None = None
    name: str
    size_bytes: int
    mime_type: str
    text_preview: str | None = None
    blob_locator: str
    shared_with: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)


class NewRemoteFile(BaseModel):
    owner_id: str
    folder_id: str | None = None
    name: str
    size_bytes: int
    mime_type: str
    text_preview: str | None = None
    blob_locator: str


class ShareGrant(BaseModel):
    target_id: str
    target_kind: TargetKind = TargetKind.FILE
    owner_id: str
    recipient_id: str
    permission: Permission = Permission.VIEW
    created_at: datetime = Field(default_factory=_now)


class GrantView(BaseModel):
    recipient_id: str
    label: str
    permission: Permission


# ---------------------------------------------------------------------------
# Reconciliation reports
# ---------------------------------------------------------------------------


class SyncFailure(BaseModel):
    kind: TargetKind
    local_id: str
    name: str
    error: str
    message: str


class SyncReport(BaseModel):
    skipped: bool = False
    folders_created: int = 0
    folders_adopted: int = 0
    folders_updated: int = 0
    folders_deleted: int = 0
    files_uploaded: int = 0
    files_adopted: int = 0
    files_updated: int = 0
    files_deleted: int = 0
    failures: list[SyncFailure] = Field(default_factory=list)

    @property
    def changed(self) -> int:
        return (
            self.folders_created
            + self.folders_adopted
            + self.folders_updated
            + self.folders_deleted
            + self.files_uploaded
            + self.files_adopted
            + self.files_updated
            + self.files_deleted
        )
