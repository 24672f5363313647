from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from filehub.models import BlobLocation, FolderColor, FolderRecord, Permission


class HealthResponse(BaseModel):
    status: str = "ok"


class ReadinessResponse(BaseModel):
    status: str = "ok"
    remote: str = "up"


class FileSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    size_bytes: int
    mime_type: str
    folder_id: str | None
    text_preview: str | None
    blob_location: BlobLocation
    created_at: datetime


class AddResultSchema(BaseModel):
    name: str
    file: FileSchema | None = None
    error: str | None = None


class FileMoveRequest(BaseModel):
    """PATCH /files/{id}: ``folder_id`` of ``None`` moves the file to root."""

    folder_id: str | None = None


class FolderSchema(BaseModel):
    id: str
    name: str
    color: FolderColor
    hsl: str
    created_at: datetime

    @classmethod
    def from_record(cls, folder: FolderRecord) -> "FolderSchema":
        return cls(
            id=folder.id,
            name=folder.name,
            color=folder.color,
            hsl=folder.color.hsl,
            created_at=folder.created_at,
        )


class FolderCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    color: FolderColor = FolderColor.BLUE


class FolderUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    color: FolderColor | None = None


class ShareRequest(BaseModel):
    email: str
    permission: Permission = Permission.VIEW


class SharedItemSchema(BaseModel):
    id: str
    kind: str
    name: str
    owner_id: str
