from fastapi import APIRouter, Depends, File, Form, Response, UploadFile, status

from filehub.api.dependencies import get_hub
from filehub.api.schemas import AddResultSchema, FileMoveRequest, FileSchema
from filehub.core.hub import FileHub
from filehub.models import IncomingFile

router = APIRouter(prefix="/files", tags=["files"])


@router.get("", response_model=list[FileSchema])
async def list_files(folder_id: str | None = None, hub: FileHub = Depends(get_hub)) -> list[FileSchema]:
    records = hub.files if folder_id is None else hub.files_in(folder_id)
    return [FileSchema.model_validate(record) for record in records]


@router.post("", response_model=list[AddResultSchema], status_code=status.HTTP_201_CREATED)
async def upload_files(
    files: list[UploadFile] = File(...),
    folder_id: str | None = Form(None),
    hub: FileHub = Depends(get_hub),
) -> list[AddResultSchema]:
    """Store each upload independently; failures are reported per file."""
    incoming = [
        IncomingFile(
            name=upload.filename or "unnamed",
            data=await upload.read(),
            mime_type=upload.content_type,
            folder_id=folder_id,
        )
        for upload in files
    ]
    results = await hub.add_files(incoming)
    return [
        AddResultSchema(
            name=result.name,
            file=FileSchema.model_validate(result.record) if result.record is not None else None,
            error=result.error,
        )
        for result in results
    ]


@router.get("/{file_id}", response_model=FileSchema)
async def get_file(file_id: str, hub: FileHub = Depends(get_hub)) -> FileSchema:
    return FileSchema.model_validate(hub.get_file(file_id))


@router.get("/{file_id}/content")
async def get_file_content(file_id: str, hub: FileHub = Depends(get_hub)) -> Response:
    record = hub.get_file(file_id)
    data = await hub.read_file(file_id)
    return Response(
        content=data,
        media_type=record.mime_type,
        headers={"Content-Disposition": f'inline; filename="{record.name}"'},
    )


@router.patch("/{file_id}", response_model=FileSchema)
async def move_file(file_id: str, body: FileMoveRequest, hub: FileHub = Depends(get_hub)) -> FileSchema:
    return FileSchema.model_validate(await hub.move_file(file_id, body.folder_id))


@router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_file(file_id: str, hub: FileHub = Depends(get_hub)) -> Response:
    await hub.remove_file(file_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
