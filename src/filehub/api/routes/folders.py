from fastapi import APIRouter, Depends, HTTPException, Response, status

from filehub.api.dependencies import get_hub
from filehub.api.schemas import FolderCreateRequest, FolderSchema, FolderUpdateRequest
from filehub.core.hub import FileHub

router = APIRouter(prefix="/folders", tags=["folders"])


@router.get("", response_model=list[FolderSchema])
async def list_folders(hub: FileHub = Depends(get_hub)) -> list[FolderSchema]:
    return [FolderSchema.from_record(folder) for folder in hub.folders]


@router.post("", response_model=FolderSchema, status_code=status.HTTP_201_CREATED)
async def create_folder(body: FolderCreateRequest, hub: FileHub = Depends(get_hub)) -> FolderSchema:
    try:
        folder = await hub.create_folder(body.name, body.color)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return FolderSchema.from_record(folder)


@router.patch("/{folder_id}", response_model=FolderSchema)
async def update_folder(
    folder_id: str, body: FolderUpdateRequest, hub: FileHub = Depends(get_hub)
) -> FolderSchema:
    try:
        folder = await hub.update_folder(folder_id, name=body.name, color=body.color)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return FolderSchema.from_record(folder)


@router.delete("/{folder_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_folder(folder_id: str, hub: FileHub = Depends(get_hub)) -> Response:
    await hub.delete_folder(folder_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
