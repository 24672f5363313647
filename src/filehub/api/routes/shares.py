from fastapi import APIRouter, Depends, Response, status

from filehub.api.dependencies import get_hub
from filehub.api.schemas import SharedItemSchema, ShareRequest
from filehub.core.hub import FileHub
from filehub.models import GrantView, RemoteFile, ShareGrant

router = APIRouter(tags=["sharing"])


@router.get("/files/{target_id}/shares", response_model=list[GrantView])
async def list_grants(target_id: str, hub: FileHub = Depends(get_hub)) -> list[GrantView]:
    return await hub.list_grants(target_id)


@router.post("/files/{target_id}/shares", response_model=ShareGrant, status_code=status.HTTP_201_CREATED)
async def share(target_id: str, body: ShareRequest, hub: FileHub = Depends(get_hub)) -> ShareGrant:
    return await hub.share(target_id, body.email, body.permission)


@router.delete("/files/{target_id}/shares/{recipient_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke(target_id: str, recipient_id: str, hub: FileHub = Depends(get_hub)) -> Response:
    await hub.revoke(target_id, recipient_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/shared-with-me", response_model=list[SharedItemSchema])
async def shared_with_me(hub: FileHub = Depends(get_hub)) -> list[SharedItemSchema]:
    items = await hub.list_shared_with_me()
    return [
        SharedItemSchema(
            id=item.id,
            kind="file" if isinstance(item, RemoteFile) else "folder",
            name=item.name,
            owner_id=item.owner_id,
        )
        for item in items
    ]
