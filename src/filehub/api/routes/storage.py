from fastapi import APIRouter, Depends

from filehub.api.dependencies import get_hub
from filehub.core.hub import FileHub
from filehub.models import StorageUsage, SyncReport

router = APIRouter(tags=["storage"])


@router.get("/storage/usage", response_model=StorageUsage)
async def storage_usage(hub: FileHub = Depends(get_hub)) -> StorageUsage:
    return await hub.get_storage_usage()


@router.post("/sync", response_model=SyncReport)
async def sync_now(hub: FileHub = Depends(get_hub)) -> SyncReport:
    """Run one reconciliation pass and return its report."""
    return await hub.sync_now()
