"""Encrypted backup endpoints."""
from fastapi import APIRouter, Depends, HTTPException, status

from api.dependencies import get_backup_service, get_collection, get_current_user
from models.user import AuthUser
from schemas.backup import RestoreResponse, SnapshotResponse
from services.backup_service import BackupService
from services.collection_service import BookmarkCollection
from services.exceptions import BackupCorruptedError

router = APIRouter(prefix="/backups", tags=["backups"])


@router.post("/", response_model=SnapshotResponse, status_code=201)
async def create_backup(
    current_user: AuthUser = Depends(get_current_user),
    collection: BookmarkCollection = Depends(get_collection),
    backup_service: BackupService = Depends(get_backup_service),
) -> SnapshotResponse:
    """Encrypt the current collection and overwrite the stored backup."""
    meta = await backup_service.save(current_user.id, collection.bookmarks)
    return SnapshotResponse.model_validate(meta)


@router.get("/", response_model=list[SnapshotResponse])
async def list_backups(
    current_user: AuthUser = Depends(get_current_user),
    backup_service: BackupService = Depends(get_backup_service),
) -> list[SnapshotResponse]:
    """List stored backups (at most one)."""
    snapshots = await backup_service.list_snapshots(current_user.id)
    return [SnapshotResponse.model_validate(s) for s in snapshots]


@router.post("/restore", response_model=RestoreResponse)
async def restore_backup(
    current_user: AuthUser = Depends(get_current_user),
    collection: BookmarkCollection = Depends(get_collection),
    backup_service: BackupService = Depends(get_backup_service),
) -> RestoreResponse:
    """Replace the collection with the stored backup."""
    try:
        bookmarks = await backup_service.load(current_user.id)
    except BackupCorruptedError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    if bookmarks is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No backup found")
    collection.restore(bookmarks)
    return RestoreResponse(restored=len(bookmarks))


@router.delete("/", status_code=204)
async def delete_backup(
    current_user: AuthUser = Depends(get_current_user),
    backup_service: BackupService = Depends(get_backup_service),
) -> None:
    """Delete the stored backup."""
    deleted = await backup_service.delete(current_user.id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No backup found")
