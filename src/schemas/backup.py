"""Pydantic schemas for backup endpoints."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class SnapshotResponse(BaseModel):
    """Metadata of a stored backup."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime
    bookmark_count: int


class RestoreResponse(BaseModel):
    """Result of restoring the latest backup into the collection."""

    restored: int
