"""Bookkeeping for the imports performed during a session (not persisted)."""
from datetime import datetime

from pydantic import BaseModel, Field

from models.bookmark import BookmarkSource


class ImportBatchInfo(BaseModel):
    """One imported file: where it came from, how many bookmarks it added, and when."""

    source: BookmarkSource
    count: int
    timestamp: datetime


class ImportSessionSummary(BaseModel):
    """The master import of the session followed by the merges applied on top of it."""

    master: ImportBatchInfo | None = None
    merges: list[ImportBatchInfo] = Field(default_factory=list)
