"""Pydantic schemas for bookmark endpoints."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from models.bookmark import BookmarkSource, Category, LinkStatus
from services.import_service import ImportMode


class BookmarkResponse(BaseModel):
    """Schema for bookmark responses."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    url: str
    category: Category | None
    folder_path: list[str]
    source: BookmarkSource
    is_favorite: bool
    created_at: datetime
    last_updated_at: datetime
    link_status: LinkStatus
    link_status_code: int | None
    link_status_message: str | None


class BookmarkListResponse(BaseModel):
    """Schema for paginated bookmark list responses."""

    items: list[BookmarkResponse]
    total: int
    offset: int
    limit: int
    has_more: bool


class ImportResponse(BaseModel):
    """Result of importing a bookmark file."""

    model_config = ConfigDict(from_attributes=True)

    mode: ImportMode
    parsed: int
    added: int
    total: int


class DuplicateGroupResponse(BaseModel):
    """Bookmarks sharing a normalized URL."""

    normalized_url: str
    bookmarks: list[BookmarkResponse]


class CategoryCount(BaseModel):
    """A label and how many bookmarks carry it."""

    name: str
    count: int


class StatsResponse(BaseModel):
    """Dashboard counts."""

    total: int
    favorites: int
    uncategorized: int
    suspects: int
    top_categories: list[CategoryCount]
    by_source: list[CategoryCount]


class ImportBatchResponse(BaseModel):
    """One import in the session summary."""

    model_config = ConfigDict(from_attributes=True)

    source: BookmarkSource
    count: int
    timestamp: datetime


class ImportSummaryResponse(BaseModel):
    """The last replace import and the merges applied on top of it."""

    model_config = ConfigDict(from_attributes=True)

    master: ImportBatchResponse | None
    merges: list[ImportBatchResponse]


class SmartCollectionResponse(BaseModel):
    """A predefined collection and its members."""

    id: str
    name: str
    description: str
    items: list[BookmarkResponse]


class ClassificationResponse(BaseModel):
    """Outcome of a classification run."""

    submitted: int
    classified: int
    failed_batches: int
    needs_review: int


class LinkCheckRequest(BaseModel):
    """Options for a link check run."""

    limit: int | None = Field(
        default=None,
        ge=1,
        description="Check at most this many unknown links. None checks all of them.",
    )


class LinkCheckResponse(BaseModel):
    """Outcome of a link check run."""

    checked: int
    ok: int
    suspect: int
    dead: int
    stopped: bool


class LinkStatusResetRequest(BaseModel):
    """Bookmarks to put back to unknown link status. None resets all of them."""

    ids: list[str] | None = None
