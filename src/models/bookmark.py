"""Bookmark record and its closed enumerations."""
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from uuid6 import uuid7

# Folder segment prepended to bookmarks the classifier could not place.
# Feeds the "needs review" smart collection and the review queue.
REVIEW_FOLDER = "_To Review"

DEFAULT_TITLE = "Untitled"


class BookmarkSource(StrEnum):
    """Browser or export that produced a bookmark."""

    CHROME = "chrome"
    EDGE = "edge"
    FIREFOX = "firefox"
    SAFARI = "safari"
    COMET = "comet"
    ATLAS = "atlas"
    OTHER = "other"


class Category(StrEnum):
    """Closed vocabulary assigned by the classification engine."""

    DEVELOPMENT = "Development & Tech"
    DESIGN = "Design & UX"
    NEWS = "News & Media"
    SHOPPING = "Shopping & Commerce"
    FINANCE = "Finance & Business"
    EDUCATION = "Education & Learning"
    ENTERTAINMENT = "Entertainment & Leisure"
    PRODUCTIVITY = "Tools & Productivity"
    TRAVEL = "Travel & Lifestyle"
    OTHER = "Other"

    @classmethod
    def parse(cls, value: object) -> "Category | None":
        """Return the member whose label is value, or None for anything else."""
        try:
            return cls(value)
        except (ValueError, TypeError):
            return None


# Catch-all the classifier is told to use when unsure.
DEFAULT_CATEGORY = Category.OTHER


class LinkStatus(StrEnum):
    """Liveness state. Only the link checker moves a bookmark out of UNKNOWN."""

    UNKNOWN = "unknown"
    OK = "ok"
    SUSPECT = "suspect"
    DEAD = "dead"


def new_bookmark_id() -> str:
    """Generate a time-ordered unique bookmark id."""
    return str(uuid7())


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


class Bookmark(BaseModel):
    """
    A single bookmark.

    Instances are immutable: every change produces a new record via
    `model_copy(update=...)`, and collections are replaced wholesale. Field names
    serialize in camelCase (`folderPath`, `isFavorite`, ...) so exported files and
    backups keep the browser-side format.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str = Field(default_factory=new_bookmark_id)
    title: str
    url: str
    category: Category | None = None
    folder_path: tuple[str, ...] = ()
    source: BookmarkSource = BookmarkSource.OTHER
    is_favorite: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    last_updated_at: datetime = Field(default_factory=utc_now)
    link_status: LinkStatus = LinkStatus.UNKNOWN
    link_status_code: int | None = None
    link_status_message: str | None = None

    @property
    def needs_review(self) -> bool:
        """True if unclassified or parked in the review folder."""
        return self.category is None or REVIEW_FOLDER in self.folder_path
