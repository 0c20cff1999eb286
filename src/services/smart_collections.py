"""Predefined filtered views of the collection, the review queue and dashboard counts."""
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from models.bookmark import Bookmark, LinkStatus, utc_now

RECENT_WINDOW = timedelta(days=30)
TOP_CATEGORIES = 7
UNCATEGORIZED_LABEL = "Uncategorized"


def is_suspect(bookmark: Bookmark) -> bool:
    """Flagged by the link checker as suspect or dead."""
    return bookmark.link_status in (LinkStatus.SUSPECT, LinkStatus.DEAD)


@dataclass(frozen=True)
class SmartCollection:
    """A named, predefined filter over the collection."""

    id: str
    name: str
    description: str
    predicate: Callable[[Bookmark, datetime], bool] = field(repr=False)

    def matches(self, bookmark: Bookmark, now: datetime) -> bool:
        return self.predicate(bookmark, now)


SMART_COLLECTIONS: tuple[SmartCollection, ...] = (
    SmartCollection(
        id="recent",
        name="Recently added",
        description="Added in the last 30 days",
        predicate=lambda b, now: abs(now - b.created_at) <= RECENT_WINDOW,
    ),
    SmartCollection(
        id="favorites",
        name="Favorites",
        description="Marked as favorite",
        predicate=lambda b, now: b.is_favorite,
    ),
    SmartCollection(
        id="uncategorized",
        name="Needs review",
        description="No category, or parked in the review folder",
        predicate=lambda b, now: b.needs_review,
    ),
    SmartCollection(
        id="suspects",
        name="Suspect links",
        description="Flagged as possibly dead",
        predicate=lambda b, now: is_suspect(b),
    ),
)

_COLLECTIONS_BY_ID = {collection.id: collection for collection in SMART_COLLECTIONS}


def get_smart_collection(collection_id: str) -> SmartCollection | None:
    """Look up a predefined collection by id."""
    return _COLLECTIONS_BY_ID.get(collection_id)


def filter_collection(
    bookmarks: Sequence[Bookmark],
    collection: SmartCollection,
    now: datetime | None = None,
) -> list[Bookmark]:
    """Bookmarks matching the collection, in collection order."""
    now = now or utc_now()
    return [bookmark for bookmark in bookmarks if collection.matches(bookmark, now)]


def review_queue(bookmarks: Sequence[Bookmark]) -> list[Bookmark]:
    """Bookmarks awaiting a manual decision: unclassified or parked for review."""
    return [bookmark for bookmark in bookmarks if bookmark.needs_review]


@dataclass(frozen=True)
class CollectionStats:
    """Dashboard counts."""

    total: int
    favorites: int
    uncategorized: int
    suspects: int
    # (category label, count), largest first, at most TOP_CATEGORIES entries
    top_categories: list[tuple[str, int]]
    by_source: dict[str, int]


def compute_stats(bookmarks: Sequence[Bookmark]) -> CollectionStats:
    """Totals, the most common categories and the per-source breakdown."""
    categories = Counter(
        b.category.value if b.category else UNCATEGORIZED_LABEL for b in bookmarks
    )
    sources = Counter(b.source.value for b in bookmarks)
    return CollectionStats(
        total=len(bookmarks),
        favorites=sum(1 for b in bookmarks if b.is_favorite),
        uncategorized=sum(1 for b in bookmarks if b.category is None),
        suspects=sum(1 for b in bookmarks if is_suspect(b)),
        top_categories=categories.most_common(TOP_CATEGORIES),
        by_source=dict(sources),
    )
