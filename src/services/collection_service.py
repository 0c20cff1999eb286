"""
Per-user ownership of the in-memory bookmark collection.

The collection is never persisted server-side (only through encrypted
backups). Each mutation builds a new tuple of immutable records and swaps it in
whole, so a reader always sees either the old collection or the new one.
"""
import logging
from collections.abc import Collection, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from models.bookmark import Bookmark, BookmarkSource, utc_now
from models.import_session import ImportSessionSummary
from services import link_checker
from services.bookmark_parser import parse_bookmarks
from services.classification_service import assign_category, park_for_review
from services.import_service import ImportMode, apply_import, record_import
from services.link_checker import LinkCheckResult, LinkCheckRun

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportResult:
    """Outcome of importing one bookmark file."""

    mode: ImportMode
    parsed: int
    added: int
    total: int


class BookmarkCollection:
    """A user's bookmarks plus the bookkeeping around them."""

    def __init__(self, bookmarks: Iterable[Bookmark] = ()) -> None:
        self._bookmarks: tuple[Bookmark, ...] = tuple(bookmarks)
        self._version = 0
        self.import_summary = ImportSessionSummary()
        # Link check in progress, so another request can stop it
        self.active_link_check: LinkCheckRun | None = None

    @property
    def bookmarks(self) -> tuple[Bookmark, ...]:
        """Current snapshot."""
        return self._bookmarks

    @property
    def version(self) -> int:
        """Incremented on every swap."""
        return self._version

    def __len__(self) -> int:
        return len(self._bookmarks)

    def _swap(self, bookmarks: Iterable[Bookmark]) -> None:
        self._bookmarks = tuple(bookmarks)
        self._version += 1

    def get(self, bookmark_id: str) -> Bookmark | None:
        """Find a bookmark by id."""
        for bookmark in self._bookmarks:
            if bookmark.id == bookmark_id:
                return bookmark
        return None

    def replace(self, bookmarks: Iterable[Bookmark]) -> None:
        """Swap in a new collection wholesale."""
        self._swap(bookmarks)

    def import_file(
        self,
        html_content: str,
        source: BookmarkSource,
        mode: ImportMode,
        now: datetime | None = None,
    ) -> ImportResult:
        """
        Parse a bookmark export and combine it with the collection.

        The collection is left untouched if parsing fails.

        Raises:
            BookmarkParseError: If the file cannot be parsed.
        """
        now = now or utc_now()
        incoming = parse_bookmarks(html_content, source, now=now)
        return self.import_parsed(incoming, source, mode, now=now)

    def import_parsed(
        self,
        incoming: Sequence[Bookmark],
        source: BookmarkSource,
        mode: ImportMode,
        now: datetime | None = None,
    ) -> ImportResult:
        """Combine already parsed bookmarks with the collection and record the import."""
        now = now or utc_now()
        before = len(self._bookmarks)
        combined = apply_import(self._bookmarks, incoming, mode)
        self._swap(combined)
        added = len(combined) if mode is ImportMode.REPLACE else len(combined) - before
        # A replace counts what the file held, a merge only what it added
        count = added if mode is ImportMode.MERGE else len(incoming)
        self.import_summary = record_import(
            self.import_summary, mode, source, count, timestamp=now,
        )
        logger.info(
            "bookmarks_imported",
            extra={"mode": mode.value, "source": source.value, "parsed": len(incoming),
                   "added": added, "total": len(combined)},
        )
        return ImportResult(mode=mode, parsed=len(incoming), added=added, total=len(combined))

    def delete(self, bookmark_id: str) -> bool:
        """Remove a bookmark. Returns False if no bookmark has that id."""
        remaining = [b for b in self._bookmarks if b.id != bookmark_id]
        if len(remaining) == len(self._bookmarks):
            return False
        self._swap(remaining)
        return True

    def toggle_favorite(self, bookmark_id: str, now: datetime | None = None) -> Bookmark | None:
        """Flip the favorite flag. Returns the updated bookmark, or None if not found."""
        current = self.get(bookmark_id)
        if current is None:
            return None
        updated = current.model_copy(
            update={"is_favorite": not current.is_favorite, "last_updated_at": now or utc_now()},
        )
        self._swap(updated if b.id == bookmark_id else b for b in self._bookmarks)
        return updated

    def apply_classification(self, classified: Sequence[Bookmark]) -> int:
        """
        Apply the results of a classification run and return how many were applied.

        The run works on an earlier snapshot, so only the classification outcome
        is taken from each record: the category (with the review folder dropped)
        or, for a bookmark still without one, the review folder. Everything else
        comes from the current record, so favorites, link status and restores
        made during the run survive. Bookmarks deleted in the meantime stay
        deleted, and bookmarks added in the meantime are kept.
        """
        by_id = {bookmark.id: bookmark for bookmark in classified}
        applied = 0

        def merged(current: Bookmark) -> Bookmark:
            nonlocal applied
            result = by_id.get(current.id)
            if result is None:
                return current
            applied += 1
            if result.category is not None:
                return assign_category(current, result.category, result.last_updated_at)
            if current.category is None:
                return park_for_review(current)
            return current

        self._swap([merged(bookmark) for bookmark in self._bookmarks])
        return applied

    def apply_link_results(self, results: Iterable[LinkCheckResult]) -> None:
        """Apply one batch of link-check results."""
        self._swap(link_checker.apply_link_results(self._bookmarks, results))

    def reset_link_status(self, ids: Collection[str] | None = None) -> None:
        """Put bookmarks (all, or the given ids) back to unknown link status."""
        self._swap(link_checker.reset_link_status(self._bookmarks, ids))

    def restore(self, bookmarks: Sequence[Bookmark]) -> None:
        """Replace the collection with a restored backup."""
        self._swap(bookmarks)
        logger.info("collection_restored", extra={"count": len(bookmarks)})


class CollectionRegistry:
    """Owns one BookmarkCollection per user for the lifetime of the process."""

    def __init__(self) -> None:
        self._collections: dict[str, BookmarkCollection] = {}

    def get(self, user_id: str) -> BookmarkCollection:
        """Return the user's collection, creating an empty one on first access."""
        collection = self._collections.get(user_id)
        if collection is None:
            collection = BookmarkCollection()
            self._collections[user_id] = collection
        return collection

    def drop(self, user_id: str) -> None:
        """Forget the user's collection."""
        self._collections.pop(user_id, None)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._collections
