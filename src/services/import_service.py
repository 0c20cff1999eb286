"""Combining imported bookmarks with an existing collection, and duplicate detection."""
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from models.bookmark import Bookmark, BookmarkSource, utc_now
from models.import_session import ImportBatchInfo, ImportSessionSummary


class ImportMode(StrEnum):
    """How an imported batch is combined with the existing collection."""

    # Destructive: the imported batch becomes the whole collection.
    REPLACE = "replace"
    # Append the imported bookmarks whose URL is not already present.
    MERGE = "merge"


def apply_import(
    existing: Sequence[Bookmark],
    incoming: Sequence[Bookmark],
    mode: ImportMode,
) -> list[Bookmark]:
    """
    Combine an imported batch with the existing collection.

    REPLACE returns `incoming` verbatim; confirming the loss of `existing` is the
    caller's job. MERGE returns `existing` followed by every incoming bookmark
    whose URL does not appear in `existing`, compared as exact strings. Records
    are never copied or re-identified, so ids stay stable.
    """
    if mode is ImportMode.REPLACE:
        return list(incoming)
    existing_urls = {bookmark.url for bookmark in existing}
    return [*existing, *(b for b in incoming if b.url not in existing_urls)]


def normalize_url_for_duplicates(url: str) -> str:
    """Comparison key for duplicate detection: the URL without one trailing slash."""
    return url[:-1] if url.endswith("/") else url


@dataclass(frozen=True)
class DuplicateGroup:
    """Bookmarks sharing the same normalized URL."""

    normalized_url: str
    bookmarks: tuple[Bookmark, ...]


def find_duplicates(bookmarks: Sequence[Bookmark]) -> list[DuplicateGroup]:
    """
    Group bookmarks by normalized URL and return every group with more than one member.

    Groups and their members keep first-seen order. This is a reporting helper:
    it never deletes anything.
    """
    groups: dict[str, list[Bookmark]] = {}
    for bookmark in bookmarks:
        groups.setdefault(normalize_url_for_duplicates(bookmark.url), []).append(bookmark)
    return [
        DuplicateGroup(normalized_url=url, bookmarks=tuple(members))
        for url, members in groups.items()
        if len(members) > 1
    ]


def record_import(
    summary: ImportSessionSummary,
    mode: ImportMode,
    source: BookmarkSource,
    count: int,
    timestamp: datetime | None = None,
) -> ImportSessionSummary:
    """
    Return the summary updated with one more import.

    A REPLACE import starts a new summary with itself as master; a MERGE import is
    appended to the merges.
    """
    info = ImportBatchInfo(source=source, count=count, timestamp=timestamp or utc_now())
    if mode is ImportMode.REPLACE:
        return ImportSessionSummary(master=info, merges=[])
    return ImportSessionSummary(master=summary.master, merges=[*summary.merges, info])
