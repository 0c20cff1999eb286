"""Tests for the per-user bookmark collection."""
from collections.abc import Callable
from datetime import datetime, timedelta

import pytest

from models.bookmark import REVIEW_FOLDER, Bookmark, BookmarkSource, Category, LinkStatus
from services.classification_service import assign_category, park_for_review
from services.collection_service import BookmarkCollection, CollectionRegistry
from services.exceptions import BookmarkParseError
from services.import_service import ImportMode
from services.link_checker import LinkCheckResult
from tests.conftest import SAMPLE_EXPORT


class TestImportFile:
    """Tests for BookmarkCollection.import_file."""

    def test__import_file__merge_into_empty(self, now: datetime) -> None:
        """The first import adds every navigable bookmark and records a merge."""
        collection = BookmarkCollection()

        result = collection.import_file(SAMPLE_EXPORT, BookmarkSource.CHROME, ImportMode.MERGE, now=now)

        assert result.parsed == 3
        assert result.added == 3
        assert result.total == 3
        assert [b.title for b in collection.bookmarks] == ['GitHub', 'Python docs', 'Hacker News']
        assert collection.import_summary.master is None
        assert collection.import_summary.merges[0].count == 3

    def test__import_file__merge_skips_existing_urls(self, now: datetime) -> None:
        """Merging the same file twice adds nothing the second time."""
        collection = BookmarkCollection()
        collection.import_file(SAMPLE_EXPORT, BookmarkSource.CHROME, ImportMode.MERGE, now=now)
        ids = [b.id for b in collection.bookmarks]

        result = collection.import_file(SAMPLE_EXPORT, BookmarkSource.EDGE, ImportMode.MERGE, now=now)

        assert result.added == 0
        assert [b.id for b in collection.bookmarks] == ids
        assert len(collection.import_summary.merges) == 2
        assert collection.import_summary.merges[1].count == 0

    def test__import_file__replace(
        self, make_bookmark: Callable[..., Bookmark], now: datetime,
    ) -> None:
        """REPLACE discards the existing collection and starts a new summary."""
        collection = BookmarkCollection([make_bookmark(), make_bookmark()])

        result = collection.import_file(SAMPLE_EXPORT, BookmarkSource.FIREFOX, ImportMode.REPLACE, now=now)

        assert result.added == 3
        assert len(collection) == 3
        assert collection.import_summary.master.source is BookmarkSource.FIREFOX
        assert collection.import_summary.merges == []

    def test__import_file__parse_error_leaves_collection(
        self, make_bookmark: Callable[..., Bookmark],
    ) -> None:
        """A file that cannot be parsed changes nothing."""
        existing = make_bookmark()
        collection = BookmarkCollection([existing])

        with pytest.raises(BookmarkParseError):
            collection.import_file('   ', BookmarkSource.CHROME, ImportMode.REPLACE)

        assert collection.bookmarks == (existing,)
        assert collection.version == 0


class TestMutations:
    """Tests for delete, toggle_favorite, apply_classification and link status."""

    def test__delete(self, make_bookmark: Callable[..., Bookmark]) -> None:
        """Deleting removes by id and reports unknown ids."""
        a, b = make_bookmark(), make_bookmark()
        collection = BookmarkCollection([a, b])

        assert collection.delete(a.id) is True
        assert collection.bookmarks == (b,)
        assert collection.delete(a.id) is False

    def test__toggle_favorite(self, make_bookmark: Callable[..., Bookmark], now: datetime) -> None:
        """Toggling flips the flag, twice restores it, and unknown ids return None."""
        bookmark = make_bookmark()
        collection = BookmarkCollection([bookmark])

        updated = collection.toggle_favorite(bookmark.id, now=now)
        assert updated.is_favorite is True
        assert collection.get(bookmark.id).is_favorite is True

        collection.toggle_favorite(bookmark.id, now=now)
        assert collection.get(bookmark.id).is_favorite is False
        assert collection.toggle_favorite('missing') is None

    def test__version_increments_on_every_swap(self, make_bookmark: Callable[..., Bookmark]) -> None:
        """Each mutation produces a new snapshot."""
        bookmark = make_bookmark()
        collection = BookmarkCollection([bookmark])
        before = collection.bookmarks

        collection.toggle_favorite(bookmark.id)

        assert collection.version == 1
        assert before[0].is_favorite is False

    def test__apply_classification__respects_concurrent_deletes(
        self, make_bookmark: Callable[..., Bookmark], now: datetime,
    ) -> None:
        """Results computed from an old snapshot do not resurrect deleted bookmarks."""
        a, b = make_bookmark(), make_bookmark()
        collection = BookmarkCollection([a, b])
        snapshot = collection.bookmarks
        collection.delete(b.id)
        added = make_bookmark()
        collection.replace([*collection.bookmarks, added])

        applied = collection.apply_classification(
            [assign_category(bm, Category.NEWS, now) for bm in snapshot],
        )

        assert applied == 1
        assert [bm.id for bm in collection.bookmarks] == [a.id, added.id]
        assert collection.get(a.id).category is Category.NEWS
        assert collection.get(added.id).category is None

    def test__apply_classification__keeps_changes_made_during_the_run(
        self, make_bookmark: Callable[..., Bookmark], now: datetime,
    ) -> None:
        """Favorites and link results applied while classifying are not reverted."""
        favorite = make_bookmark(folder_path=(REVIEW_FOLDER, 'Work'))
        checked = make_bookmark()
        collection = BookmarkCollection([favorite, checked])
        snapshot = collection.bookmarks
        later = now + timedelta(minutes=5)
        results = [assign_category(bm, Category.DEVELOPMENT, later) for bm in snapshot]

        collection.toggle_favorite(favorite.id, now=now)
        collection.apply_link_results([
            LinkCheckResult(id=checked.id, url=checked.url, status=LinkStatus.DEAD, http_code=404),
        ])
        collection.apply_classification(results)

        first, second = collection.bookmarks
        assert first.is_favorite is True
        assert first.category is Category.DEVELOPMENT
        assert first.folder_path == ('Work',)
        assert first.last_updated_at == later
        assert second.link_status is LinkStatus.DEAD
        assert second.link_status_code == 404
        assert second.category is Category.DEVELOPMENT

    def test__apply_classification__parks_only_still_unclassified(
        self, make_bookmark: Callable[..., Bookmark],
    ) -> None:
        """Unclassified results park a bookmark only if it is still without a category."""
        pending, categorized = make_bookmark(), make_bookmark()
        collection = BookmarkCollection([pending, categorized])
        results = [park_for_review(bm) for bm in collection.bookmarks]
        collection.replace([
            pending,
            categorized.model_copy(update={'category': Category.NEWS}),
        ])

        collection.apply_classification(results)

        assert collection.get(pending.id).folder_path == (REVIEW_FOLDER,)
        assert collection.get(categorized.id).folder_path == ()
        assert collection.get(categorized.id).category is Category.NEWS

    def test__apply_and_reset_link_status(self, make_bookmark: Callable[..., Bookmark]) -> None:
        """Link results apply by id and can be reset."""
        bookmark = make_bookmark()
        collection = BookmarkCollection([bookmark])

        collection.apply_link_results([
            LinkCheckResult(id=bookmark.id, url=bookmark.url, status=LinkStatus.OK, http_code=200),
        ])
        assert collection.get(bookmark.id).link_status is LinkStatus.OK

        collection.reset_link_status()
        assert collection.get(bookmark.id).link_status is LinkStatus.UNKNOWN

    def test__restore(self, make_bookmark: Callable[..., Bookmark]) -> None:
        """Restoring replaces the collection wholesale."""
        collection = BookmarkCollection([make_bookmark()])
        restored = [make_bookmark(), make_bookmark()]

        collection.restore(restored)

        assert list(collection.bookmarks) == restored


class TestCollectionRegistry:
    """Tests for CollectionRegistry."""

    def test__get__creates_once_per_user(self) -> None:
        """The same user always gets the same collection; users are isolated."""
        registry = CollectionRegistry()

        alice = registry.get('alice')

        assert registry.get('alice') is alice
        assert registry.get('bob') is not alice
        assert 'alice' in registry

    def test__drop(self) -> None:
        """Dropping forgets the collection."""
        registry = CollectionRegistry()
        registry.get('alice')

        registry.drop('alice')
        registry.drop('alice')

        assert 'alice' not in registry
