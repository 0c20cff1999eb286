"""Domain records."""
from models.backup import LATEST_SNAPSHOT_ID, EncryptedSnapshot, SnapshotMeta
from models.bookmark import (
    DEFAULT_CATEGORY,
    DEFAULT_TITLE,
    REVIEW_FOLDER,
    Bookmark,
    BookmarkSource,
    Category,
    LinkStatus,
)
from models.import_session import ImportBatchInfo, ImportSessionSummary
from models.user import AuthUser, SessionRecord, StoredUser

__all__ = [
    "DEFAULT_CATEGORY",
    "DEFAULT_TITLE",
    "LATEST_SNAPSHOT_ID",
    "REVIEW_FOLDER",
    "AuthUser",
    "Bookmark",
    "BookmarkSource",
    "Category",
    "EncryptedSnapshot",
    "ImportBatchInfo",
    "ImportSessionSummary",
    "LinkStatus",
    "SessionRecord",
    "SnapshotMeta",
    "StoredUser",
]
