"""Encrypted backup records."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

# Single-slot history: the only snapshot id ever reported.
LATEST_SNAPSHOT_ID = "latest"


class EncryptedSnapshot(BaseModel):
    """
    Stored form of a backup.

    `iv` and `data` are base64 strings; `data` is the AES-GCM ciphertext with the
    16-byte tag appended. `count` is kept in clear so snapshots can be listed
    without decrypting them.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    iv: str
    data: str
    created_at: datetime
    count: int


class SnapshotMeta(BaseModel):
    """Listing entry for a stored snapshot."""

    id: str = LATEST_SNAPSHOT_ID
    created_at: datetime
    bookmark_count: int
