"""
Encrypted per-user backups of the bookmark collection.

Each user has one backup slot. A save serializes the collection to JSON,
encrypts it with AES-GCM under a key derived from the user id, and overwrites
the slot; a load reverses the process.

The key is a pure function of the user id, fixed salt and iteration count, so
anyone who knows a user id and has read access to the store can decrypt that
user's backup. This is a demo-grade scheme and must not be mistaken for real
key management.
"""
import base64
import binascii
import logging
from collections.abc import Sequence
from datetime import datetime
from hashlib import pbkdf2_hmac

from Crypto.Cipher import AES
from Crypto.Random import get_random_bytes
from pydantic import TypeAdapter, ValidationError

from core.store import KeyValueStore
from models.backup import EncryptedSnapshot, SnapshotMeta
from models.bookmark import Bookmark, utc_now
from services.exceptions import BackupCorruptedError

logger = logging.getLogger(__name__)

KEY_LENGTH = 32
IV_LENGTH = 12
TAG_LENGTH = 16
KEY_MATERIAL_PAD = "0"

_bookmarks_adapter = TypeAdapter(list[Bookmark])


def derive_key(user_id: str, salt: str, iterations: int) -> bytes:
    """
    Derive the 256-bit backup key for a user.

    The key material is the user id right-padded with "0" to 32 characters and
    truncated to 32, stretched with PBKDF2-HMAC-SHA256.
    """
    material = user_id.ljust(KEY_LENGTH, KEY_MATERIAL_PAD)[:KEY_LENGTH]
    return pbkdf2_hmac("sha256", material.encode("utf-8"), salt.encode("utf-8"), iterations, KEY_LENGTH)


def _storage_key(user_id: str) -> str:
    return f"backup:{user_id}"


class BackupService:
    """Saves, restores, lists and deletes encrypted backups in a dedicated store."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        salt: str = "salt_simulated_cloud",
        iterations: int = 1000,
    ) -> None:
        self._store = store
        self._salt = salt
        self._iterations = iterations

    async def save(
        self,
        user_id: str,
        bookmarks: Sequence[Bookmark],
        now: datetime | None = None,
    ) -> SnapshotMeta:
        """
        Encrypt the collection and overwrite the user's backup.

        A fresh random IV is generated for every save.
        """
        created_at = now or utc_now()
        plaintext = _bookmarks_adapter.dump_json(list(bookmarks), by_alias=True)
        key = derive_key(user_id, self._salt, self._iterations)
        iv = get_random_bytes(IV_LENGTH)
        cipher = AES.new(key, AES.MODE_GCM, nonce=iv)
        ciphertext, tag = cipher.encrypt_and_digest(plaintext)

        snapshot = EncryptedSnapshot(
            iv=base64.b64encode(iv).decode("ascii"),
            data=base64.b64encode(ciphertext + tag).decode("ascii"),
            created_at=created_at,
            count=len(bookmarks),
        )
        await self._store.set(_storage_key(user_id), snapshot.model_dump_json(by_alias=True))
        logger.info(
            "backup_saved",
            extra={"user_id": user_id, "count": len(bookmarks)},
        )
        return SnapshotMeta(created_at=created_at, bookmark_count=len(bookmarks))

    async def load(self, user_id: str) -> list[Bookmark] | None:
        """
        Decrypt and return the user's backed-up collection.

        Returns:
            The bookmarks, or None if the user has no backup.

        Raises:
            BackupCorruptedError: If a backup exists but cannot be decoded,
                authenticated or parsed (including a backup written for a
                different user id).
        """
        raw = await self._store.get(_storage_key(user_id))
        if raw is None:
            return None
        try:
            snapshot = EncryptedSnapshot.model_validate_json(raw)
            iv = base64.b64decode(snapshot.iv, validate=True)
            blob = base64.b64decode(snapshot.data, validate=True)
            if len(blob) < TAG_LENGTH:
                raise ValueError("ciphertext shorter than the authentication tag")
            ciphertext, tag = blob[:-TAG_LENGTH], blob[-TAG_LENGTH:]
            key = derive_key(user_id, self._salt, self._iterations)
            cipher = AES.new(key, AES.MODE_GCM, nonce=iv)
            plaintext = cipher.decrypt_and_verify(ciphertext, tag)
            return _bookmarks_adapter.validate_json(plaintext)
        except (ValidationError, binascii.Error, ValueError) as e:
            logger.warning(
                "backup_corrupted", extra={"user_id": user_id, "reason": str(e)},
            )
            raise BackupCorruptedError(user_id, str(e)) from e

    async def list_snapshots(self, user_id: str) -> list[SnapshotMeta]:
        """
        Metadata of the user's stored backups (zero or one entry).

        Read from the clear-text envelope, so nothing is decrypted. An unreadable
        envelope is reported as no snapshots.
        """
        raw = await self._store.get(_storage_key(user_id))
        if raw is None:
            return []
        try:
            snapshot = EncryptedSnapshot.model_validate_json(raw)
        except ValidationError:
            logger.warning(
                "backup_corrupted", extra={"user_id": user_id, "reason": "unreadable envelope"},
            )
            return []
        return [SnapshotMeta(created_at=snapshot.created_at, bookmark_count=snapshot.count)]

    async def delete(self, user_id: str) -> bool:
        """Remove the user's backup. Returns True if one existed."""
        return await self._store.delete(_storage_key(user_id))
