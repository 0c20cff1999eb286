"""
Keyed record storage.

Each logical store (users, sessions, backups) is its own namespaced instance,
built once per process (or per test) and injected into the service that owns
it. Values are JSON blobs serialized by the owning service.
"""
import logging
from typing import Protocol

from core.redis import RedisClient

logger = logging.getLogger(__name__)


class StoreUnavailableError(Exception):
    """Raised when a write cannot be persisted by the backing store."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class KeyValueStore(Protocol):
    """Minimal async key -> string store."""

    async def get(self, key: str) -> str | None:
        """Return the value stored under key, or None."""
        ...

    async def set(self, key: str, value: str) -> None:
        """Store value under key, overwriting any previous value."""
        ...

    async def delete(self, key: str) -> bool:
        """Delete key. Returns True if a value was removed."""
        ...


class InMemoryStore:
    """Process-local store backed by a dict."""

    def __init__(self, namespace: str = "") -> None:
        self.namespace = namespace
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        """Return the value stored under key, or None."""
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        """Store value under key."""
        self._data[key] = value

    async def delete(self, key: str) -> bool:
        """Delete key. Returns True if a value was removed."""
        return self._data.pop(key, None) is not None

    def __len__(self) -> int:
        return len(self._data)


class RedisStore:
    """
    Store backed by Redis, with every key placed under the namespace.

    Reads fall back to "missing" when Redis is unavailable (RedisClient logs the
    failure). Writes raise StoreUnavailableError instead, so a caller never
    believes a record was persisted when it was not.
    """

    def __init__(self, client: RedisClient, namespace: str) -> None:
        self._client = client
        self.namespace = namespace

    async def get(self, key: str) -> str | None:
        """Return the value stored under key, or None."""
        return await self._client.get(self._client.key(self.namespace, key))

    async def set(self, key: str, value: str) -> None:
        """Store value under key."""
        if not await self._client.set(self._client.key(self.namespace, key), value):
            raise StoreUnavailableError(
                f"Could not persist '{key}' in store '{self.namespace}'",
            )

    async def delete(self, key: str) -> bool:
        """Delete key. Returns True if a value was removed."""
        removed = await self._client.delete(self._client.key(self.namespace, key))
        if removed is None:
            raise StoreUnavailableError(
                f"Could not delete '{key}' from store '{self.namespace}'",
            )
        return removed > 0


def build_store(namespace: str, redis_client: RedisClient | None = None) -> KeyValueStore:
    """Build a Redis-backed store when a connected client is given, else an in-memory one."""
    if redis_client is not None and redis_client.is_connected:
        return RedisStore(redis_client, namespace)
    logger.info("Using in-memory store", extra={"namespace": namespace})
    return InMemoryStore(namespace)
