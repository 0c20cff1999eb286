"""Shared Redis connection behind the key-value stores, with graceful fallback."""
import logging

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

KEY_PREFIX = "bookmarkhub"


class RedisClient:
    """
    One pooled connection shared by every namespaced store.

    Values are decoded to str on read, since every store keeps JSON text.
    Failed operations are logged and reported through the return value (None
    or False) so a store can decide whether a failure is fatal.
    """

    def __init__(
        self,
        url: str,
        enabled: bool = True,
        pool_size: int = 20,
        key_prefix: str = KEY_PREFIX,
    ) -> None:
        self._url = url
        self._enabled = enabled
        self._pool_size = pool_size
        self._key_prefix = key_prefix
        self._pool: ConnectionPool | None = None
        self._client: Redis | None = None

    async def connect(self) -> None:
        """Open the pool and verify connectivity. Leaves the client disconnected on failure."""
        if not self._enabled:
            logger.info("Redis disabled by configuration, stores stay in memory")
            return
        try:
            self._pool = ConnectionPool.from_url(
                self._url, max_connections=self._pool_size, decode_responses=True,
            )
            self._client = Redis(connection_pool=self._pool)
            await self._client.ping()
            logger.info("redis_connected", extra={"key_prefix": self._key_prefix})
        except RedisError as e:
            logger.warning("redis_unavailable", extra={"error": str(e)})
            self._client = None
            self._pool = None

    async def close(self) -> None:
        """Close connection pool."""
        if self._client:
            await self._client.aclose()
            self._client = None
            self._pool = None
            logger.info("Redis connection closed")

    @property
    def is_connected(self) -> bool:
        """True once connect() succeeded."""
        return self._client is not None

    def key(self, namespace: str, key: str) -> str:
        """Full Redis key for a store namespace."""
        return f"{self._key_prefix}:{namespace}:{key}"

    async def ping(self) -> bool:
        """Check Redis connectivity."""
        if not self._client:
            return False
        try:
            return await self._client.ping()
        except RedisError:
            return False

    async def get(self, key: str) -> str | None:
        """Stored text, or None if missing or Redis is unavailable."""
        if not self._client:
            return None
        try:
            return await self._client.get(key)
        except RedisError as e:
            logger.warning("redis_read_failed", extra={"key": key, "error": str(e)})
            return None

    async def set(self, key: str, value: str) -> bool:
        """Store text without expiry. Returns False if Redis is unavailable."""
        if not self._client:
            return False
        try:
            await self._client.set(key, value)
            return True
        except RedisError as e:
            logger.warning("redis_write_failed", extra={"key": key, "error": str(e)})
            return False

    async def delete(self, key: str) -> int | None:
        """Number of keys removed (0 or 1), or None if Redis is unavailable."""
        if not self._client:
            return None
        try:
            return await self._client.delete(key)
        except RedisError as e:
            logger.warning("redis_write_failed", extra={"key": key, "error": str(e)})
            return None
