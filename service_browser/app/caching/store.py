"""
Key/value stores backing browsing sessions.

A store only maps string keys to byte values: overwrite is idempotent,
absence is a miss, and any expiry is the store's own business.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, Mapping, Optional

import redis.asyncio as redis

from shared.errors import ExternalServiceError
from shared.logging import get_logger


class CacheStore(ABC):
    """Session-scoped byte store used by the paging core."""

    @abstractmethod
    async def get(self, key: str) -> Optional[bytes]:
        """Return the stored bytes or ``None`` on a miss."""

    @abstractmethod
    async def set(self, key: str, value: bytes) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Delete ``key``; deleting a missing key is a no-op."""

    async def apply(
        self, writes: Mapping[str, bytes], removals: Iterable[str], touch: Iterable[str] = ()
    ) -> None:
        """Apply a batch of writes and removals.

        ``touch`` names untouched keys whose expiry should be refreshed; stores
        without expiry ignore it. Subclasses override this when the backend can
        make the batch atomic.
        """
        for key in removals:
            await self.remove(key)
        for key, value in writes.items():
            await self.set(key, value)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class InMemoryCacheStore(CacheStore):
    """Process-local store, suitable for a single worker and for tests."""

    def __init__(self):
        self._data: Dict[str, bytes] = {}

    async def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    async def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def apply(
        self, writes: Mapping[str, bytes], removals: Iterable[str], touch: Iterable[str] = ()
    ) -> None:
        # No await between mutations, so the batch is atomic on the event loop
        for key in removals:
            self._data.pop(key, None)
        for key, value in writes.items():
            self._data[key] = bytes(value)

    def snapshot(self) -> Dict[str, bytes]:
        """Copy of the raw contents, for diagnostics."""
        return dict(self._data)


class RedisCacheStore(CacheStore):
    """Redis-backed store with an optional per-key TTL."""

    def __init__(self, redis_url: str, ttl_seconds: Optional[int] = None):
        self.redis_url = redis_url
        self.ttl_seconds = ttl_seconds
        self.logger = get_logger("browser.cache.redis")
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                decode_responses=False,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30
            )
        return self._redis

    async def get(self, key: str) -> Optional[bytes]:
        try:
            client = await self._get_redis()
            return await client.get(key)
        except redis.RedisError as e:
            self.logger.error("Session cache read failed", key=key, error=str(e))
            raise ExternalServiceError("session_cache", str(e), details={"operation": "get"}) from e

    async def set(self, key: str, value: bytes) -> None:
        try:
            client = await self._get_redis()
            await client.set(key, value, ex=self.ttl_seconds)
        except redis.RedisError as e:
            self.logger.error("Session cache write failed", key=key, error=str(e))
            raise ExternalServiceError("session_cache", str(e), details={"operation": "set"}) from e

    async def remove(self, key: str) -> None:
        try:
            client = await self._get_redis()
            await client.delete(key)
        except redis.RedisError as e:
            self.logger.error("Session cache delete failed", key=key, error=str(e))
            raise ExternalServiceError("session_cache", str(e), details={"operation": "remove"}) from e

    async def apply(
        self, writes: Mapping[str, bytes], removals: Iterable[str], touch: Iterable[str] = ()
    ) -> None:
        """Apply the batch inside a MULTI/EXEC transaction.

        Keys in ``touch`` get their TTL reset in the same transaction, so the
        whole session expires together.
        """
        removals = list(removals)
        touch = [] if self.ttl_seconds is None else [
            key for key in touch if key not in writes and key not in removals
        ]
        if not writes and not removals and not touch:
            return

        try:
            client = await self._get_redis()
            async with client.pipeline(transaction=True) as pipe:
                if removals:
                    pipe.delete(*removals)
                for key, value in writes.items():
                    pipe.set(key, value, ex=self.ttl_seconds)
                for key in touch:
                    pipe.expire(key, self.ttl_seconds)
                await pipe.execute()
        except redis.RedisError as e:
            self.logger.error(
                "Session cache commit failed",
                writes=len(writes),
                removals=len(removals),
                error=str(e)
            )
            raise ExternalServiceError("session_cache", str(e), details={"operation": "apply"}) from e

        self.logger.debug("Session cache committed", writes=len(writes), removals=len(removals))

    async def ping(self) -> bool:
        try:
            client = await self._get_redis()
            await client.ping()
            return True
        except redis.RedisError as e:
            self.logger.warning("Session cache ping failed", error=str(e))
            return False

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            self.logger.info("Redis session cache closed")
