# itinerary_workflow/models/redis_store.py
"""
Redis-backed key-value store.

Values are written with SET EX so every update re-applies the TTL.
compare_and_set uses WATCH/MULTI so concurrent writers to one key cannot
silently overwrite each other.
"""

import logging
from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError

from itinerary_workflow.exceptions import StoreUnavailable
from itinerary_workflow.models.store import KeyValueStore

logger = logging.getLogger(__name__)


class RedisKeyValueStore(KeyValueStore):
    """
    Async Redis key-value storage.

    The client is created lazily on first use and is safe for concurrent use
    by many tasks (redis-py pools connections and keeps no local cache).
    """

    def __init__(
        self,
        url: str | None = None,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: str | None = None,
        socket_timeout: float = 5.0,
        client: Any | None = None,
    ) -> None:
        """
        Initialize Redis store.

        Args:
            url: redis:// URL (takes precedence over host/port/db/password)
            host: Redis host
            port: Redis port
            db: Redis database index
            password: Optional Redis password
            socket_timeout: Seconds before a command is abandoned
            client: Pre-built redis.asyncio client (tests, shared pools)
        """
        self._url = url
        self._host = host
        self._port = port
        self._db = db
        self._password = password
        self._socket_timeout = socket_timeout
        self._redis = client
        target = url or f"{host}:{port}/{db}"
        logger.info(f"Created RedisKeyValueStore for {target}")

    def _client(self):
        if self._redis is None:
            if self._url:
                self._redis = redis.from_url(
                    self._url,
                    decode_responses=True,
                    socket_timeout=self._socket_timeout,
                )
            else:
                self._redis = redis.Redis(
                    host=self._host,
                    port=self._port,
                    db=self._db,
                    password=self._password,
                    decode_responses=True,
                    socket_timeout=self._socket_timeout,
                )
        return self._redis

    async def get(self, key: str) -> str | None:
        try:
            return await self._client().get(key)
        except RedisError as e:
            logger.error(f"Redis GET failed for {key}: {e}")
            raise StoreUnavailable(f"Redis GET failed: {e}") from e

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._client().set(key, value, ex=ttl_seconds)
        except RedisError as e:
            logger.error(f"Redis SET failed for {key}: {e}")
            raise StoreUnavailable(f"Redis SET failed: {e}") from e

    async def compare_and_set(
        self, key: str, expected: str, value: str, ttl_seconds: int
    ) -> bool:
        try:
            async with self._client().pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                current = await pipe.get(key)
                if current != expected:
                    await pipe.unwatch()
                    return False
                pipe.multi()
                pipe.set(key, value, ex=ttl_seconds)
                await pipe.execute()
                return True
        except WatchError:
            logger.warning(f"Redis WATCH on {key} detected a concurrent write")
            return False
        except RedisError as e:
            logger.error(f"Redis compare-and-set failed for {key}: {e}")
            raise StoreUnavailable(f"Redis compare-and-set failed: {e}") from e

    async def delete(self, key: str) -> bool:
        try:
            return await self._client().delete(key) > 0
        except RedisError as e:
            logger.error(f"Redis DEL failed for {key}: {e}")
            raise StoreUnavailable(f"Redis DEL failed: {e}") from e

    async def ttl(self, key: str) -> int:
        try:
            return await self._client().ttl(key)
        except RedisError as e:
            raise StoreUnavailable(f"Redis TTL failed: {e}") from e

    async def scan_keys(self, pattern: str) -> list[str]:
        try:
            return [key async for key in self._client().scan_iter(match=pattern)]
        except RedisError as e:
            raise StoreUnavailable(f"Redis SCAN failed: {e}") from e

    async def ping(self) -> bool:
        try:
            return await self._client().ping()
        except RedisError as e:
            raise StoreUnavailable(f"Redis not reachable: {e}") from e

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            logger.info("Closed Redis connection")
