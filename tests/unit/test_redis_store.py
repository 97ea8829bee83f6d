# tests/unit/test_redis_store.py
"""
Unit tests for RedisKeyValueStore.

The redis.asyncio client is replaced with mocks; no Redis server is needed.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import WatchError

from itinerary_workflow.exceptions import StoreUnavailable
from itinerary_workflow.models.redis_store import RedisKeyValueStore


def _make_pipeline(current: str | None) -> MagicMock:
    pipe = MagicMock()
    pipe.__aenter__ = AsyncMock(return_value=pipe)
    pipe.__aexit__ = AsyncMock(return_value=False)
    pipe.watch = AsyncMock()
    pipe.unwatch = AsyncMock()
    pipe.get = AsyncMock(return_value=current)
    pipe.execute = AsyncMock(return_value=[True])
    return pipe


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    client.ttl = AsyncMock(return_value=42)
    client.ping = AsyncMock(return_value=True)
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def store(client: MagicMock) -> RedisKeyValueStore:
    return RedisKeyValueStore(client=client)


@pytest.mark.asyncio
async def test_set_uses_expiry(store: RedisKeyValueStore, client: MagicMock):
    """Test writes go out as SET with EX."""
    await store.set("workflow:session:abc", "{}", ttl_seconds=3600)

    client.set.assert_awaited_once_with("workflow:session:abc", "{}", ex=3600)


@pytest.mark.asyncio
async def test_get_passes_through(store: RedisKeyValueStore, client: MagicMock):
    """Test GET results are returned unchanged."""
    client.get.return_value = "value"

    assert await store.get("k") == "value"


@pytest.mark.asyncio
async def test_delete_reports_removal(store: RedisKeyValueStore, client: MagicMock):
    """Test DEL counts map to True/False."""
    assert await store.delete("k") is True

    client.delete.return_value = 0
    assert await store.delete("k") is False


@pytest.mark.asyncio
async def test_ttl_passes_sentinels_through(store: RedisKeyValueStore, client: MagicMock):
    """Test Redis TTL sentinels pass through unchanged."""
    client.ttl.return_value = -2
    assert await store.ttl("gone") == -2


@pytest.mark.asyncio
async def test_scan_keys(store: RedisKeyValueStore, client: MagicMock):
    """Test SCAN results are collected into a list."""
    async def _scan_iter(match):
        for key in ("workflow:session:a", "workflow:session:b"):
            yield key

    client.scan_iter = _scan_iter

    assert await store.scan_keys("workflow:session:*") == [
        "workflow:session:a",
        "workflow:session:b",
    ]


class TestCompareAndSet:
    @pytest.mark.asyncio
    async def test_writes_inside_transaction(self, store: RedisKeyValueStore, client: MagicMock):
        """Test compare-and-set WATCHes the key and writes inside MULTI."""
        pipe = _make_pipeline(current="old")
        client.pipeline.return_value = pipe

        assert await store.compare_and_set("k", "old", "new", ttl_seconds=60) is True

        client.pipeline.assert_called_once_with(transaction=True)
        pipe.watch.assert_awaited_once_with("k")
        pipe.multi.assert_called_once()
        pipe.set.assert_called_once_with("k", "new", ex=60)
        pipe.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stale_value_skips_write(self, store: RedisKeyValueStore, client: MagicMock):
        """Test a changed value unwatches and skips the transaction."""
        pipe = _make_pipeline(current="someone-else")
        client.pipeline.return_value = pipe

        assert await store.compare_and_set("k", "old", "new", ttl_seconds=60) is False

        pipe.unwatch.assert_awaited_once()
        pipe.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_watch_error_returns_false(self, store: RedisKeyValueStore, client: MagicMock):
        """Test a WATCH conflict at EXEC reports a lost race."""
        pipe = _make_pipeline(current="old")
        pipe.execute.side_effect = WatchError("changed")
        client.pipeline.return_value = pipe

        assert await store.compare_and_set("k", "old", "new", ttl_seconds=60) is False


class TestStoreUnavailable:
    @pytest.mark.asyncio
    async def test_get_failure(self, store: RedisKeyValueStore, client: MagicMock):
        """Test a connection error on GET becomes StoreUnavailable."""
        client.get.side_effect = RedisConnectionError("refused")

        with pytest.raises(StoreUnavailable, match="refused"):
            await store.get("k")

    @pytest.mark.asyncio
    async def test_set_failure(self, store: RedisKeyValueStore, client: MagicMock):
        """Test a connection error on SET becomes StoreUnavailable."""
        client.set.side_effect = RedisConnectionError("refused")

        with pytest.raises(StoreUnavailable):
            await store.set("k", "v", ttl_seconds=60)

    @pytest.mark.asyncio
    async def test_compare_and_set_failure(self, store: RedisKeyValueStore, client: MagicMock):
        """Test a connection error during compare-and-set becomes StoreUnavailable."""
        pipe = _make_pipeline(current="old")
        pipe.watch.side_effect = RedisConnectionError("refused")
        client.pipeline.return_value = pipe

        with pytest.raises(StoreUnavailable):
            await store.compare_and_set("k", "old", "new", ttl_seconds=60)

    @pytest.mark.asyncio
    async def test_ping_failure(self, store: RedisKeyValueStore, client: MagicMock):
        """Test an unreachable server fails ping with StoreUnavailable."""
        client.ping.side_effect = RedisConnectionError("refused")

        with pytest.raises(StoreUnavailable, match="not reachable"):
            await store.ping()


@pytest.mark.asyncio
async def test_close_releases_client(store: RedisKeyValueStore, client: MagicMock):
    """Test close releases the client once."""
    await store.close()
    await store.close()

    client.aclose.assert_awaited_once()
