"""Unit tests for the Redis document store."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError, RedisError

from flicket_checkpoint.checkpoint.errors import StoreUnavailableError
from flicket_checkpoint.config.storage_config import StorageConfig
from flicket_checkpoint.storage.redis_store import RedisDocumentStore


@pytest.fixture
def config():
    """Create Redis storage config."""
    return StorageConfig(
        backend="redis",
        redis_url="redis://localhost:6379/0",
        table_prefix="test",
        connection_pool_size=5,
        connect_retries=1,
    )


@pytest.fixture
def mock_redis():
    """Create mock Redis client with a transactional pipeline."""
    redis = AsyncMock()
    redis.ping = AsyncMock()

    pipe = MagicMock()
    pipe.__aenter__ = AsyncMock(return_value=pipe)
    pipe.__aexit__ = AsyncMock(return_value=False)
    pipe.execute = AsyncMock(return_value=[1, 1])
    redis.pipeline = MagicMock(return_value=pipe)
    redis.pipe = pipe
    return redis


async def _aiter(values):
    for value in values:
        yield value


@pytest.mark.asyncio
class TestRedisDocumentStore:
    """Test suite for RedisDocumentStore."""

    async def test_init(self, config):
        """Test initialization."""
        store = RedisDocumentStore(config=config)
        assert store.table == "testCheckpoints"
        assert store._redis is None

    @patch("flicket_checkpoint.storage.redis_store.Redis")
    @patch("flicket_checkpoint.storage.redis_store.ConnectionPool")
    async def test_put_item(self, mock_pool_class, mock_redis_class, config, mock_redis):
        """Test item and index are written in one transaction."""
        mock_redis_class.return_value = mock_redis
        store = RedisDocumentStore(config=config)

        item = {"threadId": "t1", "sortKey": "checkpoint##0001", "checkpoint": "x"}
        await store.put_item(item)

        mock_redis.pipeline.assert_called_once_with(transaction=True)
        pipe = mock_redis.pipe
        pipe.set.assert_called_once_with(
            "testCheckpoints:item:t1:checkpoint##0001", json.dumps(item)
        )
        pipe.zadd.assert_called_once_with(
            "testCheckpoints:idx:t1", {"checkpoint##0001": 0}
        )
        pipe.execute.assert_awaited_once()

    @patch("flicket_checkpoint.storage.redis_store.Redis")
    @patch("flicket_checkpoint.storage.redis_store.ConnectionPool")
    async def test_get_item(self, mock_pool_class, mock_redis_class, config, mock_redis):
        """Test point lookup decodes JSON."""
        item = {"threadId": "t1", "sortKey": "checkpoint##0001"}
        mock_redis.get = AsyncMock(side_effect=[json.dumps(item), None])
        mock_redis_class.return_value = mock_redis
        store = RedisDocumentStore(config=config)

        assert await store.get_item("t1", "checkpoint##0001") == item
        assert await store.get_item("t1", "checkpoint##0002") is None
        mock_redis.get.assert_any_await("testCheckpoints:item:t1:checkpoint##0001")

    @patch("flicket_checkpoint.storage.redis_store.Redis")
    @patch("flicket_checkpoint.storage.redis_store.ConnectionPool")
    async def test_query_descending_with_limit(
        self, mock_pool_class, mock_redis_class, config, mock_redis
    ):
        """Test prefix query maps onto a reverse lexicographic range."""
        item = {"threadId": "t1", "sortKey": "checkpoint##0002"}
        mock_redis.zrevrangebylex = AsyncMock(
            return_value=["checkpoint##0002", "checkpoint##0001"]
        )
        mock_redis.mget = AsyncMock(return_value=[json.dumps(item), None])
        mock_redis_class.return_value = mock_redis
        store = RedisDocumentStore(config=config)

        results = await store.query("t1", "checkpoint##", descending=True, limit=2)

        assert results == [item]
        mock_redis.zrevrangebylex.assert_awaited_once_with(
            "testCheckpoints:idx:t1", "(checkpoint#$", "[checkpoint##", start=0, num=2
        )
        mock_redis.mget.assert_awaited_once_with(
            [
                "testCheckpoints:item:t1:checkpoint##0002",
                "testCheckpoints:item:t1:checkpoint##0001",
            ]
        )

    @patch("flicket_checkpoint.storage.redis_store.Redis")
    @patch("flicket_checkpoint.storage.redis_store.ConnectionPool")
    async def test_query_whole_partition(
        self, mock_pool_class, mock_redis_class, config, mock_redis
    ):
        """Test empty prefix covers the whole index."""
        mock_redis.zrangebylex = AsyncMock(return_value=[])
        mock_redis_class.return_value = mock_redis
        store = RedisDocumentStore(config=config)

        assert await store.query("t1") == []
        mock_redis.zrangebylex.assert_awaited_once_with("testCheckpoints:idx:t1", "-", "+")
        mock_redis.mget.assert_not_called()

    @patch("flicket_checkpoint.storage.redis_store.Redis")
    @patch("flicket_checkpoint.storage.redis_store.ConnectionPool")
    async def test_delete_item(self, mock_pool_class, mock_redis_class, config, mock_redis):
        """Test delete removes item and index entry."""
        mock_redis_class.return_value = mock_redis
        mock_redis.pipe.execute = AsyncMock(return_value=[0, 0])
        store = RedisDocumentStore(config=config)

        assert await store.delete_item("t1", "write##1#t#0") is False
        mock_redis.pipe.delete.assert_called_once_with("testCheckpoints:item:t1:write##1#t#0")
        mock_redis.pipe.zrem.assert_called_once_with("testCheckpoints:idx:t1", "write##1#t#0")

    @patch("flicket_checkpoint.storage.redis_store.Redis")
    @patch("flicket_checkpoint.storage.redis_store.ConnectionPool")
    async def test_scan(self, mock_pool_class, mock_redis_class, config, mock_redis):
        """Test scan walks every partition index."""
        mock_redis.scan_iter = MagicMock(
            return_value=_aiter(["testCheckpoints:idx:t1", "testCheckpoints:idx:t2"])
        )
        mock_redis.zrangebylex = AsyncMock(side_effect=[["checkpoint##1"], []])
        mock_redis.mget = AsyncMock(
            return_value=[json.dumps({"threadId": "t1", "sortKey": "checkpoint##1"})]
        )
        mock_redis_class.return_value = mock_redis
        store = RedisDocumentStore(config=config)

        results = await store.scan("checkpoint#")

        assert results == [{"threadId": "t1", "sortKey": "checkpoint##1"}]
        mock_redis.scan_iter.assert_called_once_with(
            match="testCheckpoints:idx:*", count=100
        )
        assert mock_redis.zrangebylex.await_count == 2

    @patch("flicket_checkpoint.storage.redis_store.Redis")
    @patch("flicket_checkpoint.storage.redis_store.ConnectionPool")
    async def test_backend_error_raises_store_unavailable(
        self, mock_pool_class, mock_redis_class, config, mock_redis
    ):
        """Test Redis errors surface as StoreUnavailableError."""
        mock_redis.get = AsyncMock(side_effect=RedisError("timeout"))
        mock_redis_class.return_value = mock_redis
        store = RedisDocumentStore(config=config)

        with pytest.raises(StoreUnavailableError):
            await store.get_item("t1", "checkpoint##1")

    @patch("flicket_checkpoint.storage.redis_store.Redis")
    @patch("flicket_checkpoint.storage.redis_store.ConnectionPool")
    async def test_connection_failure(
        self, mock_pool_class, mock_redis_class, config, mock_redis
    ):
        """Test failed ping raises StoreUnavailableError and releases the pool."""
        mock_pool = MagicMock()
        mock_pool.aclose = AsyncMock()
        mock_pool_class.from_url.return_value = mock_pool
        mock_redis.ping = AsyncMock(side_effect=RedisConnectionError("refused"))
        mock_redis_class.return_value = mock_redis
        store = RedisDocumentStore(config=config)

        with pytest.raises(StoreUnavailableError):
            await store.query("t1")
        assert store._redis is None
        assert store._pool is None
        mock_redis.aclose.assert_awaited_once()
        mock_pool.aclose.assert_awaited_once()

        with pytest.raises(StoreUnavailableError):
            await store.query("t1")
        assert mock_pool.aclose.await_count == 2

    @patch("flicket_checkpoint.storage.redis_store.Redis")
    @patch("flicket_checkpoint.storage.redis_store.ConnectionPool")
    async def test_close(self, mock_pool_class, mock_redis_class, config, mock_redis):
        """Test close releases client and pool."""
        mock_pool = MagicMock()
        mock_pool.aclose = AsyncMock()
        mock_pool_class.from_url.return_value = mock_pool
        mock_redis.get = AsyncMock(return_value=None)
        mock_redis_class.return_value = mock_redis
        store = RedisDocumentStore(config=config)
        await store.get_item("t1", "k")

        await store.close()

        mock_redis.aclose.assert_awaited_once()
        mock_pool.aclose.assert_awaited_once()
        assert store._redis is None
        assert store._pool is None
