"""Redis-based document store for durable checkpoint storage."""

import json
import logging
from typing import List, Optional
import asyncio
from redis.asyncio import Redis, ConnectionPool
from redis.exceptions import RedisError, ConnectionError as RedisConnectionError

from .base import BaseDocumentStore, Item, PARTITION_KEY, SORT_KEY
from ..checkpoint.errors import StoreUnavailableError
from ..checkpoint.keys import prefix_upper_bound
from ..config.storage_config import StorageConfig

logger = logging.getLogger(__name__)


class RedisDocumentStore(BaseDocumentStore):
    """
    Partition-key/sort-key table emulated on Redis.

    Key layout:
        {table}:item:{thread_id}:{sort_key} -> JSON item
        {table}:idx:{thread_id} -> sorted set of sort keys, all scored 0

    Equal scores make the sorted set ordered lexicographically, so prefix
    and range queries map onto ZRANGEBYLEX / ZREVRANGEBYLEX.
    """

    def __init__(self, config: StorageConfig):
        """
        Initialize Redis document store.

        Args:
            config: Storage configuration
        """
        self.config = config
        self.table = config.table_name
        self._pool: Optional[ConnectionPool] = None
        self._redis: Optional[Redis] = None

    async def _get_redis(self) -> Redis:
        """
        Get Redis client with connection pooling and retry logic.

        Returns:
            Redis async client
        """
        if self._redis is None:
            self._pool = ConnectionPool.from_url(
                self.config.redis_url,
                max_connections=self.config.connection_pool_size,
                decode_responses=True,
            )
            self._redis = Redis(connection_pool=self._pool)

            max_retries = max(1, self.config.connect_retries)
            for attempt in range(max_retries):
                try:
                    await self._redis.ping()
                    logger.info("Redis connection established successfully")
                    break
                except (RedisConnectionError, RedisError) as e:
                    if attempt == max_retries - 1:
                        logger.error(
                            f"Failed to connect to Redis after {max_retries} attempts: {e}"
                        )
                        await self._redis.aclose()
                        await self._pool.aclose()
                        self._redis = None
                        self._pool = None
                        raise StoreUnavailableError(
                            f"Redis unavailable at {self.config.redis_url}"
                        ) from e
                    logger.warning(
                        f"Redis connection attempt {attempt + 1} failed, retrying..."
                    )
                    await asyncio.sleep(1)

        return self._redis

    def _item_key(self, partition_key: str, sort_key: str) -> str:
        return f"{self.table}:item:{partition_key}:{sort_key}"

    def _index_key(self, partition_key: str) -> str:
        return f"{self.table}:idx:{partition_key}"

    async def get_item(self, partition_key: str, sort_key: str) -> Optional[Item]:
        """Point lookup by primary key."""
        redis = await self._get_redis()
        try:
            data = await redis.get(self._item_key(partition_key, sort_key))
        except RedisError as e:
            logger.error(f"Failed to get item {partition_key}/{sort_key}: {e}")
            raise StoreUnavailableError(str(e)) from e
        return json.loads(data) if data else None

    async def put_item(self, item: Item) -> None:
        """Store the item and register its sort key in the partition index."""
        redis = await self._get_redis()
        partition_key = item[PARTITION_KEY]
        sort_key = item[SORT_KEY]

        try:
            async with redis.pipeline(transaction=True) as pipe:
                pipe.set(self._item_key(partition_key, sort_key), json.dumps(item))
                pipe.zadd(self._index_key(partition_key), {sort_key: 0})
                await pipe.execute()
            logger.debug(f"Stored item {partition_key}/{sort_key}")

        except RedisError as e:
            logger.error(f"Failed to store item {partition_key}/{sort_key}: {e}")
            raise StoreUnavailableError(str(e)) from e

    async def delete_item(self, partition_key: str, sort_key: str) -> bool:
        """Delete the item and drop it from the partition index."""
        redis = await self._get_redis()

        try:
            async with redis.pipeline(transaction=True) as pipe:
                pipe.delete(self._item_key(partition_key, sort_key))
                pipe.zrem(self._index_key(partition_key), sort_key)
                deleted, _ = await pipe.execute()
            return deleted > 0

        except RedisError as e:
            logger.error(f"Failed to delete item {partition_key}/{sort_key}: {e}")
            raise StoreUnavailableError(str(e)) from e

    async def query(
        self,
        partition_key: str,
        sort_key_prefix: str = "",
        *,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Item]:
        """Range query within one partition using the lexicographic index."""
        redis = await self._get_redis()
        index_key = self._index_key(partition_key)

        if sort_key_prefix:
            low = f"[{sort_key_prefix}"
            high = f"({prefix_upper_bound(sort_key_prefix)}"
        else:
            low, high = "-", "+"

        paging = {"start": 0, "num": limit} if limit is not None else {}

        try:
            if descending:
                sort_keys = await redis.zrevrangebylex(index_key, high, low, **paging)
            else:
                sort_keys = await redis.zrangebylex(index_key, low, high, **paging)
            if not sort_keys:
                return []

            values = await redis.mget(
                [self._item_key(partition_key, sk) for sk in sort_keys]
            )

        except RedisError as e:
            logger.error(f"Failed to query partition {partition_key}: {e}")
            raise StoreUnavailableError(str(e)) from e

        # Index entries can briefly outlive their item during a delete
        return [json.loads(v) for v in values if v]

    async def scan(self, sort_key_prefix: str = "") -> List[Item]:
        """Walk every partition index and collect matching items."""
        redis = await self._get_redis()
        index_prefix = f"{self.table}:idx:"

        try:
            partition_keys = [
                key[len(index_prefix) :]
                async for key in redis.scan_iter(match=f"{index_prefix}*", count=100)
            ]
        except RedisError as e:
            logger.error(f"Failed to scan partitions: {e}")
            raise StoreUnavailableError(str(e)) from e

        items: List[Item] = []
        for partition_key in partition_keys:
            items.extend(await self.query(partition_key, sort_key_prefix))
        return items

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
        if self._pool:
            await self._pool.aclose()
            self._pool = None
        logger.info("Redis connection closed")
