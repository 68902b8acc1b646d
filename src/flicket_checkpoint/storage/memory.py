"""In-process document store for development and tests."""

import asyncio
import copy
import logging
from typing import Dict, List, Optional

from .base import BaseDocumentStore, Item, PARTITION_KEY, SORT_KEY

logger = logging.getLogger(__name__)


class InMemoryDocumentStore(BaseDocumentStore):
    """Document store backed by a dict of partitions; nothing survives the process."""

    def __init__(self):
        """Initialize empty partitions."""
        self._partitions: Dict[str, Dict[str, Item]] = {}
        self._lock = asyncio.Lock()

    async def get_item(self, partition_key: str, sort_key: str) -> Optional[Item]:
        """Point lookup by primary key."""
        async with self._lock:
            item = self._partitions.get(partition_key, {}).get(sort_key)
            return copy.deepcopy(item) if item is not None else None

    async def put_item(self, item: Item) -> None:
        """Create or replace an item."""
        partition_key = item[PARTITION_KEY]
        sort_key = item[SORT_KEY]
        async with self._lock:
            self._partitions.setdefault(partition_key, {})[sort_key] = copy.deepcopy(
                item
            )
        logger.debug(f"Stored item {partition_key}/{sort_key}")

    async def delete_item(self, partition_key: str, sort_key: str) -> bool:
        """Delete an item by primary key."""
        async with self._lock:
            partition = self._partitions.get(partition_key)
            if partition is None or sort_key not in partition:
                return False
            del partition[sort_key]
            if not partition:
                del self._partitions[partition_key]
            return True

    async def query(
        self,
        partition_key: str,
        sort_key_prefix: str = "",
        *,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Item]:
        """Range query within one partition."""
        async with self._lock:
            partition = self._partitions.get(partition_key, {})
            keys = sorted(
                (k for k in partition if k.startswith(sort_key_prefix)),
                reverse=descending,
            )
            if limit is not None:
                keys = keys[:limit]
            return [copy.deepcopy(partition[k]) for k in keys]

    async def scan(self, sort_key_prefix: str = "") -> List[Item]:
        """Unordered scan over every partition."""
        async with self._lock:
            return [
                copy.deepcopy(item)
                for partition in self._partitions.values()
                for key, item in partition.items()
                if key.startswith(sort_key_prefix)
            ]

    def count(self) -> int:
        """Number of stored items across all partitions."""
        return sum(len(p) for p in self._partitions.values())
