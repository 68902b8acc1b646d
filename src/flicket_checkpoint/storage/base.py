"""Abstract base class for partition-key/sort-key document stores."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

Item = Dict[str, Any]

PARTITION_KEY = "threadId"
SORT_KEY = "sortKey"


class BaseDocumentStore(ABC):
    """
    Abstract document store with one hash key and one range key per item.

    Items are flat dicts carrying ``threadId`` (partition key) and
    ``sortKey`` (range key). Implementations raise StoreUnavailableError
    when the backend cannot be reached.
    """

    @abstractmethod
    async def get_item(self, partition_key: str, sort_key: str) -> Optional[Item]:
        """
        Point lookup by primary key.

        Args:
            partition_key: Partition key value
            sort_key: Sort key value

        Returns:
            Item if present, None otherwise
        """
        pass

    @abstractmethod
    async def put_item(self, item: Item) -> None:
        """
        Create or replace an item.

        Args:
            item: Item including both key attributes
        """
        pass

    @abstractmethod
    async def delete_item(self, partition_key: str, sort_key: str) -> bool:
        """
        Delete an item by primary key.

        Args:
            partition_key: Partition key value
            sort_key: Sort key value

        Returns:
            True if deleted, False if not found
        """
        pass

    @abstractmethod
    async def query(
        self,
        partition_key: str,
        sort_key_prefix: str = "",
        *,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Item]:
        """
        Range query within one partition.

        Args:
            partition_key: Partition key value
            sort_key_prefix: Only items whose sort key starts with this
            descending: Order by sort key descending
            limit: Maximum number of rows

        Returns:
            Items ordered by sort key
        """
        pass

    @abstractmethod
    async def scan(self, sort_key_prefix: str = "") -> List[Item]:
        """
        Unordered scan over every partition.

        Args:
            sort_key_prefix: Only items whose sort key starts with this

        Returns:
            Matching items in no particular order
        """
        pass

    async def close(self) -> None:
        """Release backend resources."""
        pass
