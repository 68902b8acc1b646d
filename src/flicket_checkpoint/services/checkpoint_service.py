"""Checkpointer provider for LangGraph state persistence."""

import logging
from typing import Callable, Dict, Optional

from ..checkpoint.saver import DocumentStoreCheckpointer
from ..config.storage_config import StorageConfig
from ..storage.base import BaseDocumentStore
from ..storage.memory import InMemoryDocumentStore
from ..storage.redis_store import RedisDocumentStore

logger = logging.getLogger(__name__)


DOCUMENT_STORE_PROVIDERS: Dict[str, Callable[[StorageConfig], BaseDocumentStore]] = {
    "memory": lambda config: InMemoryDocumentStore(),
    "redis": RedisDocumentStore,
}


def create_document_store(config: StorageConfig) -> BaseDocumentStore:
    """
    Build the document store named by the configured backend.

    Args:
        config: Storage configuration

    Returns:
        Document store instance

    Raises:
        ValueError: Unknown backend name
    """
    try:
        factory = DOCUMENT_STORE_PROVIDERS[config.backend]
    except KeyError:
        raise ValueError(
            f"Unknown checkpoint backend {config.backend!r}; "
            f"expected one of {sorted(DOCUMENT_STORE_PROVIDERS)}"
        ) from None
    return factory(config)


class CheckpointerProvider:
    """
    Owns the process-wide checkpointer.

    Create one at startup and hand ``instance`` to every graph that needs
    persistence.
    """

    def __init__(
        self,
        config: StorageConfig,
        store: Optional[BaseDocumentStore] = None,
    ):
        """
        Initialize checkpointer provider.

        Args:
            config: Storage configuration
            store: Pre-built document store (overrides the configured backend)
        """
        self.config = config
        self._store = store
        self._checkpointer: Optional[DocumentStoreCheckpointer] = None

    def get_checkpointer(self) -> DocumentStoreCheckpointer:
        """
        Get the checkpointer, creating it on first use.

        CRITICAL: This must be passed to compile(), not invoke()

        Returns:
            Document store checkpointer
        """
        if self._checkpointer is None:
            if self._store is None:
                self._store = create_document_store(self.config)
            self._checkpointer = DocumentStoreCheckpointer(self._store)
            logger.info(
                f"Created {self.config.backend} checkpointer "
                f"(table: {self.config.table_name})"
            )

        return self._checkpointer

    @property
    def instance(self) -> DocumentStoreCheckpointer:
        """Shared checkpointer instance."""
        return self.get_checkpointer()

    async def close(self) -> None:
        """Release the document store."""
        if self._store is not None:
            await self._store.close()
        self._store = None
        self._checkpointer = None
