"""Document store backends for the checkpoints table."""

from .base import BaseDocumentStore
from .memory import InMemoryDocumentStore
from .redis_store import RedisDocumentStore

__all__ = [
    "BaseDocumentStore",
    "InMemoryDocumentStore",
    "RedisDocumentStore",
]
