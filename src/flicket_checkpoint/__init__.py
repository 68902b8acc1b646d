"""Durable LangGraph checkpoint store on a partition-key/sort-key document store."""

from .checkpoint import (
    CheckpointStoreError,
    DocumentStoreCheckpointer,
    MalformedKeyError,
    MissingCheckpointIdError,
    MissingThreadIdError,
    SerializationError,
    StoreUnavailableError,
)
from .config import StorageConfig
from .services import CheckpointerProvider

__version__ = "0.1.0"

__all__ = [
    "CheckpointStoreError",
    "DocumentStoreCheckpointer",
    "MalformedKeyError",
    "MissingCheckpointIdError",
    "MissingThreadIdError",
    "SerializationError",
    "StoreUnavailableError",
    "StorageConfig",
    "CheckpointerProvider",
]
