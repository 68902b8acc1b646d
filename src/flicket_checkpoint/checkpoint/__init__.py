"""Checkpoint persistence: key codec, errors and the LangGraph saver."""

from .errors import (
    CheckpointStoreError,
    MalformedKeyError,
    MissingCheckpointIdError,
    MissingThreadIdError,
    SerializationError,
    StoreUnavailableError,
)
from .saver import DocumentStoreCheckpointer

__all__ = [
    "CheckpointStoreError",
    "MalformedKeyError",
    "MissingCheckpointIdError",
    "MissingThreadIdError",
    "SerializationError",
    "StoreUnavailableError",
    "DocumentStoreCheckpointer",
]
