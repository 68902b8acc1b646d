"""Models package for the checkpoint store."""

from .record_models import CheckpointRecord, WriteRecord, is_checkpoint_item

__all__ = [
    "CheckpointRecord",
    "WriteRecord",
    "is_checkpoint_item",
]
