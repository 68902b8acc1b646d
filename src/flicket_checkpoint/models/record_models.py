"""Stored record models for the checkpoints table."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from ..checkpoint.keys import is_checkpoint_key


class CheckpointRecord(BaseModel):
    """Checkpoint item: one committed snapshot in a thread's partition."""

    thread_id: str = Field(alias="threadId")
    sort_key: str = Field(alias="sortKey")
    checkpoint: str
    checkpoint_type: str = Field(default="json", alias="checkpointType")
    metadata: str
    metadata_type: str = Field(default="json", alias="metadataType")
    checkpoint_timestamp: Optional[str] = Field(
        default=None, alias="checkpointTimestamp"
    )
    parent_checkpoint_id: Optional[str] = Field(
        default=None, alias="parentCheckpointId"
    )

    class Config:
        """Pydantic config."""

        populate_by_name = True

    def to_item(self) -> Dict[str, Any]:
        """Dump to the attribute names used in the document store."""
        return self.model_dump(by_alias=True, exclude_none=True)


class WriteRecord(BaseModel):
    """Pending write item: one value produced by a task before commit."""

    thread_id: str = Field(alias="threadId")
    sort_key: str = Field(alias="sortKey")
    task_id: str = Field(alias="taskId")
    task_path: str = Field(default="", alias="taskPath")
    channel: str
    value: str
    value_type: str = Field(default="json", alias="valueType")
    write_index: int = Field(alias="writeIndex")

    class Config:
        """Pydantic config."""

        populate_by_name = True

    def to_item(self) -> Dict[str, Any]:
        """Dump to the attribute names used in the document store."""
        return self.model_dump(by_alias=True, exclude_none=True)


def is_checkpoint_item(item: Dict[str, Any]) -> bool:
    """
    Structural check for checkpoint items.

    Guards against records that carry a checkpoint key but lack the
    checkpoint or metadata payloads.

    Args:
        item: Raw item from the document store

    Returns:
        True if the item can be parsed as a CheckpointRecord
    """
    return (
        is_checkpoint_key(str(item.get("sortKey", "")))
        and isinstance(item.get("checkpoint"), str)
        and isinstance(item.get("metadata"), str)
    )
