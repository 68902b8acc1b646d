"""Sort-key codec for checkpoint and write records.

Both record kinds share one sort-key space inside a thread's partition:

    checkpoint#{namespace}#{checkpoint_id}
    write#{namespace}#{checkpoint_id}#{task_id}#{write_index}

The separator may not appear inside any field, so a prefix such as
``checkpoint#{namespace}#`` selects exactly the checkpoints of one namespace
and never a write record.
"""

from typing import NamedTuple, Optional

from .errors import MalformedKeyError

SEPARATOR = "#"
CHECKPOINT_KIND = "checkpoint"
WRITE_KIND = "write"


class CheckpointKey(NamedTuple):
    """Decoded checkpoint sort key."""

    namespace: str
    checkpoint_id: str


class WriteKey(NamedTuple):
    """Decoded write sort key."""

    namespace: str
    checkpoint_id: str
    task_id: str
    write_index: int


def _check_field(name: str, value: str) -> str:
    if SEPARATOR in value:
        raise MalformedKeyError(
            f"Field {name!r} may not contain {SEPARATOR!r}: {value!r}"
        )
    return value


def encode_checkpoint_key(namespace: str, checkpoint_id: str) -> str:
    """
    Build the sort key of a checkpoint record.

    Args:
        namespace: Checkpoint namespace ("" for the root graph)
        checkpoint_id: Checkpoint identifier

    Returns:
        Sort key string
    """
    return SEPARATOR.join(
        [
            CHECKPOINT_KIND,
            _check_field("namespace", namespace),
            _check_field("checkpoint_id", checkpoint_id),
        ]
    )


def encode_write_key(
    namespace: str,
    checkpoint_id: str,
    task_id: str,
    write_index: int,
) -> str:
    """
    Build the sort key of a pending write record.

    Args:
        namespace: Checkpoint namespace
        checkpoint_id: Checkpoint the write belongs to
        task_id: Task that produced the write
        write_index: Position of the write within the task

    Returns:
        Sort key string
    """
    return SEPARATOR.join(
        [
            WRITE_KIND,
            _check_field("namespace", namespace),
            _check_field("checkpoint_id", checkpoint_id),
            _check_field("task_id", task_id),
            str(int(write_index)),
        ]
    )


def checkpoint_prefix(namespace: Optional[str] = None) -> str:
    """
    Prefix matching checkpoint records.

    Args:
        namespace: Restrict to one namespace; None matches every namespace

    Returns:
        Sort-key prefix
    """
    if namespace is None:
        return f"{CHECKPOINT_KIND}{SEPARATOR}"
    return f"{CHECKPOINT_KIND}{SEPARATOR}{_check_field('namespace', namespace)}{SEPARATOR}"


def write_prefix(
    namespace: str,
    checkpoint_id: str,
    task_id: Optional[str] = None,
) -> str:
    """
    Prefix matching the writes of one checkpoint, or of one task within it.

    Args:
        namespace: Checkpoint namespace
        checkpoint_id: Checkpoint identifier
        task_id: Optional task identifier

    Returns:
        Sort-key prefix
    """
    parts = [
        WRITE_KIND,
        _check_field("namespace", namespace),
        _check_field("checkpoint_id", checkpoint_id),
    ]
    if task_id is not None:
        parts.append(_check_field("task_id", task_id))
    return SEPARATOR.join(parts) + SEPARATOR


def prefix_upper_bound(prefix: str) -> str:
    """Return the smallest string sorting after every string with this prefix."""
    if not prefix:
        raise ValueError("Empty prefix has no upper bound")
    return prefix[:-1] + chr(ord(prefix[-1]) + 1)


def decode_checkpoint_key(key: str) -> CheckpointKey:
    """
    Parse a checkpoint sort key.

    Args:
        key: Sort key produced by encode_checkpoint_key

    Returns:
        Decoded key

    Raises:
        MalformedKeyError: Wrong discriminator or field count
    """
    parts = key.split(SEPARATOR)
    if parts[0] != CHECKPOINT_KIND:
        raise MalformedKeyError(f"Invalid checkpoint record key: {key}")
    if len(parts) != 3 or not parts[2]:
        raise MalformedKeyError(f"Checkpoint record key has missing fields: {key}")
    return CheckpointKey(namespace=parts[1], checkpoint_id=parts[2])


def decode_write_key(key: str) -> WriteKey:
    """
    Parse a write sort key.

    Args:
        key: Sort key produced by encode_write_key

    Returns:
        Decoded key

    Raises:
        MalformedKeyError: Wrong discriminator, field count or index
    """
    parts = key.split(SEPARATOR)
    if parts[0] != WRITE_KIND:
        raise MalformedKeyError(f"Invalid write record key: {key}")
    if len(parts) != 5 or not parts[2] or not parts[3]:
        raise MalformedKeyError(f"Write record key has missing fields: {key}")
    try:
        write_index = int(parts[4])
    except ValueError:
        raise MalformedKeyError(f"Write record key has a bad index: {key}") from None
    return WriteKey(
        namespace=parts[1],
        checkpoint_id=parts[2],
        task_id=parts[3],
        write_index=write_index,
    )


def is_checkpoint_key(key: str) -> bool:
    """Check the discriminator of a sort key."""
    return key.startswith(f"{CHECKPOINT_KIND}{SEPARATOR}")
