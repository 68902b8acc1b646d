"""LangGraph checkpoint saver backed by a partition-key/sort-key document store."""

import asyncio
import base64
import logging
import random
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

from langchain_core.runnables import RunnableConfig
from langgraph.checkpoint.base import (
    WRITES_IDX_MAP,
    BaseCheckpointSaver,
    ChannelVersions,
    Checkpoint,
    CheckpointMetadata,
    CheckpointTuple,
    PendingWrite,
    get_checkpoint_id,
)
from langgraph.checkpoint.serde.base import SerializerProtocol
from langgraph.checkpoint.serde.types import TASKS
from pydantic import ValidationError

from .errors import (
    CheckpointStoreError,
    MissingCheckpointIdError,
    MissingThreadIdError,
    SerializationError,
)
from .keys import (
    checkpoint_prefix,
    decode_checkpoint_key,
    encode_checkpoint_key,
    encode_write_key,
    write_prefix,
)
from ..models.record_models import CheckpointRecord, WriteRecord, is_checkpoint_item
from ..storage.base import BaseDocumentStore, Item

logger = logging.getLogger(__name__)

# Checkpoints older than this still carried pending sends on the parent
PENDING_SENDS_MIGRATION_VERSION = 4


def _thread_ids(value: Any) -> List[str]:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v is not None]
    return [str(value)]


class DocumentStoreCheckpointer(BaseCheckpointSaver):
    """
    Durable, branchable checkpoint log for LangGraph graphs.

    Every thread is one partition of the document store. Checkpoints and
    pending writes share the partition and are told apart by their sort key
    (see keys.py). Only the channel values that changed in a step are stored
    with each checkpoint.

    Read operations downgrade store failures to "not found" and log them;
    write operations raise.

    CRITICAL: Pass this to compile(), not invoke()
    """

    def __init__(
        self,
        store: BaseDocumentStore,
        *,
        serde: Optional[SerializerProtocol] = None,
    ):
        """
        Initialize the checkpointer.

        Args:
            store: Document store holding the checkpoints table
            serde: Serializer for checkpoint payloads (JsonPlusSerializer by default)
        """
        super().__init__(serde=serde)
        self.store = store

    # ------------------------------------------------------------------
    # Serialization helpers
    # ------------------------------------------------------------------

    def _dumps(self, value: Any) -> Tuple[str, str]:
        try:
            type_, data = self.serde.dumps_typed(value)
        except Exception as e:
            raise SerializationError(
                f"Failed to serialize {type(value).__name__}: {e}"
            ) from e
        return type_, base64.b64encode(data).decode("ascii")

    def _loads(self, type_: str, data: str) -> Any:
        try:
            return self.serde.loads_typed((type_, base64.b64decode(data)))
        except Exception as e:
            raise SerializationError(f"Failed to deserialize {type_} payload: {e}") from e

    @staticmethod
    def _parse_checkpoint_record(item: Item) -> CheckpointRecord:
        try:
            return CheckpointRecord.model_validate(item)
        except ValidationError as e:
            raise SerializationError(f"Invalid checkpoint record: {e}") from e

    @staticmethod
    def _parse_write_record(item: Item) -> WriteRecord:
        try:
            return WriteRecord.model_validate(item)
        except ValidationError as e:
            raise SerializationError(f"Invalid write record: {e}") from e

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    async def _aload_writes(
        self,
        thread_id: str,
        checkpoint_ns: str,
        checkpoint_id: str,
        channel: Optional[str] = None,
    ) -> List[PendingWrite]:
        """
        Fetch the pending writes stored for one checkpoint.

        Args:
            thread_id: Thread identifier
            checkpoint_ns: Checkpoint namespace
            checkpoint_id: Checkpoint the writes belong to
            channel: Only return writes for this channel

        Returns:
            (task_id, channel, value) triples ordered by task and write index
        """
        items = await self.store.query(
            thread_id, write_prefix(checkpoint_ns, checkpoint_id)
        )
        records = [self._parse_write_record(item) for item in items]
        if channel is not None:
            records = [r for r in records if r.channel == channel]
        records.sort(key=lambda r: (r.task_id, r.write_index))

        return [
            (r.task_id, r.channel, self._loads(r.value_type, r.value))
            for r in records
        ]

    async def _amigrate_pending_sends(
        self,
        checkpoint: Checkpoint,
        thread_id: str,
        checkpoint_ns: str,
        parent_checkpoint_id: str,
        pending_sends: List[PendingWrite],
    ) -> None:
        """
        Fold the parent's pending sends into an old-format checkpoint.

        Only the in-memory checkpoint is changed; stored data is untouched.
        """
        parent = await self.store.get_item(
            thread_id, encode_checkpoint_key(checkpoint_ns, parent_checkpoint_id)
        )
        if parent is None or not is_checkpoint_item(parent):
            logger.debug(
                f"Parent checkpoint {parent_checkpoint_id} missing, skipping migration"
            )
            return
        if not pending_sends:
            return

        channel_values = checkpoint.setdefault("channel_values", {})
        channel_versions = checkpoint.setdefault("channel_versions", {})
        channel_values[TASKS] = [value for _, _, value in pending_sends]
        channel_versions[TASKS] = (
            max(channel_versions.values())
            if channel_versions
            else self.get_next_version(None, None)
        )
        logger.debug(
            f"Migrated {len(pending_sends)} pending sends from parent "
            f"{parent_checkpoint_id}"
        )

    async def _abuild_tuple(
        self,
        record: CheckpointRecord,
        metadata: Optional[CheckpointMetadata] = None,
    ) -> CheckpointTuple:
        """
        Assemble a CheckpointTuple from a stored checkpoint record.

        Args:
            record: Checkpoint record
            metadata: Already deserialized metadata, if the caller has it

        Returns:
            Checkpoint tuple with pending writes and parent reference
        """
        key = decode_checkpoint_key(record.sort_key)
        thread_id = record.thread_id
        parent_checkpoint_id = record.parent_checkpoint_id

        checkpoint: Checkpoint = self._loads(record.checkpoint_type, record.checkpoint)
        if metadata is None:
            metadata = self._loads(record.metadata_type, record.metadata)

        pending_writes = await self._aload_writes(
            thread_id, key.namespace, key.checkpoint_id
        )

        parent_config: Optional[RunnableConfig] = None
        if parent_checkpoint_id:
            # Sends the parent left outstanding still have to be processed
            pending_sends = await self._aload_writes(
                thread_id, key.namespace, parent_checkpoint_id, channel=TASKS
            )
            pending_writes.extend(pending_sends)

            if checkpoint.get("v", 0) < PENDING_SENDS_MIGRATION_VERSION:
                await self._amigrate_pending_sends(
                    checkpoint,
                    thread_id,
                    key.namespace,
                    parent_checkpoint_id,
                    pending_sends,
                )

            parent_config = {
                "configurable": {
                    "thread_id": thread_id,
                    "checkpoint_ns": key.namespace,
                    "checkpoint_id": parent_checkpoint_id,
                }
            }

        return CheckpointTuple(
            config={
                "configurable": {
                    "thread_id": thread_id,
                    "checkpoint_ns": key.namespace,
                    "checkpoint_id": key.checkpoint_id,
                }
            },
            checkpoint=checkpoint,
            metadata=metadata,
            parent_config=parent_config,
            pending_writes=pending_writes,
        )

    async def aget_tuple(self, config: RunnableConfig) -> Optional[CheckpointTuple]:
        """
        Get a checkpoint tuple.

        Returns the checkpoint named by ``checkpoint_id`` in the config, or
        the latest checkpoint of the thread's namespace when none is given.

        Args:
            config: Config with thread_id, optional checkpoint_ns and checkpoint_id

        Returns:
            Checkpoint tuple, or None if absent or unreadable
        """
        configurable = config.get("configurable", {})
        thread_id = configurable.get("thread_id")
        checkpoint_ns = configurable.get("checkpoint_ns", "")
        checkpoint_id = get_checkpoint_id(config)

        logger.debug(f"Getting checkpoint thread={thread_id} id={checkpoint_id}")

        if not thread_id:
            return None
        thread_id = str(thread_id)

        try:
            if checkpoint_id:
                item = await self.store.get_item(
                    thread_id, encode_checkpoint_key(checkpoint_ns, checkpoint_id)
                )
            else:
                items = await self.store.query(
                    thread_id,
                    checkpoint_prefix(checkpoint_ns),
                    descending=True,
                    limit=1,
                )
                item = items[0] if items else None

            if item is None or not is_checkpoint_item(item):
                return None

            return await self._abuild_tuple(self._parse_checkpoint_record(item))

        except CheckpointStoreError as e:
            logger.warning(f"Failed to get checkpoint tuple for thread {thread_id}: {e}")
            return None

    async def aget_merged_tuple(
        self, config: RunnableConfig
    ) -> Optional[CheckpointTuple]:
        """
        Get a checkpoint tuple with channel values merged from its ancestors.

        Each checkpoint only stores the channels that changed in its step.
        This walks the parent chain and fills every channel listed in the
        checkpoint's channel_versions from the nearest ancestor storing it
        at the same version. A channel whose version changed without a
        stored value was cleared in that step and stays absent.

        Args:
            config: Same as aget_tuple

        Returns:
            Checkpoint tuple with a complete channel_values map, or None
        """
        checkpoint_tuple = await self.aget_tuple(config)
        if checkpoint_tuple is None:
            return None

        checkpoint = checkpoint_tuple.checkpoint
        merged = dict(checkpoint.get("channel_values", {}))
        versions = checkpoint.get("channel_versions", {})
        missing = set(versions) - set(merged)

        thread_id = checkpoint_tuple.config["configurable"]["thread_id"]
        checkpoint_ns = checkpoint_tuple.config["configurable"]["checkpoint_ns"]
        parent_id = (
            checkpoint_tuple.parent_config["configurable"]["checkpoint_id"]
            if checkpoint_tuple.parent_config
            else None
        )
        visited = {checkpoint["id"]}

        try:
            while missing and parent_id and parent_id not in visited:
                visited.add(parent_id)
                item = await self.store.get_item(
                    thread_id, encode_checkpoint_key(checkpoint_ns, parent_id)
                )
                if item is None or not is_checkpoint_item(item):
                    logger.warning(f"Ancestor checkpoint {parent_id} not found")
                    break

                record = self._parse_checkpoint_record(item)
                ancestor = self._loads(record.checkpoint_type, record.checkpoint)
                ancestor_values = ancestor.get("channel_values", {})
                ancestor_versions = ancestor.get("channel_versions", {})
                for channel in list(missing):
                    if ancestor_versions.get(channel) != versions[channel]:
                        missing.discard(channel)
                    elif channel in ancestor_values:
                        merged[channel] = ancestor_values[channel]
                        missing.discard(channel)

                parent_id = record.parent_checkpoint_id

        except CheckpointStoreError as e:
            logger.warning(f"Failed to merge ancestors for thread {thread_id}: {e}")
            return None

        return checkpoint_tuple._replace(
            checkpoint={**checkpoint, "channel_values": merged}
        )

    async def _aiter_matching(
        self,
        items: List[Item],
        checkpoint_id: Optional[str],
        before_key: Optional[str],
        filter: Optional[Dict[str, Any]],
    ) -> AsyncIterator[CheckpointTuple]:
        for item in items:
            if not is_checkpoint_item(item):
                continue
            record = self._parse_checkpoint_record(item)

            if checkpoint_id:
                key = decode_checkpoint_key(record.sort_key)
                if key.checkpoint_id != checkpoint_id:
                    continue

            if before_key is not None and record.sort_key >= before_key:
                continue

            metadata = None
            if filter:
                metadata = self._loads(record.metadata_type, record.metadata)
                if not all(metadata.get(k) == v for k, v in filter.items()):
                    continue

            yield await self._abuild_tuple(record, metadata)

    async def alist(
        self,
        config: Optional[RunnableConfig],
        *,
        filter: Optional[Dict[str, Any]] = None,
        before: Optional[RunnableConfig] = None,
        limit: Optional[int] = None,
    ) -> AsyncIterator[CheckpointTuple]:
        """
        List checkpoints, newest first.

        ``thread_id`` in the config may be a single id or a list of ids.
        Without any thread id the whole table is scanned and sorted in
        memory, which is meant for administrative use only.

        Args:
            config: Config with thread_id(s), optional checkpoint_ns and checkpoint_id
            filter: Metadata key/value pairs that must all match
            before: Only checkpoints whose key sorts before this one
            limit: Maximum number of tuples across all threads

        Yields:
            Checkpoint tuples
        """
        configurable = (config or {}).get("configurable", {})
        thread_ids = _thread_ids(configurable.get("thread_id"))
        checkpoint_ns = configurable.get("checkpoint_ns")
        checkpoint_id = get_checkpoint_id(config) if configurable else None

        before_key = None
        if before and before.get("configurable", {}).get("checkpoint_id"):
            before_ns = before["configurable"].get("checkpoint_ns", checkpoint_ns or "")
            before_key = encode_checkpoint_key(before_ns, get_checkpoint_id(before))

        remaining = limit
        if remaining is not None and remaining <= 0:
            return

        if not thread_ids:
            logger.warning("Listing checkpoints without thread_id scans the whole table")
            try:
                items = await self.store.scan(checkpoint_prefix(checkpoint_ns))
                items.sort(
                    key=lambda i: (i.get("sortKey", ""), i.get("checkpointTimestamp") or ""),
                    reverse=True,
                )
                async for checkpoint_tuple in self._aiter_matching(
                    items, checkpoint_id, before_key, filter
                ):
                    yield checkpoint_tuple
                    if remaining is not None:
                        remaining -= 1
                        if remaining <= 0:
                            return
            except CheckpointStoreError as e:
                logger.warning(f"Failed to scan checkpoints: {e}")
            return

        for thread_id in thread_ids:
            try:
                items = await self.store.query(
                    thread_id, checkpoint_prefix(checkpoint_ns), descending=True
                )
                async for checkpoint_tuple in self._aiter_matching(
                    items, checkpoint_id, before_key, filter
                ):
                    yield checkpoint_tuple
                    if remaining is not None:
                        remaining -= 1
                        if remaining <= 0:
                            return
            except CheckpointStoreError as e:
                logger.warning(f"Failed to list checkpoints for thread {thread_id}: {e}")

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    async def aput(
        self,
        config: RunnableConfig,
        checkpoint: Checkpoint,
        metadata: CheckpointMetadata,
        new_versions: ChannelVersions,
    ) -> RunnableConfig:
        """
        Store a checkpoint.

        Only channel values whose key appears in ``new_versions`` are kept.
        The config's checkpoint_id becomes the parent of the new checkpoint.

        Args:
            config: Config of the checkpoint this one continues from
            checkpoint: Checkpoint to store
            metadata: Checkpoint metadata
            new_versions: Channel versions that changed in this step

        Returns:
            Config referencing the stored checkpoint

        Raises:
            MissingThreadIdError: No thread_id in config
            StoreUnavailableError: Document store write failed
            SerializationError: Checkpoint or metadata could not be serialized
        """
        configurable = config.get("configurable", {})
        thread_id = configurable.get("thread_id")
        checkpoint_ns = configurable.get("checkpoint_ns", "")
        if not thread_id:
            raise MissingThreadIdError(
                'Failed to put checkpoint. The passed RunnableConfig is missing a '
                'required "thread_id" field in its "configurable" property.'
            )
        thread_id = str(thread_id)

        channel_values = checkpoint.get("channel_values", {})
        stored_checkpoint = {
            **checkpoint,
            "channel_values": {
                k: channel_values[k] for k in new_versions if k in channel_values
            },
        }

        try:
            checkpoint_type, serialized_checkpoint = self._dumps(stored_checkpoint)
            metadata_type, serialized_metadata = self._dumps(metadata)

            record = CheckpointRecord(
                thread_id=thread_id,
                sort_key=encode_checkpoint_key(checkpoint_ns, checkpoint["id"]),
                checkpoint=serialized_checkpoint,
                checkpoint_type=checkpoint_type,
                metadata=serialized_metadata,
                metadata_type=metadata_type,
                checkpoint_timestamp=checkpoint.get("ts"),
                parent_checkpoint_id=configurable.get("checkpoint_id"),
            )
            await self.store.put_item(record.to_item())

        except CheckpointStoreError as e:
            logger.error(f"Failed to put checkpoint {checkpoint['id']}: {e}")
            raise

        logger.debug(f"Stored checkpoint {checkpoint['id']} for thread {thread_id}")

        return {
            "configurable": {
                "thread_id": thread_id,
                "checkpoint_ns": checkpoint_ns,
                "checkpoint_id": checkpoint["id"],
            }
        }

    async def aput_writes(
        self,
        config: RunnableConfig,
        writes: Sequence[Tuple[str, Any]],
        task_id: str,
        task_path: str = "",
    ) -> None:
        """
        Store intermediate writes linked to a checkpoint.

        Each write becomes its own record keyed by task id and write index,
        so retries overwrite instead of duplicating. Channels listed in
        WRITES_IDX_MAP use their reserved index; negative indices are not
        stored.

        Args:
            config: Config naming thread_id and checkpoint_id
            writes: (channel, value) pairs
            task_id: Task that produced the writes
            task_path: Path of the task in the graph

        Raises:
            MissingThreadIdError: No thread_id in config
            MissingCheckpointIdError: No checkpoint_id in config
        """
        configurable = config.get("configurable", {})
        thread_id = configurable.get("thread_id")
        checkpoint_ns = configurable.get("checkpoint_ns", "")
        checkpoint_id = get_checkpoint_id(config)

        if not thread_id:
            raise MissingThreadIdError(
                'Failed to put writes. The passed RunnableConfig is missing a '
                'required "thread_id" field in its "configurable" property.'
            )
        if not checkpoint_id:
            raise MissingCheckpointIdError(
                'Failed to put writes. The passed RunnableConfig is missing a '
                'required "checkpoint_id" field in its "configurable" property.'
            )
        thread_id = str(thread_id)

        async def _aput_write(idx: int, channel: str, value: Any) -> None:
            write_index = WRITES_IDX_MAP.get(channel, idx)
            if write_index < 0:
                return

            value_type, serialized_value = self._dumps(value)
            record = WriteRecord(
                thread_id=thread_id,
                sort_key=encode_write_key(
                    checkpoint_ns, checkpoint_id, task_id, write_index
                ),
                task_id=task_id,
                task_path=task_path,
                channel=channel,
                value=serialized_value,
                value_type=value_type,
                write_index=write_index,
            )
            await self.store.put_item(record.to_item())

        try:
            await asyncio.gather(
                *(
                    _aput_write(idx, channel, value)
                    for idx, (channel, value) in enumerate(writes)
                )
            )
        except CheckpointStoreError as e:
            logger.error(f"Failed to put writes for task {task_id}: {e}")
            raise

        logger.debug(
            f"Stored {len(writes)} writes for task {task_id} at checkpoint {checkpoint_id}"
        )

    async def adelete_thread(self, thread_id: str) -> None:
        """
        Delete every checkpoint and write of a thread.

        Best effort: records are deleted concurrently and individual
        failures are logged, not raised.

        Args:
            thread_id: Thread to delete

        Raises:
            StoreUnavailableError: The thread's records could not be listed
        """
        thread_id = str(thread_id)
        try:
            items = await self.store.query(thread_id)
        except CheckpointStoreError as e:
            logger.error(f"Failed to delete thread {thread_id}: {e}")
            raise

        results = await asyncio.gather(
            *(self.store.delete_item(thread_id, item["sortKey"]) for item in items),
            return_exceptions=True,
        )

        failures = 0
        for item, result in zip(items, results):
            if isinstance(result, Exception):
                failures += 1
                logger.error(
                    f"Failed to delete record {item['sortKey']} of thread {thread_id}: {result}"
                )

        logger.info(
            f"Deleted {len(items) - failures} of {len(items)} records for thread {thread_id}"
        )

    def get_next_version(self, current: Optional[Any], channel: Any) -> str:
        """
        Generate the next channel version.

        Versions are zero-padded strings so they compare in order.

        Args:
            current: Current version (None, int or version string)
            channel: Channel the version belongs to (unused)

        Returns:
            Next version string
        """
        if current is None:
            current_v = 0
        elif isinstance(current, int):
            current_v = current
        else:
            current_v = int(str(current).split(".")[0])
        next_v = current_v + 1
        next_h = random.random()
        return f"{next_v:032}.{next_h:016}"
