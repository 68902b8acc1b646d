"""Exception taxonomy for the checkpoint store."""


class CheckpointStoreError(Exception):
    """Base class for checkpoint store failures."""

    pass


class MissingThreadIdError(CheckpointStoreError):
    """Raised when a config lacks the required thread_id."""

    pass


class MissingCheckpointIdError(CheckpointStoreError):
    """Raised when a config lacks the required checkpoint_id."""

    pass


class MalformedKeyError(CheckpointStoreError):
    """Raised when a sort key cannot be encoded or decoded."""

    pass


class StoreUnavailableError(CheckpointStoreError):
    """Raised on network or timeout failures of the document store."""

    pass


class SerializationError(CheckpointStoreError):
    """Raised when a payload cannot be serialized or deserialized."""

    pass
