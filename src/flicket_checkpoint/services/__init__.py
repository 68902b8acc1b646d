"""Service layer wiring the checkpointer for the rest of the process."""

from .checkpoint_service import (
    CheckpointerProvider,
    DOCUMENT_STORE_PROVIDERS,
    create_document_store,
)

__all__ = [
    "CheckpointerProvider",
    "DOCUMENT_STORE_PROVIDERS",
    "create_document_store",
]
