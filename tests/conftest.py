"""Shared fixtures for checkpoint store tests."""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from typing import Any, Dict, Optional

import pytest

from flicket_checkpoint.checkpoint.saver import DocumentStoreCheckpointer
from flicket_checkpoint.storage.memory import InMemoryDocumentStore


def make_checkpoint(
    checkpoint_id: str,
    values: Optional[Dict[str, Any]] = None,
    versions: Optional[Dict[str, Any]] = None,
    v: int = 4,
) -> Dict[str, Any]:
    """Build a LangGraph-shaped checkpoint dict."""
    return {
        "v": v,
        "id": checkpoint_id,
        "ts": f"2026-10-18T10:00:{int(checkpoint_id[-2:]):02d}+00:00",
        "channel_values": dict(values or {}),
        "channel_versions": dict(versions or {}),
        "versions_seen": {},
    }


def make_config(
    thread_id: Optional[str] = "thread-1",
    checkpoint_ns: str = "",
    checkpoint_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Build a RunnableConfig for the checkpointer."""
    configurable: Dict[str, Any] = {"checkpoint_ns": checkpoint_ns}
    if thread_id is not None:
        configurable["thread_id"] = thread_id
    if checkpoint_id is not None:
        configurable["checkpoint_id"] = checkpoint_id
    return {"configurable": configurable}


@pytest.fixture
def store():
    """Create empty in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
def saver(store):
    """Create checkpointer over the in-memory store."""
    return DocumentStoreCheckpointer(store)
