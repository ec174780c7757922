"""Public SDK surface for Backpack.

This module provides a stable import path for flow engines and tools.
It re-exports the store, its typed models, and the error hierarchy.
"""

from __future__ import annotations

from core.config import StoreOptions
from core.errors import (
    AccessDeniedError,
    BackpackConfigError,
    BackpackError,
    BackpackSerializationError,
    BackpackValidationError,
    CommitNotFoundError,
    DuplicateKeyError,
    HistoryTruncatedError,
    InvalidPatternError,
    KeyNotFoundError,
    SerializationVersionMismatchError,
)
from core.namespaces import compose_namespace, namespace_matches
from core.types import (
    Commit,
    ItemMetadata,
    KeyChange,
    NodeContext,
    PermissionSet,
    SnapshotDiff,
    StoreItem,
    StoreStats,
)
from store.snapshot_engine import Snapshot
from store.state_io import deserialize_store, load_state_file, save_state_file, serialize_store
from store.value_sizing import is_unavailable
from store.versioned_store import VersionedStore

__all__ = [
    "AccessDeniedError",
    "BackpackConfigError",
    "BackpackError",
    "BackpackSerializationError",
    "BackpackValidationError",
    "Commit",
    "CommitNotFoundError",
    "DuplicateKeyError",
    "HistoryTruncatedError",
    "InvalidPatternError",
    "ItemMetadata",
    "KeyChange",
    "KeyNotFoundError",
    "NodeContext",
    "PermissionSet",
    "SerializationVersionMismatchError",
    "Snapshot",
    "SnapshotDiff",
    "StoreItem",
    "StoreOptions",
    "StoreStats",
    "VersionedStore",
    "compose_namespace",
    "deserialize_store",
    "is_unavailable",
    "load_state_file",
    "namespace_matches",
    "save_state_file",
    "serialize_store",
]
