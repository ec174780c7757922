"""Shared typed models.

This module defines the data models used by the versioned store,
commit log, access control, and snapshot layers to keep interfaces
explicit and stable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping

from core.constants import EXTERNAL_ACTOR_ID

OperationKind = Literal["write", "read", "delete"]
AccessOperation = Literal["read", "write"]
SUPPORTED_OPERATIONS: tuple[OperationKind, ...] = ("write", "read", "delete")


@dataclass(frozen=True)
class NodeContext:
    """Caller identity supplied by the execution engine per operation.

    Attributes:
        actor_id: Identity of the calling node.
        namespace: Optional dot-segmented namespace of the caller.
        tags: Free-form labels attached to written items.
        actor_name: Optional human-readable node name.
    """

    actor_id: str = EXTERNAL_ACTOR_ID
    namespace: str | None = None
    tags: tuple[str, ...] = ()
    actor_name: str | None = None


@dataclass(frozen=True)
class ItemMetadata:
    """Metadata stamped on the live item by its last write.

    Attributes:
        source_id: Identity of the last writer.
        source_namespace: Namespace of the last writer, if any.
        timestamp: Commit timestamp of the last write.
        version: Per-key write counter starting at 1.
        tags: Unordered labels from the writing context.
        source_name: Optional human-readable writer name.
    """

    source_id: str
    source_namespace: str | None
    timestamp: float
    version: int
    tags: frozenset[str] = frozenset()
    source_name: str | None = None


@dataclass(frozen=True)
class StoreItem:
    """Current value for one key."""

    key: str
    value: Any
    metadata: ItemMetadata


@dataclass(frozen=True)
class CommitMetadata:
    """Context captured on a commit.

    Attributes:
        namespace: Namespace of the affected item or writer.
        version: Item version after a write, or before a delete.
        tags: Labels from the writing context.
        actor_name: Optional human-readable actor name.
    """

    namespace: str | None = None
    version: int | None = None
    tags: tuple[str, ...] = ()
    actor_name: str | None = None


@dataclass(frozen=True)
class Commit:
    """Immutable record of one store operation.

    Attributes:
        commit_id: Unique commit identifier.
        timestamp: Non-decreasing commit time in seconds.
        actor_id: Identity that performed the operation.
        operation: One of write, read, delete.
        key: Affected key.
        value_summary: Bounded-length textual preview of the value.
        previous_value: Prior value, reference stub, or None.
        new_value: Written value, reference stub, or None.
        stored_size: Bytes charged against the retention budget.
        metadata: Operation context.
    """

    commit_id: str
    timestamp: float
    actor_id: str
    operation: OperationKind
    key: str
    value_summary: str
    previous_value: Any = None
    new_value: Any = None
    stored_size: int = 0
    metadata: CommitMetadata = field(default_factory=CommitMetadata)


@dataclass(frozen=True)
class PermissionSet:
    """Per-identity access rules.

    Attributes:
        allowed_read_keys: Keys the actor may always read.
        allowed_write_keys: Keys the actor may always write.
        denied_keys: Keys explicitly denied when no allow rule matched.
        allowed_read_namespace_patterns: Namespace globs granting reads.
        allowed_write_namespace_patterns: Namespace globs granting writes.
    """

    allowed_read_keys: frozenset[str] = frozenset()
    allowed_write_keys: frozenset[str] = frozenset()
    denied_keys: frozenset[str] = frozenset()
    allowed_read_namespace_patterns: tuple[str, ...] = ()
    allowed_write_namespace_patterns: tuple[str, ...] = ()


@dataclass(frozen=True)
class SnapshotEntry:
    """One reconstructed key inside a snapshot."""

    key: str
    value: Any
    actor_id: str
    namespace: str | None
    version: int | None
    timestamp: float
    commit_id: str


@dataclass(frozen=True)
class KeyChange:
    """Per-key detail row of a snapshot diff."""

    before: Any
    after: Any
    changed_by: str


@dataclass(frozen=True)
class SnapshotDiff:
    """Structural difference between two snapshots.

    Attributes:
        added: Keys present only in the later snapshot.
        modified: Keys present in both with different values.
        deleted: Keys present only in the earlier snapshot.
        details: Before/after values and responsible actor per key.
    """

    added: tuple[str, ...]
    modified: tuple[str, ...]
    deleted: tuple[str, ...]
    details: Mapping[str, KeyChange]

    @property
    def is_empty(self) -> bool:
        """Return True when both snapshots hold identical state."""
        return not (self.added or self.modified or self.deleted)


@dataclass(frozen=True)
class StoreStats:
    """Point-in-time summary of a store instance."""

    item_count: int
    commit_count: int
    stored_bytes: int
    evicted_commit_count: int
    namespaces: tuple[str, ...]
    oldest_commit_timestamp: float | None
