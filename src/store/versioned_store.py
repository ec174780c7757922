"""Versioned, permissioned key/value store with commit history.

This module owns the live item map for one workflow run. Every operation
consults access control, mutates or queries live items, and appends one
commit to the history log. Snapshots replay that log independently.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable
from uuid import uuid4

from core.config import StoreOptions
from core.constants import COMMIT_ID_PREFIX, EXTERNAL_ACTOR_ID
from core.errors import (
    AccessDeniedError,
    BackpackValidationError,
    DuplicateKeyError,
    KeyNotFoundError,
)
from core.logging_config import get_logger
from core.namespaces import namespace_matches, validate_namespace, validate_pattern
from core.types import (
    AccessOperation,
    Commit,
    CommitMetadata,
    ItemMetadata,
    NodeContext,
    PermissionSet,
    SnapshotDiff,
    StoreItem,
    StoreStats,
)
from store.access_control import AccessController
from store.commit_log import CommitLog, CommitView
from store.permission_file import load_permission_file
from store.snapshot_engine import Snapshot, SnapshotEngine, diff_snapshots
from store.value_sizing import retain_for_history, summarize_value

_LOGGER = get_logger(__name__)

CommitListener = Callable[[Commit], None]
Clock = Callable[[], float]


class VersionedStore:
    """In-process state store shared by the nodes of one flow run.

    Operations are synchronous and not thread-safe; callers serialize access.
    A write or delete is built completely before any state changes, so no
    partial commit is ever observable.
    """

    def __init__(
        self,
        options: StoreOptions | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Create an empty store.

        Args:
            options: Retention and access options; defaults when omitted.
            clock: Time source in seconds; ``time.time`` when omitted.
        """
        self._options = options or StoreOptions()
        self._options.validate()
        self._clock = clock or time.time
        self._items: dict[str, StoreItem] = {}
        self._key_versions: dict[str, int] = {}
        self._commit_log = CommitLog(self._options)
        self._access = AccessController()
        self._snapshots = SnapshotEngine(self._commit_log)
        self._listeners: list[CommitListener] = []
        self._last_timestamp: float | None = None

    @property
    def options(self) -> StoreOptions:
        return self._options

    @property
    def commit_log(self) -> CommitLog:
        """Retained history backing this store."""
        return self._commit_log

    @property
    def access_controller(self) -> AccessController:
        return self._access

    # Writes

    def write(self, key: str, value: Any, context: NodeContext | None = None) -> bool:
        """Store a value as the current item for a key.

        Args:
            key: Item key.
            value: Opaque payload; replaced whole on every write.
            context: Caller identity, namespace, and tags.

        Returns:
            True when the write was applied, False when lenient mode skipped it.

        Raises:
            AccessDeniedError: In strict mode when the actor may not write.
            BackpackValidationError: If the key or namespace is malformed.
        """
        context = context or NodeContext()
        _validate_key(key)
        if context.namespace is not None:
            validate_namespace(context.namespace)
        existing = self._items.get(key)
        if not self._authorize(key, context.actor_id, "write", existing):
            return False
        timestamp = self._next_timestamp()
        version = self._key_versions.get(key, 0) + 1
        tags = tuple(context.tags)
        previous_value = existing.value if existing is not None else None
        retained_previous, previous_cost = retain_for_history(
            key, previous_value, self._options.per_value_size_limit
        )
        retained_new, new_cost = retain_for_history(
            key, value, self._options.per_value_size_limit
        )
        commit = Commit(
            commit_id=_build_commit_id(),
            timestamp=timestamp,
            actor_id=context.actor_id,
            operation="write",
            key=key,
            value_summary=summarize_value(value, self._options.value_summary_length),
            previous_value=retained_previous,
            new_value=retained_new,
            stored_size=previous_cost + new_cost,
            metadata=CommitMetadata(
                namespace=context.namespace,
                version=version,
                tags=tags,
                actor_name=context.actor_name,
            ),
        )
        item = StoreItem(
            key=key,
            value=value,
            metadata=ItemMetadata(
                source_id=context.actor_id,
                source_namespace=context.namespace,
                timestamp=timestamp,
                version=version,
                tags=frozenset(tags),
                source_name=context.actor_name,
            ),
        )
        self._items[key] = item
        self._key_versions[key] = version
        self._record(commit)
        return True

    def create(self, key: str, value: Any, context: NodeContext | None = None) -> bool:
        """Write a key that must not already exist.

        Raises:
            DuplicateKeyError: If the key is already live.
        """
        if key in self._items:
            raise DuplicateKeyError(key)
        return self.write(key, value, context)

    def delete(self, key: str, actor_id: str = EXTERNAL_ACTOR_ID) -> bool:
        """Remove the live item for a key.

        Returns:
            Whether an item was removed.

        Raises:
            AccessDeniedError: In strict mode when the actor may not write.
        """
        existing = self._items.get(key)
        if existing is None:
            return False
        if not self._authorize(key, actor_id, "write", existing):
            return False
        retained_previous, previous_cost = retain_for_history(
            key, existing.value, self._options.per_value_size_limit
        )
        commit = Commit(
            commit_id=_build_commit_id(),
            timestamp=self._next_timestamp(),
            actor_id=actor_id,
            operation="delete",
            key=key,
            value_summary=summarize_value(existing.value, self._options.value_summary_length),
            previous_value=retained_previous,
            new_value=None,
            stored_size=previous_cost,
            metadata=CommitMetadata(
                namespace=existing.metadata.source_namespace,
                version=existing.metadata.version,
                tags=tuple(sorted(existing.metadata.tags)),
            ),
        )
        del self._items[key]
        self._record(commit)
        return True

    # Reads

    def read(self, key: str, actor_id: str = EXTERNAL_ACTOR_ID) -> Any:
        """Return the current value for a key, or None when absent.

        Raises:
            AccessDeniedError: In strict mode when the actor may not read.
        """
        found, value = self._read(key, actor_id)
        if not found:
            _LOGGER.warning("key_not_found", key=key, actor_id=actor_id)
        return value

    def read_required(self, key: str, actor_id: str = EXTERNAL_ACTOR_ID) -> Any:
        """Return the current value for a key, raising when absent.

        Raises:
            KeyNotFoundError: If the key is absent or hidden by lenient denial.
                The hint lists only other keys this actor may read.
            AccessDeniedError: In strict mode when the actor may not read.
        """
        found, value = self._read(key, actor_id)
        if not found:
            raise KeyNotFoundError(key, self._readable_keys(actor_id, exclude=key))
        return value

    def has(self, key: str) -> bool:
        return key in self._items

    def keys(self) -> list[str]:
        """Return live keys in sorted order."""
        return sorted(self._items)

    def get_item(self, key: str) -> StoreItem | None:
        """Return the live item with metadata without recording a read."""
        return self._items.get(key)

    def items(self) -> list[StoreItem]:
        """Return live items in insertion order."""
        return list(self._items.values())

    def namespaces(self) -> list[str]:
        """Return distinct namespaces of live items in sorted order."""
        return sorted(
            {
                item.metadata.source_namespace
                for item in self._items.values()
                if item.metadata.source_namespace is not None
            }
        )

    def query_by_namespace(self, pattern: str) -> list[StoreItem]:
        """Return live items whose namespace matches a glob pattern.

        Raises:
            InvalidPatternError: If the pattern is malformed.
        """
        validate_pattern(pattern)
        return [
            item
            for item in self._items.values()
            if namespace_matches(pattern, item.metadata.source_namespace)
        ]

    # History

    def history(self) -> CommitView:
        """Return every retained commit in chronological order."""
        return self._commit_log.all_commits()

    def commits_for_key(self, key: str) -> CommitView:
        return self._commit_log.commits_for_key(key)

    def commits_since(self, timestamp: float) -> CommitView:
        return self._commit_log.commits_since(timestamp)

    def commits_by_actor(self, actor_id: str) -> CommitView:
        return self._commit_log.commits_by_actor(actor_id)

    def clear_history(self) -> None:
        """Drop retained commits while keeping live items."""
        self._commit_log.clear()

    # Snapshots

    def snapshot_at(self, timestamp: float) -> Snapshot:
        return self._snapshots.snapshot_at(timestamp)

    def snapshot_at_commit(self, commit_id: str) -> Snapshot:
        return self._snapshots.snapshot_at_commit(commit_id)

    def snapshot_before_actor(self, actor_id: str) -> Snapshot:
        return self._snapshots.snapshot_before_actor(actor_id)

    @staticmethod
    def diff(before: Snapshot, after: Snapshot) -> SnapshotDiff:
        """Compare two snapshots produced by any store."""
        return diff_snapshots(before, after)

    # Permissions

    def set_permissions(self, actor_id: str, permission_set: PermissionSet) -> None:
        self._access.set_permissions(actor_id, permission_set)

    def remove_permissions(self, actor_id: str) -> bool:
        return self._access.remove_permissions(actor_id)

    def permissions(self) -> dict[str, PermissionSet]:
        return self._access.all_permissions()

    def load_permissions(self, file_path: str | Path) -> None:
        """Register every permission set declared in a YAML file."""
        for actor_id, permission_set in load_permission_file(file_path).items():
            self._access.set_permissions(actor_id, permission_set)

    def check_access(self, key: str, actor_id: str, operation: AccessOperation) -> bool:
        """Evaluate access without recording a commit."""
        return self._access.check_access(key, actor_id, operation, self._items.get(key))

    # Events

    def on_commit(self, callback: CommitListener) -> Callable[[], None]:
        """Subscribe a listener called synchronously after each commit.

        Args:
            callback: Function receiving the appended commit.

        Returns:
            Function that unsubscribes the listener.
        """
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    def stats(self) -> StoreStats:
        return StoreStats(
            item_count=len(self._items),
            commit_count=len(self._commit_log),
            stored_bytes=self._commit_log.stored_bytes,
            evicted_commit_count=self._commit_log.evicted_count,
            namespaces=tuple(self.namespaces()),
            oldest_commit_timestamp=self._commit_log.oldest_timestamp,
        )

    def restore_state(
        self,
        items: list[StoreItem],
        commits: list[Commit],
        permissions: dict[str, PermissionSet],
        key_versions: dict[str, int],
        evicted_count: int,
        truncated: bool,
    ) -> None:
        """Load deserialized contents into this empty store."""
        self._items = {item.key: item for item in items}
        self._key_versions = dict(key_versions)
        for item in items:
            current = self._key_versions.get(item.key, 0)
            self._key_versions[item.key] = max(current, item.metadata.version)
        self._commit_log.restore(commits, evicted_count, truncated)
        self._last_timestamp = max(
            [commit.timestamp for commit in commits]
            + [item.metadata.timestamp for item in items],
            default=None,
        )
        for actor_id, permission_set in permissions.items():
            self._access.set_permissions(actor_id, permission_set)

    def key_versions(self) -> dict[str, int]:
        """Return the last version assigned per key, including deleted keys."""
        return dict(self._key_versions)

    def _read(self, key: str, actor_id: str) -> tuple[bool, Any]:
        item = self._items.get(key)
        if not self._authorize(key, actor_id, "read", item):
            return False, None
        self._record(
            Commit(
                commit_id=_build_commit_id(),
                timestamp=self._next_timestamp(),
                actor_id=actor_id,
                operation="read",
                key=key,
                value_summary=summarize_value(
                    item.value if item is not None else None,
                    self._options.value_summary_length,
                ),
                stored_size=0,
                metadata=CommitMetadata(
                    namespace=item.metadata.source_namespace if item is not None else None,
                    version=item.metadata.version if item is not None else None,
                ),
            )
        )
        if item is None:
            return False, None
        return True, item.value

    def _readable_keys(self, actor_id: str, exclude: str) -> list[str]:
        return [
            live_key
            for live_key in self.keys()
            if live_key != exclude
            and self._access.check_access(live_key, actor_id, "read", self._items[live_key])
        ]

    def _authorize(
        self,
        key: str,
        actor_id: str,
        operation: AccessOperation,
        item: StoreItem | None,
    ) -> bool:
        if self._access.check_access(key, actor_id, operation, item):
            return True
        if self._options.strict_access_mode:
            raise AccessDeniedError(key, actor_id, operation)
        _LOGGER.warning("access_denied", key=key, actor_id=actor_id, operation=operation)
        return False

    def _next_timestamp(self) -> float:
        now = float(self._clock())
        if self._last_timestamp is not None and now < self._last_timestamp:
            now = self._last_timestamp
        self._last_timestamp = now
        return now

    def _record(self, commit: Commit) -> None:
        self._commit_log.append(commit)
        for listener in list(self._listeners):
            try:
                listener(commit)
            except Exception as error:
                _LOGGER.error(
                    "commit_listener_failed",
                    commit_id=commit.commit_id,
                    listener=getattr(listener, "__name__", repr(listener)),
                    error=str(error),
                )


def _validate_key(key: str) -> None:
    if not isinstance(key, str) or not key:
        raise BackpackValidationError(f"Invalid key {key!r}: expected a non-empty string.")


def _build_commit_id() -> str:
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    return f"{COMMIT_ID_PREFIX}-{timestamp}-{uuid4().hex[:8]}"

