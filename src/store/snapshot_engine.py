"""Point-in-time reconstruction and structural diffs.

This module replays retained commits into fresh, caller-owned snapshots.
Replay never reads the live item map, so snapshots stay independent of the
store they were produced from.
"""

from __future__ import annotations

import copy
from typing import Any, Iterable, Iterator

from core.constants import DELETED_CHANGED_BY
from core.errors import CommitNotFoundError, HistoryTruncatedError
from core.types import Commit, KeyChange, SnapshotDiff, SnapshotEntry
from store.commit_log import CommitLog
from store.value_sizing import canonical_json, is_reference_stub, unavailable_sentinel


class Snapshot:
    """Reconstructed store state owned by the caller.

    Attributes:
        entries: Reconstructed entries keyed by item key.
        cutoff_timestamp: Timestamp of the last replayed commit, if any.
        cutoff_commit_id: Id of the last replayed commit, if any.
        replayed_commit_count: Number of commits applied during replay.
    """

    def __init__(
        self,
        entries: dict[str, SnapshotEntry],
        cutoff_timestamp: float | None,
        cutoff_commit_id: str | None,
        replayed_commit_count: int,
    ) -> None:
        self.entries = entries
        self.cutoff_timestamp = cutoff_timestamp
        self.cutoff_commit_id = cutoff_commit_id
        self.replayed_commit_count = replayed_commit_count

    def __contains__(self, key: object) -> bool:
        return key in self.entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Snapshot):
            return NotImplemented
        return (
            self.entries == other.entries
            and self.cutoff_timestamp == other.cutoff_timestamp
            and self.cutoff_commit_id == other.cutoff_commit_id
            and self.replayed_commit_count == other.replayed_commit_count
        )

    def __repr__(self) -> str:
        return (
            f"Snapshot(keys={sorted(self.entries)!r}, "
            f"cutoff_commit_id={self.cutoff_commit_id!r})"
        )

    def get(self, key: str, default: Any = None) -> Any:
        """Return the reconstructed value for a key."""
        entry = self.entries.get(key)
        return default if entry is None else entry.value

    def keys(self) -> list[str]:
        return list(self.entries)

    def to_dict(self) -> dict[str, Any]:
        """Return reconstructed values as a plain key-to-value mapping."""
        return {key: entry.value for key, entry in self.entries.items()}


class SnapshotEngine:
    """Replays a commit log into snapshots and compares them."""

    def __init__(self, commit_log: CommitLog) -> None:
        self._commit_log = commit_log

    def snapshot_at(self, timestamp: float) -> Snapshot:
        """Reconstruct state from every commit at or before a timestamp.

        Raises:
            HistoryTruncatedError: If the cutoff predates retained history.
        """
        count = self._commit_log.count_through(timestamp)
        self._ensure_window_retained(count, f"timestamp {timestamp}")
        return replay_commits(self._commit_log.head(count))

    def snapshot_at_commit(self, commit_id: str) -> Snapshot:
        """Reconstruct state up to and including one commit.

        Raises:
            CommitNotFoundError: If the commit is unknown or was evicted.
        """
        position = self._commit_log.position_of(commit_id)
        if position is None:
            raise CommitNotFoundError(
                f"Commit '{commit_id}' not found in retained history. "
                "It may never have existed or may have been evicted by retention."
            )
        return replay_commits(self._commit_log.head(position + 1))

    def snapshot_before_actor(self, actor_id: str) -> Snapshot:
        """Reconstruct state just before an actor's first retained commit.

        Raises:
            CommitNotFoundError: If the actor has no retained commits.
            HistoryTruncatedError: If nothing before that commit is retained.
        """
        position = self._commit_log.first_position_by_actor(actor_id)
        if position is None:
            raise CommitNotFoundError(
                f"Actor '{actor_id}' has no commits in retained history."
            )
        self._ensure_window_retained(position, f"actor '{actor_id}'")
        return replay_commits(self._commit_log.head(position))

    def _ensure_window_retained(self, count: int, cutoff_label: str) -> None:
        if count == 0 and self._commit_log.truncated:
            raise HistoryTruncatedError(
                f"Cannot reconstruct state at {cutoff_label}: it predates the oldest "
                f"retained commit (oldest={self._commit_log.oldest_timestamp}). "
                "Raise the retention limits to keep more history."
            )


def replay_commits(commits: Iterable[Commit]) -> Snapshot:
    """Apply commits in order onto an empty state.

    Args:
        commits: Chronologically ordered commits.

    Returns:
        Independent snapshot of the replayed state.
    """
    entries: dict[str, SnapshotEntry] = {}
    last_commit: Commit | None = None
    replayed = 0
    for commit in commits:
        replayed += 1
        last_commit = commit
        if commit.operation == "write":
            entries[commit.key] = _entry_from_write(commit)
        elif commit.operation == "delete":
            entries.pop(commit.key, None)
    return Snapshot(
        entries=entries,
        cutoff_timestamp=last_commit.timestamp if last_commit else None,
        cutoff_commit_id=last_commit.commit_id if last_commit else None,
        replayed_commit_count=replayed,
    )


def diff_snapshots(before: Snapshot, after: Snapshot) -> SnapshotDiff:
    """Compare two snapshots key by key.

    Args:
        before: Earlier snapshot.
        after: Later snapshot.

    Returns:
        Added, modified, and deleted keys with per-key details.
    """
    added: list[str] = []
    modified: list[str] = []
    deleted: list[str] = []
    details: dict[str, KeyChange] = {}
    for key in sorted(set(before.entries) | set(after.entries)):
        before_entry = before.entries.get(key)
        after_entry = after.entries.get(key)
        if before_entry is None and after_entry is not None:
            added.append(key)
            details[key] = KeyChange(None, after_entry.value, after_entry.actor_id)
        elif after_entry is None and before_entry is not None:
            deleted.append(key)
            details[key] = KeyChange(before_entry.value, None, DELETED_CHANGED_BY)
        elif before_entry is not None and after_entry is not None:
            if canonical_json(before_entry.value) != canonical_json(after_entry.value):
                modified.append(key)
                details[key] = KeyChange(
                    before_entry.value,
                    after_entry.value,
                    after_entry.actor_id,
                )
    return SnapshotDiff(
        added=tuple(added),
        modified=tuple(modified),
        deleted=tuple(deleted),
        details=details,
    )


def _entry_from_write(commit: Commit) -> SnapshotEntry:
    if is_reference_stub(commit.new_value):
        value: Any = unavailable_sentinel()
    else:
        value = copy.deepcopy(commit.new_value)
    return SnapshotEntry(
        key=commit.key,
        value=value,
        actor_id=commit.actor_id,
        namespace=commit.metadata.namespace,
        version=commit.metadata.version,
        timestamp=commit.timestamp,
        commit_id=commit.commit_id,
    )
