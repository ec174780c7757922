"""Append-only commit log with count and byte retention.

This module owns the chronological commit sequence for one store.
Retention drops the oldest commits once either budget is exceeded,
trimming usage down to a fixed fraction of the budget.
"""

from __future__ import annotations

from collections import deque
from typing import Callable, Iterable, Iterator

from core.config import StoreOptions
from core.constants import RETENTION_TARGET_RATIO
from core.logging_config import get_logger
from core.types import Commit

_LOGGER = get_logger(__name__)

CommitPredicate = Callable[[Commit], bool]


class CommitView:
    """Lazy, restartable, filtered view over retained commits.

    Each iteration walks the log afresh in chronological order, so a view
    reflects retention that happened after it was created. Do not write to
    the store while iterating a view.
    """

    def __init__(self, commits: deque[Commit], predicate: CommitPredicate) -> None:
        self._commits = commits
        self._predicate = predicate

    def __iter__(self) -> Iterator[Commit]:
        return (commit for commit in self._commits if self._predicate(commit))

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def to_list(self) -> list[Commit]:
        """Materialize the view into a list."""
        return list(self)


class CommitLog:
    """Chronological commit sequence bounded by count and byte budgets."""

    def __init__(self, options: StoreOptions) -> None:
        self._options = options
        self._commits: deque[Commit] = deque()
        self._commits_by_id: dict[str, Commit] = {}
        self._stored_bytes = 0
        self._evicted_count = 0
        self._truncated = False

    def __len__(self) -> int:
        return len(self._commits)

    def __iter__(self) -> Iterator[Commit]:
        return iter(self._commits)

    @property
    def stored_bytes(self) -> int:
        """Sum of stored_size across retained commits."""
        return self._stored_bytes

    @property
    def evicted_count(self) -> int:
        """Number of commits dropped by retention since creation."""
        return self._evicted_count

    @property
    def truncated(self) -> bool:
        """Whether any commit has ever been dropped from this log."""
        return self._truncated

    @property
    def oldest_timestamp(self) -> float | None:
        """Timestamp of the oldest retained commit."""
        return self._commits[0].timestamp if self._commits else None

    @property
    def latest_timestamp(self) -> float | None:
        """Timestamp of the newest retained commit."""
        return self._commits[-1].timestamp if self._commits else None

    def append(self, commit: Commit) -> None:
        """Append one commit and apply retention.

        Args:
            commit: Fully built commit record.
        """
        self._commits.append(commit)
        self._commits_by_id[commit.commit_id] = commit
        self._stored_bytes += commit.stored_size
        _LOGGER.debug(
            "commit_appended",
            commit_id=commit.commit_id,
            operation=commit.operation,
            key=commit.key,
            stored_size=commit.stored_size,
        )
        self._apply_retention()

    def find(self, commit_id: str) -> Commit | None:
        """Return a retained commit by id."""
        return self._commits_by_id.get(commit_id)

    def position_of(self, commit_id: str) -> int | None:
        """Return the zero-based log position of a retained commit."""
        if commit_id not in self._commits_by_id:
            return None
        for position, commit in enumerate(self._commits):
            if commit.commit_id == commit_id:
                return position
        return None

    def first_position_by_actor(self, actor_id: str) -> int | None:
        """Return the log position of an actor's earliest retained commit."""
        for position, commit in enumerate(self._commits):
            if commit.actor_id == actor_id:
                return position
        return None

    def count_through(self, timestamp: float) -> int:
        """Return how many leading commits have timestamp <= the cutoff."""
        count = 0
        for commit in self._commits:
            if commit.timestamp > timestamp:
                break
            count += 1
        return count

    def head(self, count: int) -> list[Commit]:
        """Return the first ``count`` retained commits in order."""
        return [commit for _, commit in zip(range(count), self._commits)]

    def all_commits(self) -> CommitView:
        """Return a view over every retained commit."""
        return CommitView(self._commits, lambda _commit: True)

    def commits_for_key(self, key: str) -> CommitView:
        """Return a view over commits touching one key."""
        return CommitView(self._commits, lambda commit: commit.key == key)

    def commits_since(self, timestamp: float) -> CommitView:
        """Return a view over commits at or after a timestamp."""
        return CommitView(self._commits, lambda commit: commit.timestamp >= timestamp)

    def commits_by_actor(self, actor_id: str) -> CommitView:
        """Return a view over commits made by one actor."""
        return CommitView(self._commits, lambda commit: commit.actor_id == actor_id)

    def clear(self) -> None:
        """Drop every retained commit and mark history as truncated."""
        dropped = len(self._commits)
        self._commits.clear()
        self._commits_by_id.clear()
        self._stored_bytes = 0
        self._evicted_count += dropped
        if dropped:
            self._truncated = True

    def restore(
        self,
        commits: Iterable[Commit],
        evicted_count: int,
        truncated: bool,
    ) -> None:
        """Replace log contents from a deserialized state.

        Args:
            commits: Retained commits in chronological order.
            evicted_count: Eviction counter carried by the saved state.
            truncated: Whether the saved history had already been truncated.
        """
        self._commits = deque(commits)
        self._commits_by_id = {commit.commit_id: commit for commit in self._commits}
        self._stored_bytes = sum(commit.stored_size for commit in self._commits)
        self._evicted_count = evicted_count
        self._truncated = truncated
        self._apply_retention()

    def _apply_retention(self) -> None:
        max_count = self._options.max_commit_count
        max_bytes = self._options.max_history_bytes
        count_exceeded = len(self._commits) > max_count
        bytes_exceeded = self._stored_bytes > max_bytes
        if not count_exceeded and not bytes_exceeded:
            return
        target_count = int(max_count * RETENTION_TARGET_RATIO) if count_exceeded else max_count
        target_bytes = int(max_bytes * RETENTION_TARGET_RATIO) if bytes_exceeded else max_bytes
        evicted = 0
        # The newest commit always survives, even when it alone exceeds the byte target.
        while len(self._commits) > 1 and (
            len(self._commits) > target_count or self._stored_bytes > target_bytes
        ):
            oldest = self._commits.popleft()
            self._commits_by_id.pop(oldest.commit_id, None)
            self._stored_bytes -= oldest.stored_size
            evicted += 1
        self._evicted_count += evicted
        self._truncated = True
        _LOGGER.info(
            "history_retention_applied",
            evicted=evicted,
            retained=len(self._commits),
            stored_bytes=self._stored_bytes,
            count_limit_exceeded=count_exceeded,
            byte_limit_exceeded=bytes_exceeded,
        )
