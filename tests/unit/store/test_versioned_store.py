"""Unit tests for the versioned store."""

from __future__ import annotations

import pytest

from core.errors import (
    BackpackValidationError,
    DuplicateKeyError,
    InvalidPatternError,
    KeyNotFoundError,
)
from core.types import Commit, NodeContext
from tests.store_factories import build_store, context


def test_repeated_writes_keep_last_value_and_count_versions() -> None:
    """Live value should equal the Nth payload with version N."""
    store, clock = build_store()
    for index in range(1, 6):
        clock.tick()
        store.write("counter", {"n": index}, context("node-a"))

    item = store.get_item("counter")

    assert item is not None
    assert item.value == {"n": 5}
    assert item.metadata.version == 5


def test_identical_writes_are_not_deduplicated() -> None:
    """Writing the same value twice should add a commit and a version."""
    store, _ = build_store()
    store.write("a", [1, 2], context("node-a"))
    store.write("a", [1, 2], context("node-a"))

    assert len(store.commits_for_key("a")) == 2
    assert store.get_item("a").metadata.version == 2


def test_write_stamps_metadata_from_context() -> None:
    """Metadata should come from the caller's execution context."""
    store, clock = build_store()
    clock.now = 42.0
    store.write(
        "query",
        "hello",
        NodeContext(actor_id="chat-1", namespace="agent.chat", tags=("input",), actor_name="Chat"),
    )

    metadata = store.get_item("query").metadata

    assert metadata.source_id == "chat-1"
    assert metadata.source_namespace == "agent.chat"
    assert metadata.tags == frozenset({"input"})
    assert metadata.source_name == "Chat"
    assert metadata.timestamp == 42.0


def test_read_missing_key_returns_none_and_records_read() -> None:
    """Optional reads of absent keys should return None."""
    store, _ = build_store()

    value = store.read("ghost", "node-a")

    assert value is None
    assert [commit.operation for commit in store.history()] == ["read"]


def test_read_required_missing_key_lists_available_keys() -> None:
    """Required reads should raise with the live keys as a hint."""
    store, _ = build_store()
    store.write("b", 2, context("node-a"))
    store.write("a", 1, context("node-a"))

    with pytest.raises(KeyNotFoundError) as error_info:
        store.read_required("ghost", "node-b")

    assert error_info.value.available_keys == ("a", "b")


def test_read_commit_carries_no_values() -> None:
    """Read commits should cost nothing against the history budget."""
    store, _ = build_store()
    store.write("a", "value", context("node-a"))

    assert store.read("a", "node-b") == "value"

    read_commit = list(store.history())[-1]
    assert read_commit.operation == "read"
    assert read_commit.stored_size == 0
    assert read_commit.previous_value is None and read_commit.new_value is None


def test_delete_removes_item_once() -> None:
    """Delete should report whether something was removed."""
    store, _ = build_store()
    store.write("a", 1, context("node-a"))

    assert store.delete("a", "node-a") is True
    assert store.delete("a", "node-a") is False
    assert store.read("a") is None
    assert [commit.operation for commit in store.commits_for_key("a")] == [
        "write",
        "delete",
        "read",
    ]


def test_version_keeps_increasing_after_delete() -> None:
    """Re-creating a deleted key should continue its version sequence."""
    store, _ = build_store()
    store.write("a", 1, context("node-a"))
    store.delete("a", "node-a")
    store.write("a", 2, context("node-a"))

    assert store.get_item("a").metadata.version == 2


def test_create_rejects_existing_key() -> None:
    """Create-only writes should refuse to replace live items."""
    store, _ = build_store()
    store.create("a", 1, context("node-a"))

    with pytest.raises(DuplicateKeyError):
        store.create("a", 2, context("node-a"))

    assert store.read("a") == 1


def test_write_rejects_empty_key() -> None:
    """Keys must be non-empty strings."""
    store, _ = build_store()

    with pytest.raises(BackpackValidationError):
        store.write("", 1, context("node-a"))


def test_write_rejects_wildcard_namespace() -> None:
    """Item namespaces must be concrete paths."""
    store, _ = build_store()

    with pytest.raises(BackpackValidationError):
        store.write("a", 1, context("node-a", "sales.*"))

    assert store.has("a") is False


def test_query_by_namespace_uses_single_level_glob() -> None:
    """Namespace queries should match exactly one wildcard segment."""
    store, _ = build_store()
    store.write("chat", 1, context("n1", "sales.chat"))
    store.write("daily", 2, context("n2", "sales.reports.daily"))
    store.write("free", 3, context("n3"))

    matched = store.query_by_namespace("sales.*")

    assert [item.key for item in matched] == ["chat"]


def test_query_by_namespace_rejects_malformed_pattern() -> None:
    """Partial wildcards should raise instead of matching nothing."""
    store, _ = build_store()

    with pytest.raises(InvalidPatternError):
        store.query_by_namespace("sales.ch*")


def test_namespaces_lists_distinct_sorted_paths() -> None:
    """Namespace listing should ignore items without a namespace."""
    store, _ = build_store()
    store.write("b", 1, context("n1", "flow.summary"))
    store.write("a", 1, context("n1", "flow.chat"))
    store.write("c", 1, context("n1", "flow.chat"))
    store.write("d", 1, context("n1"))

    assert store.namespaces() == ["flow.chat", "flow.summary"]


def test_timestamps_never_decrease_when_clock_moves_back() -> None:
    """Commits should be appended in non-decreasing timestamp order."""
    store, clock = build_store()
    clock.now = 200.0
    store.write("a", 1, context("n1"))
    clock.now = 100.0
    store.write("a", 2, context("n1"))

    timestamps = [commit.timestamp for commit in store.history()]

    assert timestamps == [200.0, 200.0]


def test_commit_listeners_run_in_registration_order() -> None:
    """Listeners should receive each commit synchronously and in order."""
    store, _ = build_store()
    received: list[tuple[str, str]] = []
    store.on_commit(lambda commit: received.append(("first", commit.key)))
    store.on_commit(lambda commit: received.append(("second", commit.key)))

    store.write("a", 1, context("n1"))

    assert received == [("first", "a"), ("second", "a")]


def test_failing_listener_does_not_break_store() -> None:
    """Listener errors should be isolated from the store and other listeners."""
    store, _ = build_store()
    received: list[Commit] = []

    def _explode(_commit: Commit) -> None:
        raise RuntimeError("telemetry offline")

    store.on_commit(_explode)
    store.on_commit(received.append)

    assert store.write("a", 1, context("n1")) is True
    assert len(received) == 1
    assert store.read("a") == 1


def test_unsubscribed_listener_stops_receiving() -> None:
    """The handle returned by on_commit should remove the listener."""
    store, _ = build_store()
    received: list[Commit] = []
    unsubscribe = store.on_commit(received.append)
    store.write("a", 1, context("n1"))

    unsubscribe()
    store.write("a", 2, context("n1"))

    assert len(received) == 1


def test_stats_summarize_items_and_history() -> None:
    """Stats should reflect live items and retained commits."""
    store, _ = build_store()
    store.write("a", "xy", context("n1", "flow.chat"))
    store.read("a", "n2")

    stats = store.stats()

    assert stats.item_count == 1
    assert stats.commit_count == 2
    assert stats.stored_bytes == len('"xy"')
    assert stats.namespaces == ("flow.chat",)


def test_independent_stores_do_not_share_state() -> None:
    """Each store instance should own its items and permissions."""
    first, _ = build_store()
    second, _ = build_store()
    first.write("a", 1, context("n1"))

    assert second.has("a") is False
    assert len(second.history()) == 0
