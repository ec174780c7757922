"""Unit tests for commit log retention and queries."""

from __future__ import annotations

from core.constants import REFERENCE_STUB_COST, TOO_LARGE_MARKER
from store.value_sizing import is_unavailable
from tests.store_factories import build_store, context


def test_count_retention_drops_oldest_to_eighty_percent() -> None:
    """Exceeding the count limit should keep the newest 80% of the limit."""
    store, clock = build_store(max_commit_count=10)
    for index in range(11):
        clock.tick()
        store.write(f"k{index}", index, context("n1"))

    keys = [commit.key for commit in store.history()]

    assert keys == [f"k{index}" for index in range(3, 11)]
    assert store.commit_log.evicted_count == 3
    assert store.commit_log.truncated is True


def test_byte_retention_falls_to_eighty_percent_of_budget() -> None:
    """Exceeding the byte budget should evict oldest commits first."""
    store, clock = build_store(max_history_bytes=10_000, per_value_size_limit=5_000)
    payload = "x" * 1998
    for index in range(6):
        clock.tick()
        store.write(f"k{index}", payload, context("n1"))

    keys = [commit.key for commit in store.history()]

    assert store.commit_log.stored_bytes <= 8_000
    assert keys == ["k2", "k3", "k4", "k5"]


def test_oversized_value_is_stored_as_reference_stub() -> None:
    """Values above the per-value limit should leave only a stub in history."""
    store, clock = build_store()
    big_value = "x" * (500 * 1024)
    clock.now = 10.0
    store.write("big", big_value, context("n1"))

    commit = list(store.commits_for_key("big"))[0]

    assert commit.new_value[TOO_LARGE_MARKER] is True
    assert commit.new_value["key"] == "big"
    assert commit.new_value["size"] == len(big_value) + 2
    assert commit.stored_size == REFERENCE_STUB_COST
    assert store.read("big") == big_value
    assert is_unavailable(store.snapshot_at(10.0).get("big"))
    assert is_unavailable(store.snapshot_at(1_000.0).get("big"))


def test_small_values_keep_previous_and_new_payloads() -> None:
    """Small writes should retain both sides of the change."""
    store, _ = build_store()
    store.write("a", {"v": 1}, context("n1"))
    store.write("a", {"v": 2}, context("n2"))

    commit = list(store.commits_for_key("a"))[-1]

    assert commit.previous_value == {"v": 1}
    assert commit.new_value == {"v": 2}
    assert commit.stored_size == 2 * len('{"v":1}')


def test_history_is_isolated_from_caller_mutation() -> None:
    """Mutating a written object later should not rewrite history."""
    store, _ = build_store()
    payload = {"items": [1]}
    store.write("a", payload, context("n1"))

    payload["items"].append(2)

    assert list(store.history())[0].new_value == {"items": [1]}


def test_views_are_restartable_and_reflect_new_commits() -> None:
    """Query views should be re-iterable and read the log lazily."""
    store, _ = build_store()
    store.write("a", 1, context("n1"))
    view = store.commits_by_actor("n1")

    first_pass = [commit.key for commit in view]
    second_pass = [commit.key for commit in view]
    store.write("b", 2, context("n1"))

    assert first_pass == second_pass == ["a"]
    assert [commit.key for commit in view] == ["a", "b"]


def test_commits_since_is_inclusive() -> None:
    """Time queries should include commits at the boundary."""
    store, clock = build_store()
    for timestamp in (100.0, 200.0, 300.0):
        clock.now = timestamp
        store.write("a", timestamp, context("n1"))

    assert [commit.timestamp for commit in store.commits_since(200.0)] == [200.0, 300.0]


def test_commits_by_actor_includes_reads() -> None:
    """Audit queries should answer who read a key and when."""
    store, clock = build_store()
    store.write("a", 1, context("writer"))
    clock.now = 50.0
    store.read("a", "reader")

    reads = store.commits_by_actor("reader").to_list()

    assert [(commit.operation, commit.timestamp) for commit in reads] == [("read", 50.0)]


def test_value_summary_is_bounded() -> None:
    """Commit previews should respect the configured length."""
    store, _ = build_store(value_summary_length=10)
    store.write("a", "abcdefghijklmnopqrstuvwxyz", context("n1"))

    summary = list(store.history())[0].value_summary

    assert summary == "abcdefg..."


def test_clear_history_keeps_live_items() -> None:
    """Clearing history should not touch the live store."""
    store, _ = build_store()
    store.write("a", 1, context("n1"))

    store.clear_history()

    assert len(store.history()) == 0
    assert store.commit_log.truncated is True
    assert store.read("a") == 1


def test_count_retention_keeps_the_newest_commit() -> None:
    """A one-commit budget should still retain the commit just appended."""
    store, clock = build_store(max_commit_count=1)
    clock.now = 10.0
    store.write("a", 1, context("n1"))
    clock.now = 20.0
    store.write("a", 2, context("n1"))

    retained = store.history().to_list()

    assert len(retained) == 1
    assert store.snapshot_at(20.0).to_dict() == {"a": 2}
    assert store.snapshot_at_commit(retained[0].commit_id).get("a") == 2


def test_byte_retention_keeps_a_commit_larger_than_the_target() -> None:
    """A single commit above 80% of the byte budget should not be evicted."""
    store, clock = build_store(max_history_bytes=1_000, per_value_size_limit=600)
    clock.now = 1.0
    store.write("a", "x" * 498, context("n1"))
    clock.now = 2.0
    store.write("a", "y" * 498, context("n1"))

    retained = store.history().to_list()

    assert [commit.new_value for commit in retained] == ["y" * 498]
    assert store.commit_log.stored_bytes == 1_000
    assert store.commit_log.evicted_count == 1
    assert store.snapshot_at(2.0).get("a") == "y" * 498
