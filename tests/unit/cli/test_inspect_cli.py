"""Unit tests for CLI command handling."""

from __future__ import annotations

import json

from cli.main import main
from store.state_io import save_state_file
from tests.store_factories import build_store, context


def _write_state(tmp_path):
    store, clock = build_store()
    clock.now = 100.0
    store.write("a", 1, context("X", "flow.chat"))
    clock.now = 200.0
    store.write("a", 2, context("Y", "flow.chat"))
    store.write("b", "note", context("Y"))
    return save_state_file(tmp_path / "state.json", store), store


def test_cli_keys_lists_live_items(tmp_path, capsys) -> None:
    """Keys command should print one row per live item."""
    state_path, _ = _write_state(tmp_path)

    exit_code = main(["--state-file", str(state_path), "keys"])
    rows = capsys.readouterr().out.strip().splitlines()

    assert exit_code == 0
    assert rows == ["a\t2\tflow.chat\tY", "b\t1\t-\tY"]


def test_cli_history_filters_by_actor(tmp_path, capsys) -> None:
    """History command should honor the actor filter."""
    state_path, _ = _write_state(tmp_path)

    exit_code = main(["--state-file", str(state_path), "history", "--actor", "X"])
    rows = capsys.readouterr().out.strip().splitlines()

    assert exit_code == 0
    assert len(rows) == 1 and rows[0].split("\t")[2:5] == ["write", "a", "X"]


def test_cli_snapshot_prints_values_at_timestamp(tmp_path, capsys) -> None:
    """Snapshot command should print reconstructed values as JSON."""
    state_path, _ = _write_state(tmp_path)

    exit_code = main(["--state-file", str(state_path), "snapshot", "--at", "150"])
    payload = json.loads(capsys.readouterr().out)

    assert exit_code == 0
    assert payload == {"a": 1}


def test_cli_diff_reports_changes(tmp_path, capsys) -> None:
    """Diff command should print added and modified keys."""
    state_path, _ = _write_state(tmp_path)

    exit_code = main(
        ["--state-file", str(state_path), "diff", "--from-at", "150", "--to-at", "250"]
    )
    payload = json.loads(capsys.readouterr().out)

    assert exit_code == 0
    assert payload["modified"] == ["a"] and payload["added"] == ["b"]
    assert payload["details"]["a"]["changed_by"] == "Y"


def test_cli_reports_errors_with_exit_code(tmp_path, capsys) -> None:
    """Store errors should print an error row and exit non-zero."""
    state_path, _ = _write_state(tmp_path)

    exit_code = main(["--state-file", str(state_path), "snapshot", "--commit", "nope"])
    output = capsys.readouterr().out

    assert exit_code == 1
    assert output.startswith("error=")


def test_cli_stats_prints_counts(tmp_path, capsys) -> None:
    """Stats command should print key=value rows."""
    state_path, _ = _write_state(tmp_path)

    exit_code = main(["--state-file", str(state_path), "stats"])
    rows = dict(line.split("=", 1) for line in capsys.readouterr().out.strip().splitlines())

    assert exit_code == 0
    assert rows["item_count"] == "2"
    assert rows["commit_count"] == "3"
