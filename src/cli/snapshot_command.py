"""Snapshot and diff command wiring for Backpack CLI."""

from __future__ import annotations

import argparse
import json
from typing import Any

from store.snapshot_engine import Snapshot
from store.value_sizing import canonical_json
from store.versioned_store import VersionedStore


def add_snapshot_command(subparsers: Any) -> None:
    """Register snapshot subcommand."""
    parser = subparsers.add_parser(
        "snapshot",
        help="Reconstruct store values at a past point",
    )
    cutoff = parser.add_mutually_exclusive_group(required=True)
    cutoff.add_argument("--at", type=float, help="Replay commits up to this timestamp")
    cutoff.add_argument("--commit", help="Replay commits up to and including this commit id")
    cutoff.add_argument("--before-actor", help="Replay commits before this actor's first commit")


def add_diff_command(subparsers: Any) -> None:
    """Register diff subcommand."""
    parser = subparsers.add_parser(
        "diff",
        help="Compare reconstructed state at two timestamps",
    )
    parser.add_argument("--from-at", type=float, required=True, help="Earlier cutoff timestamp")
    parser.add_argument("--to-at", type=float, required=True, help="Later cutoff timestamp")


def run_snapshot_command(store: VersionedStore, args: argparse.Namespace) -> int:
    """Print reconstructed values as a JSON object."""
    snapshot = _resolve_snapshot(store, args)
    print(_render_json(snapshot.to_dict()))
    return 0


def run_diff_command(store: VersionedStore, args: argparse.Namespace) -> int:
    """Print the diff between two timestamps as a JSON object."""
    changes = store.diff(store.snapshot_at(args.from_at), store.snapshot_at(args.to_at))
    payload = {
        "added": list(changes.added),
        "modified": list(changes.modified),
        "deleted": list(changes.deleted),
        "details": {
            key: {"before": row.before, "after": row.after, "changed_by": row.changed_by}
            for key, row in changes.details.items()
        },
    }
    print(_render_json(payload))
    return 0


def _resolve_snapshot(store: VersionedStore, args: argparse.Namespace) -> Snapshot:
    if args.commit is not None:
        return store.snapshot_at_commit(args.commit)
    if args.before_actor is not None:
        return store.snapshot_before_actor(args.before_actor)
    return store.snapshot_at(args.at)


def _render_json(payload: object) -> str:
    return json.dumps(json.loads(canonical_json(payload)), indent=2, sort_keys=True)
