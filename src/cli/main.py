"""Backpack CLI entry points.

This module exposes read-only inspection commands for saved store states.
It maps argparse commands onto SDK calls.
"""

from __future__ import annotations

import argparse
from typing import Any, Sequence

from cli.snapshot_command import (
    add_diff_command,
    add_snapshot_command,
    run_diff_command,
    run_snapshot_command,
)
from core.config import StoreOptions
from core.errors import BackpackError
from store.state_io import load_state_file
from store.versioned_store import VersionedStore


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="backpack", description="Backpack state inspector")
    parser.add_argument("--state-file", required=True, help="Path to a saved store state JSON")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("keys", help="List live keys with version and namespace")
    subparsers.add_parser("stats", help="Print store statistics")
    _add_history_command(subparsers)
    add_snapshot_command(subparsers)
    add_diff_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the Backpack CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        store = load_state_file(args.state_file, options=StoreOptions.from_env())
        if args.command == "keys":
            return _run_keys_command(store)
        if args.command == "stats":
            return _run_stats_command(store)
        if args.command == "history":
            return _run_history_command(store, args)
        if args.command == "snapshot":
            return run_snapshot_command(store, args)
        if args.command == "diff":
            return run_diff_command(store, args)
    except BackpackError as error:
        print(f"error={error}")
        return 1
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _add_history_command(subparsers: Any) -> None:
    parser = subparsers.add_parser("history", help="List retained commits")
    filters = parser.add_mutually_exclusive_group()
    filters.add_argument("--key", help="Only commits touching this key")
    filters.add_argument("--actor", help="Only commits made by this actor")
    filters.add_argument("--since", type=float, help="Only commits at or after this timestamp")


def _run_keys_command(store: VersionedStore) -> int:
    """Print one row per live item."""
    for item in store.items():
        print(
            f"{item.key}\t"
            f"{item.metadata.version}\t"
            f"{item.metadata.source_namespace or '-'}\t"
            f"{item.metadata.source_id}"
        )
    return 0


def _run_stats_command(store: VersionedStore) -> int:
    """Print store statistics as key=value rows."""
    stats = store.stats()
    print(f"item_count={stats.item_count}")
    print(f"commit_count={stats.commit_count}")
    print(f"stored_bytes={stats.stored_bytes}")
    print(f"evicted_commit_count={stats.evicted_commit_count}")
    print(f"namespaces={','.join(stats.namespaces) or '-'}")
    print(f"oldest_commit_timestamp={stats.oldest_commit_timestamp}")
    return 0


def _run_history_command(store: VersionedStore, args: argparse.Namespace) -> int:
    """Print retained commits, optionally filtered."""
    if args.key is not None:
        commits = store.commits_for_key(args.key)
    elif args.actor is not None:
        commits = store.commits_by_actor(args.actor)
    elif args.since is not None:
        commits = store.commits_since(args.since)
    else:
        commits = store.history()
    for commit in commits:
        print(
            f"{commit.commit_id}\t"
            f"{commit.timestamp}\t"
            f"{commit.operation}\t"
            f"{commit.key}\t"
            f"{commit.actor_id}\t"
            f"{commit.value_summary}"
        )
    return 0
