"""Versioned serialization of store state.

This module converts a store to and from a JSON-compatible payload so an
external collaborator can persist it. Unknown format versions are rejected
rather than guessed at.
"""

from __future__ import annotations

import copy
import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Callable, Mapping

from core.config import StoreOptions
from core.constants import STATE_FORMAT_VERSION
from core.errors import BackpackSerializationError, SerializationVersionMismatchError
from core.logging_config import get_logger
from core.types import (
    SUPPORTED_OPERATIONS,
    Commit,
    CommitMetadata,
    ItemMetadata,
    PermissionSet,
    StoreItem,
)
from store.versioned_store import VersionedStore

_LOGGER = get_logger(__name__)


def serialize_store(store: VersionedStore) -> dict[str, Any]:
    """Build the serialized form of a store.

    Args:
        store: Store to serialize.

    Returns:
        JSON-compatible payload tagged with the format version.
    """
    commit_log = store.commit_log
    return {
        "format_version": STATE_FORMAT_VERSION,
        "items": [[item.key, _item_to_dict(item)] for item in store.items()],
        "commits": [_commit_to_dict(commit) for commit in commit_log],
        "permissions": {
            actor_id: _permission_set_to_dict(permission_set)
            for actor_id, permission_set in store.permissions().items()
        },
        "key_versions": store.key_versions(),
        "history_truncated": commit_log.truncated,
        "evicted_commit_count": commit_log.evicted_count,
    }


def deserialize_store(
    payload: Mapping[str, Any],
    options: StoreOptions | None = None,
    clock: Callable[[], float] | None = None,
) -> VersionedStore:
    """Rebuild a store from its serialized form.

    Args:
        payload: Output of ``serialize_store``.
        options: Options for the rebuilt store; defaults when omitted.
        clock: Optional time source for the rebuilt store.

    Returns:
        New store holding the same items, commits, and permissions.

    Raises:
        SerializationVersionMismatchError: If the version tag is missing or unknown.
        BackpackSerializationError: If the payload is malformed.
    """
    if not isinstance(payload, Mapping):
        raise BackpackSerializationError(
            f"Invalid serialized state: expected object, got {type(payload).__name__}."
        )
    version = payload.get("format_version")
    if isinstance(version, bool) or version != STATE_FORMAT_VERSION:
        raise SerializationVersionMismatchError(
            f"Unsupported serialized state version {version!r}. "
            f"This build reads format_version {STATE_FORMAT_VERSION} only."
        )
    try:
        items = [_item_from_row(row) for row in payload.get("items", [])]
        commits = [_commit_from_dict(row) for row in payload.get("commits", [])]
        permissions = {
            str(actor_id): _permission_set_from_dict(row)
            for actor_id, row in dict(payload.get("permissions", {})).items()
        }
        key_versions = {
            str(key): int(value) for key, value in dict(payload.get("key_versions", {})).items()
        }
        evicted_count = int(payload.get("evicted_commit_count", 0))
        truncated = bool(payload.get("history_truncated", False))
    except (KeyError, TypeError, ValueError) as error:
        raise BackpackSerializationError(
            f"Invalid serialized state: {error}. Re-export the state from a live store."
        ) from error
    store = VersionedStore(options=options, clock=clock)
    store.restore_state(
        items=items,
        commits=commits,
        permissions=permissions,
        key_versions=key_versions,
        evicted_count=evicted_count,
        truncated=truncated,
    )
    return store


def save_state_file(file_path: str | Path, store: VersionedStore) -> Path:
    """Write a store's serialized form to a JSON file.

    Raises:
        BackpackSerializationError: If values cannot be encoded or the write fails.
    """
    resolved_path = Path(file_path).expanduser().resolve()
    try:
        body = json.dumps(serialize_store(store), indent=2)
    except (TypeError, ValueError) as error:
        raise BackpackSerializationError(
            f"Failed to encode store state: {error}. Store only JSON-compatible values."
        ) from error
    try:
        resolved_path.parent.mkdir(parents=True, exist_ok=True)
        resolved_path.write_text(body + "\n", encoding="utf-8")
    except OSError as error:
        raise BackpackSerializationError(
            f"Failed to write state file {resolved_path}: {error}."
        ) from error
    _LOGGER.info(
        "state_saved",
        path=str(resolved_path),
        item_count=len(store.items()),
        commit_count=len(store.commit_log),
    )
    return resolved_path


def load_state_file(
    file_path: str | Path,
    options: StoreOptions | None = None,
    clock: Callable[[], float] | None = None,
) -> VersionedStore:
    """Read a JSON state file into a new store.

    Raises:
        BackpackSerializationError: If the file is missing or unparsable.
        SerializationVersionMismatchError: If the version tag is unknown.
    """
    resolved_path = Path(file_path).expanduser().resolve()
    try:
        payload = json.loads(resolved_path.read_text(encoding="utf-8"))
    except FileNotFoundError as error:
        raise BackpackSerializationError(
            f"State file not found at {resolved_path}. Save a store state first."
        ) from error
    except json.JSONDecodeError as error:
        raise BackpackSerializationError(
            f"Failed to parse JSON at {resolved_path}: {error.msg}."
        ) from error
    except OSError as error:
        raise BackpackSerializationError(
            f"Failed to read state file {resolved_path}: {error}."
        ) from error
    store = deserialize_store(payload, options=options, clock=clock)
    _LOGGER.info(
        "state_loaded",
        path=str(resolved_path),
        item_count=len(store.items()),
        commit_count=len(store.commit_log),
    )
    return store


def _item_to_dict(item: StoreItem) -> dict[str, Any]:
    metadata = item.metadata
    return {
        "value": copy.deepcopy(item.value),
        "metadata": {
            "source_id": metadata.source_id,
            "source_namespace": metadata.source_namespace,
            "timestamp": metadata.timestamp,
            "version": metadata.version,
            "tags": sorted(metadata.tags),
            "source_name": metadata.source_name,
        },
    }


def _item_from_row(row: Any) -> StoreItem:
    key, body = row
    metadata = body["metadata"]
    return StoreItem(
        key=str(key),
        value=body["value"],
        metadata=ItemMetadata(
            source_id=str(metadata["source_id"]),
            source_namespace=_optional_str(metadata.get("source_namespace")),
            timestamp=float(metadata["timestamp"]),
            version=int(metadata["version"]),
            tags=frozenset(str(tag) for tag in metadata.get("tags", [])),
            source_name=_optional_str(metadata.get("source_name")),
        ),
    )


def _commit_to_dict(commit: Commit) -> dict[str, Any]:
    payload = asdict(commit)
    payload["metadata"]["tags"] = list(commit.metadata.tags)
    return payload


def _commit_from_dict(row: Mapping[str, Any]) -> Commit:
    operation = row["operation"]
    if operation not in SUPPORTED_OPERATIONS:
        raise ValueError(f"unknown commit operation {operation!r}")
    metadata = row.get("metadata") or {}
    raw_version = metadata.get("version")
    return Commit(
        commit_id=str(row["commit_id"]),
        timestamp=float(row["timestamp"]),
        actor_id=str(row["actor_id"]),
        operation=operation,
        key=str(row["key"]),
        value_summary=str(row.get("value_summary", "")),
        previous_value=row.get("previous_value"),
        new_value=row.get("new_value"),
        stored_size=int(row.get("stored_size", 0)),
        metadata=CommitMetadata(
            namespace=_optional_str(metadata.get("namespace")),
            version=int(raw_version) if raw_version is not None else None,
            tags=tuple(str(tag) for tag in metadata.get("tags", [])),
            actor_name=_optional_str(metadata.get("actor_name")),
        ),
    )


def _permission_set_to_dict(permission_set: PermissionSet) -> dict[str, list[str]]:
    return {
        "allowed_read_keys": sorted(permission_set.allowed_read_keys),
        "allowed_write_keys": sorted(permission_set.allowed_write_keys),
        "denied_keys": sorted(permission_set.denied_keys),
        "allowed_read_namespace_patterns": list(permission_set.allowed_read_namespace_patterns),
        "allowed_write_namespace_patterns": list(permission_set.allowed_write_namespace_patterns),
    }


def _permission_set_from_dict(row: Mapping[str, Any]) -> PermissionSet:
    return PermissionSet(
        allowed_read_keys=frozenset(row.get("allowed_read_keys", [])),
        allowed_write_keys=frozenset(row.get("allowed_write_keys", [])),
        denied_keys=frozenset(row.get("denied_keys", [])),
        allowed_read_namespace_patterns=tuple(row.get("allowed_read_namespace_patterns", [])),
        allowed_write_namespace_patterns=tuple(row.get("allowed_write_namespace_patterns", [])),
    )


def _optional_str(value: Any) -> str | None:
    return None if value is None else str(value)
