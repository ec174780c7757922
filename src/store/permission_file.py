"""Typed YAML permission file parsing.

This module loads declarative per-actor permission sets so flows can ship
their access rules alongside their node configuration. One strict schema is
enforced so typos fail loudly instead of silently granting access.
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Sequence, cast

import yaml

from core.constants import PERMISSION_FILE_VERSION
from core.errors import BackpackConfigError
from core.namespaces import validate_pattern
from core.types import PermissionSet

_PERMISSION_FIELDS = {
    "read_keys",
    "write_keys",
    "denied_keys",
    "read_namespaces",
    "write_namespaces",
}


def load_permission_file(file_path: str | Path) -> dict[str, PermissionSet]:
    """Load and validate a YAML permission file from disk.

    Args:
        file_path: Path to the YAML permission file.

    Returns:
        Mapping of actor id to permission set.

    Raises:
        BackpackConfigError: If the file is missing or fails schema checks.
        InvalidPatternError: If a namespace pattern is malformed.
    """
    payload = _load_yaml_payload(Path(file_path))
    return parse_permission_payload(payload)


def parse_permission_payload(payload: object) -> dict[str, PermissionSet]:
    """Validate an already-decoded permission document."""
    root_mapping = _expect_mapping(payload, "permission file root")
    _validate_keys(root_mapping, {"version", "permissions"}, "permission file root")
    _parse_version(root_mapping)
    raw_permissions = root_mapping.get("permissions")
    if raw_permissions is None:
        return {}
    actors_mapping = _expect_mapping(raw_permissions, "permissions")
    return {
        actor_id: _parse_permission_set(actor_payload, actor_id)
        for actor_id, actor_payload in actors_mapping.items()
    }


def _load_yaml_payload(permission_file: Path) -> object:
    resolved_file = permission_file.expanduser().resolve()
    if not resolved_file.exists():
        raise BackpackConfigError(
            f"Permission file does not exist at {resolved_file}. Provide a valid YAML file path."
        )
    try:
        payload = cast(object, yaml.safe_load(resolved_file.read_text(encoding="utf-8")))
    except OSError as error:
        raise BackpackConfigError(
            f"Failed to read permission file at {resolved_file}: {error}."
        ) from error
    except yaml.YAMLError as error:
        raise BackpackConfigError(
            f"Failed to parse YAML permission file at {resolved_file}: {error}. "
            "Fix YAML syntax and retry."
        ) from error
    if payload is None:
        raise BackpackConfigError(
            f"Permission file at {resolved_file} is empty. Define 'version' and 'permissions'."
        )
    return payload


def _parse_version(root_mapping: Mapping[str, object]) -> None:
    raw_version = root_mapping.get("version")
    if not isinstance(raw_version, int) or isinstance(raw_version, bool):
        raise BackpackConfigError(
            "Permission file field 'version' must be an integer. Set version: 1."
        )
    if raw_version != PERMISSION_FILE_VERSION:
        raise BackpackConfigError(
            f"Unsupported permission file version {raw_version}. "
            f"Use version: {PERMISSION_FILE_VERSION}."
        )


def _parse_permission_set(actor_payload: object, actor_id: str) -> PermissionSet:
    context = f"permissions for '{actor_id}'"
    if actor_payload is None:
        return PermissionSet()
    actor_mapping = _expect_mapping(actor_payload, context)
    _validate_keys(actor_mapping, _PERMISSION_FIELDS, context)
    read_patterns = _string_list(actor_mapping, "read_namespaces", context)
    write_patterns = _string_list(actor_mapping, "write_namespaces", context)
    for pattern in read_patterns + write_patterns:
        validate_pattern(pattern)
    return PermissionSet(
        allowed_read_keys=frozenset(_string_list(actor_mapping, "read_keys", context)),
        allowed_write_keys=frozenset(_string_list(actor_mapping, "write_keys", context)),
        denied_keys=frozenset(_string_list(actor_mapping, "denied_keys", context)),
        allowed_read_namespace_patterns=read_patterns,
        allowed_write_namespace_patterns=write_patterns,
    )


def _expect_mapping(value: object, context: str) -> Mapping[str, object]:
    if isinstance(value, Mapping):
        normalized_mapping = {}
        for key, payload in value.items():
            if not isinstance(key, str):
                raise BackpackConfigError(
                    f"Invalid {context}: expected string keys, got {type(key).__name__}."
                )
            normalized_mapping[key] = payload
        return normalized_mapping
    raise BackpackConfigError(
        f"Invalid {context}: expected object mapping, got {type(value).__name__}."
    )


def _string_list(mapping: Mapping[str, object], field_name: str, context: str) -> tuple[str, ...]:
    raw_value = mapping.get(field_name)
    if raw_value is None:
        return ()
    if not isinstance(raw_value, Sequence) or isinstance(raw_value, (str, bytes, bytearray)):
        raise BackpackConfigError(
            f"Invalid {context}: field '{field_name}' must be a list of strings."
        )
    values = []
    for entry in raw_value:
        if not isinstance(entry, str):
            raise BackpackConfigError(
                f"Invalid {context}: field '{field_name}' contains non-string entry {entry!r}."
            )
        values.append(entry)
    return tuple(values)


def _validate_keys(mapping: Mapping[str, object], allowed_keys: set[str], context: str) -> None:
    unknown_keys = sorted(set(mapping) - allowed_keys)
    if unknown_keys:
        raise BackpackConfigError(
            f"Invalid {context}: unknown fields {', '.join(unknown_keys)}."
        )
