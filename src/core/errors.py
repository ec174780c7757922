"""Backpack exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each store subsystem raises a specific error type for debuggability.
"""

from __future__ import annotations

from typing import Sequence


class BackpackError(Exception):
    """Base exception for all Backpack failures."""


class BackpackConfigError(BackpackError):
    """Raised for invalid runtime configuration."""


class BackpackValidationError(BackpackError):
    """Raised for malformed keys, contexts, or namespaces."""


class KeyNotFoundError(BackpackError):
    """Raised when a required read finds no live item."""

    def __init__(self, key: str, available_keys: Sequence[str] = ()) -> None:
        self.key = key
        self.available_keys = tuple(available_keys)
        hint = ", ".join(self.available_keys) if self.available_keys else "none"
        super().__init__(f"Key '{key}' not found in backpack. Available keys: {hint}.")


class AccessDeniedError(BackpackError):
    """Raised when strict access mode rejects an operation."""

    def __init__(self, key: str, actor_id: str, operation: str) -> None:
        self.key = key
        self.actor_id = actor_id
        self.operation = operation
        super().__init__(
            f"Actor '{actor_id}' is not permitted to {operation} key '{key}'. "
            "Grant the key or its namespace in the actor's permission set."
        )


class DuplicateKeyError(BackpackError):
    """Raised when a create-only write targets an existing key."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Key '{key}' already exists. Use write() to replace it.")


class CommitNotFoundError(BackpackError):
    """Raised when a commit or actor is missing from retained history."""


class HistoryTruncatedError(BackpackError):
    """Raised when a snapshot cutoff predates retained history."""


class InvalidPatternError(BackpackError):
    """Raised for malformed namespace glob patterns."""


class BackpackSerializationError(BackpackError):
    """Raised when a serialized state cannot be produced or parsed."""


class SerializationVersionMismatchError(BackpackSerializationError):
    """Raised when a serialized state carries an unknown format version."""
