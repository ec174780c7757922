"""Runtime configuration model for Backpack stores.

This module owns all environment variable parsing and validation.
Store instances consume a typed options object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os

from core.constants import (
    DEFAULT_MAX_COMMIT_COUNT,
    DEFAULT_MAX_HISTORY_BYTES,
    DEFAULT_PER_VALUE_SIZE_LIMIT,
    DEFAULT_VALUE_SUMMARY_LENGTH,
)
from core.errors import BackpackConfigError

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class StoreOptions:
    """Validated store construction options.

    Attributes:
        max_commit_count: Retained commit count before eviction starts.
        max_history_bytes: Byte budget across retained commit payloads.
        per_value_size_limit: Largest value kept in full on a commit.
        strict_access_mode: Raise on denial instead of logging and skipping.
        value_summary_length: Maximum characters in a commit value preview.
    """

    max_commit_count: int = DEFAULT_MAX_COMMIT_COUNT
    max_history_bytes: int = DEFAULT_MAX_HISTORY_BYTES
    per_value_size_limit: int = DEFAULT_PER_VALUE_SIZE_LIMIT
    strict_access_mode: bool = False
    value_summary_length: int = DEFAULT_VALUE_SUMMARY_LENGTH

    @classmethod
    def from_env(cls) -> "StoreOptions":
        """Build options from process environment variables.

        Returns:
            A validated options object.

        Raises:
            BackpackConfigError: If environment values are invalid.
        """
        options = cls(
            max_commit_count=_parse_int_env("BACKPACK_MAX_COMMIT_COUNT", DEFAULT_MAX_COMMIT_COUNT),
            max_history_bytes=_parse_int_env(
                "BACKPACK_MAX_HISTORY_BYTES",
                DEFAULT_MAX_HISTORY_BYTES,
            ),
            per_value_size_limit=_parse_int_env(
                "BACKPACK_PER_VALUE_SIZE_LIMIT",
                DEFAULT_PER_VALUE_SIZE_LIMIT,
            ),
            strict_access_mode=_parse_bool_env("BACKPACK_STRICT_ACCESS", False),
            value_summary_length=_parse_int_env(
                "BACKPACK_SUMMARY_LENGTH",
                DEFAULT_VALUE_SUMMARY_LENGTH,
            ),
        )
        options.validate()
        return options

    def validate(self) -> None:
        """Check option ranges and cross-field constraints.

        Raises:
            BackpackConfigError: If any option is out of range.
        """
        _require_positive("max_commit_count", self.max_commit_count)
        _require_positive("max_history_bytes", self.max_history_bytes)
        _require_positive("per_value_size_limit", self.per_value_size_limit)
        _require_positive("value_summary_length", self.value_summary_length)
        if self.per_value_size_limit > self.max_history_bytes:
            raise BackpackConfigError(
                f"per_value_size_limit ({self.per_value_size_limit}) exceeds "
                f"max_history_bytes ({self.max_history_bytes}). "
                "Lower the per-value limit or raise the history budget."
            )


def _require_positive(field_name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise BackpackConfigError(
            f"Invalid {field_name}: expected positive integer, got {value!r}."
        )


def _parse_int_env(variable: str, default: int) -> int:
    """Parse an integer environment value.

    Args:
        variable: Environment variable name.
        default: Value used when the variable is unset.

    Returns:
        Parsed integer.

    Raises:
        BackpackConfigError: If value cannot be parsed into int.
    """
    raw_value = os.getenv(variable)
    if raw_value is None or not raw_value.strip():
        return default
    try:
        return int(raw_value)
    except ValueError as error:
        raise BackpackConfigError(
            f"Invalid {variable} value: expected integer, got '{raw_value}'. "
            f"Set {variable} to a numeric value."
        ) from error


def _parse_bool_env(variable: str, default: bool) -> bool:
    raw_value = os.getenv(variable)
    if raw_value is None or not raw_value.strip():
        return default
    normalized_value = raw_value.strip().lower()
    if normalized_value in _TRUE_VALUES:
        return True
    if normalized_value in _FALSE_VALUES:
        return False
    raise BackpackConfigError(
        f"Invalid {variable} value: expected true/false, got '{raw_value}'."
    )
