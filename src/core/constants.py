"""Core constants used across Backpack modules.

This module centralizes defaults and sentinel values.
Keeping values here avoids magic literals in store logic.
"""

from __future__ import annotations

DEFAULT_MAX_COMMIT_COUNT = 10_000
DEFAULT_MAX_HISTORY_BYTES = 50 * 1024 * 1024
DEFAULT_PER_VALUE_SIZE_LIMIT = 100 * 1024
DEFAULT_VALUE_SUMMARY_LENGTH = 120
RETENTION_TARGET_RATIO = 0.8
REFERENCE_STUB_COST = 64
EXTERNAL_ACTOR_ID = "external"
DELETED_CHANGED_BY = "deleted"
NAMESPACE_SEPARATOR = "."
NAMESPACE_WILDCARD = "*"
STATE_FORMAT_VERSION = 1
PERMISSION_FILE_VERSION = 1
COMMIT_ID_PREFIX = "commit"
TOO_LARGE_MARKER = "tooLargeForHistory"
UNAVAILABLE_MARKER = "unavailable"
