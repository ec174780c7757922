"""Value size estimation and history payload policy.

This module decides how much of a value a commit may retain.
Small values are kept in full; oversized values become reference stubs.
"""

from __future__ import annotations

import copy
import json
from typing import Any

from core.constants import REFERENCE_STUB_COST, TOO_LARGE_MARKER, UNAVAILABLE_MARKER


def canonical_json(value: Any) -> str:
    """Render a value as compact, key-sorted JSON.

    Values JSON cannot encode natively fall back to their ``str`` form.
    """
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def estimate_size(value: Any) -> int:
    """Return the UTF-8 byte length of a value's serialized form."""
    return len(canonical_json(value).encode("utf-8"))


def summarize_value(value: Any, max_length: int) -> str:
    """Build a bounded-length textual preview of a value."""
    if value is None:
        return ""
    text = value if isinstance(value, str) else canonical_json(value)
    if len(text) <= max_length:
        return text
    if max_length <= 3:
        return text[:max_length]
    return text[: max_length - 3] + "..."


def build_reference_stub(key: str, size: int) -> dict[str, Any]:
    """Build the placeholder stored instead of an oversized value."""
    return {TOO_LARGE_MARKER: True, "key": key, "size": size}


def is_reference_stub(value: Any) -> bool:
    """Return True for values recorded as reference stubs."""
    return isinstance(value, dict) and value.get(TOO_LARGE_MARKER) is True


def unavailable_sentinel() -> dict[str, bool]:
    """Return the value installed by replay in place of a reference stub."""
    return {UNAVAILABLE_MARKER: True}


def is_unavailable(value: Any) -> bool:
    """Return True for replayed values whose payload was not retained."""
    return isinstance(value, dict) and value.get(UNAVAILABLE_MARKER) is True and len(value) == 1


def retain_for_history(key: str, value: Any, size_limit: int) -> tuple[Any, int]:
    """Apply the per-value size policy to one value.

    Args:
        key: Key the value belongs to.
        value: Value to retain, or None when absent.
        size_limit: Largest serialized size kept in full.

    Returns:
        Pair of retained payload and bytes charged to the history budget.
    """
    if value is None:
        return None, 0
    size = estimate_size(value)
    if size < size_limit:
        return copy.deepcopy(value), size
    return build_reference_stub(key, size), REFERENCE_STUB_COST
