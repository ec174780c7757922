"""Namespace composition and single-level glob matching.

Namespaces are dot-segmented paths assigned by the execution engine when a
node is placed in a flow. Patterns may use ``*`` as a whole segment to match
exactly one segment of a namespace.
"""

from __future__ import annotations

from core.constants import NAMESPACE_SEPARATOR, NAMESPACE_WILDCARD
from core.errors import BackpackValidationError, InvalidPatternError


def compose_namespace(parent_path: str | None, local_segment: str) -> str:
    """Join a parent namespace with one local segment.

    Args:
        parent_path: Namespace of the enclosing flow, or None at the root.
        local_segment: Segment contributed by the node being placed.

    Returns:
        Composed dot-segmented namespace.

    Raises:
        BackpackValidationError: If the segment or parent is malformed.
    """
    segment = local_segment.strip()
    if not segment or NAMESPACE_SEPARATOR in segment or NAMESPACE_WILDCARD in segment:
        raise BackpackValidationError(
            f"Invalid namespace segment '{local_segment}': segments must be non-empty "
            "and contain neither '.' nor '*'."
        )
    if not parent_path:
        return segment
    validate_namespace(parent_path)
    return f"{parent_path}{NAMESPACE_SEPARATOR}{segment}"


def validate_namespace(namespace: str) -> None:
    """Reject namespaces with empty or wildcard segments."""
    for segment in namespace.split(NAMESPACE_SEPARATOR):
        if not segment or NAMESPACE_WILDCARD in segment:
            raise BackpackValidationError(
                f"Invalid namespace '{namespace}': every segment must be non-empty "
                "and free of '*'."
            )


def validate_pattern(pattern: str) -> None:
    """Validate a namespace glob pattern.

    Args:
        pattern: Dot-segmented pattern where ``*`` may replace a whole segment.

    Raises:
        InvalidPatternError: If the pattern is empty, has empty segments,
            mixes ``*`` with literal text, or uses ``**``.
    """
    if not isinstance(pattern, str) or not pattern:
        raise InvalidPatternError("Namespace pattern must be a non-empty string.")
    for segment in pattern.split(NAMESPACE_SEPARATOR):
        if not segment:
            raise InvalidPatternError(
                f"Invalid namespace pattern '{pattern}': empty segment."
            )
        if NAMESPACE_WILDCARD in segment and segment != NAMESPACE_WILDCARD:
            raise InvalidPatternError(
                f"Invalid namespace pattern '{pattern}': segment '{segment}' must be "
                "either literal text or a single '*'. Deep matching is not supported."
            )


def namespace_matches(pattern: str, namespace: str | None) -> bool:
    """Return True when a namespace matches a validated pattern."""
    if namespace is None:
        return False
    if pattern == namespace:
        return True
    pattern_segments = pattern.split(NAMESPACE_SEPARATOR)
    namespace_segments = namespace.split(NAMESPACE_SEPARATOR)
    if len(pattern_segments) != len(namespace_segments):
        return False
    for pattern_segment, namespace_segment in zip(pattern_segments, namespace_segments):
        if pattern_segment == NAMESPACE_WILDCARD:
            continue
        if pattern_segment != namespace_segment:
            return False
    return True
