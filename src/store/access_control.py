"""Per-identity access control over keys and namespaces.

Enforcement is opt-in: an actor without a registered permission set is
unrestricted. Once a set is registered, anything it does not grant is denied.
"""

from __future__ import annotations

from typing import Mapping

from core.namespaces import namespace_matches, validate_pattern
from core.types import AccessOperation, PermissionSet, StoreItem


class AccessController:
    """Permission registry and evaluator owned by one store instance."""

    def __init__(self, permissions: Mapping[str, PermissionSet] | None = None) -> None:
        self._permissions: dict[str, PermissionSet] = {}
        for actor_id, permission_set in (permissions or {}).items():
            self.set_permissions(actor_id, permission_set)

    def set_permissions(self, actor_id: str, permission_set: PermissionSet) -> None:
        """Register or replace the permission set for an actor.

        Raises:
            InvalidPatternError: If any namespace pattern is malformed.
        """
        for pattern in permission_set.allowed_read_namespace_patterns:
            validate_pattern(pattern)
        for pattern in permission_set.allowed_write_namespace_patterns:
            validate_pattern(pattern)
        self._permissions[actor_id] = permission_set

    def remove_permissions(self, actor_id: str) -> bool:
        """Drop an actor's permission set, restoring unrestricted access."""
        return self._permissions.pop(actor_id, None) is not None

    def permissions_for(self, actor_id: str) -> PermissionSet | None:
        return self._permissions.get(actor_id)

    def all_permissions(self) -> dict[str, PermissionSet]:
        """Return a copy of the actor-to-permission mapping."""
        return dict(self._permissions)

    def check_access(
        self,
        key: str,
        actor_id: str,
        operation: AccessOperation,
        item: StoreItem | None,
    ) -> bool:
        """Evaluate access for one operation; first matching rule wins.

        Args:
            key: Key being accessed.
            actor_id: Identity performing the operation.
            operation: Either read or write.
            item: Live item for the key, or None when absent.

        Returns:
            True when the operation is allowed.
        """
        permission_set = self._permissions.get(actor_id)
        if permission_set is None:
            return True
        if item is None:
            return True
        if operation == "read":
            allowed_keys = permission_set.allowed_read_keys
            patterns = permission_set.allowed_read_namespace_patterns
        else:
            allowed_keys = permission_set.allowed_write_keys
            patterns = permission_set.allowed_write_namespace_patterns
        if key in allowed_keys:
            return True
        namespace = item.metadata.source_namespace
        if any(namespace_matches(pattern, namespace) for pattern in patterns):
            return True
        if key in permission_set.denied_keys:
            return False
        return False
