"""
Merge role permissions with per-user overrides.

    effective = (role ∪ grant) \\ revoke

Members of the admin role get the whole catalog and their overrides are
ignored. Everything here is pure and synchronous.
"""
import json
from collections.abc import Set
from dataclasses import dataclass, field
from typing import AbstractSet, Any, Iterable, Iterator

from app.features.permissions.registry import PERMISSIONS, PERMISSION_SET


def _string_set(value: Any) -> frozenset[str]:
    # Anything but a list of strings is treated as empty
    if not isinstance(value, (list, tuple)):
        return frozenset()
    return frozenset(item for item in value if isinstance(item, str))


@dataclass(frozen=True)
class PermissionOverrides:
    """Per-user grant/revoke lists. Revoke wins when a string is in both."""
    grant: frozenset[str] = field(default_factory=frozenset)
    revoke: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_json(cls, data: Any) -> "PermissionOverrides":
        """Build from the stored JSON column; tolerates None, strings and missing keys."""
        if data is None:
            return cls()
        if isinstance(data, str):
            data = json.loads(data) if data.strip() else {}
        if not isinstance(data, dict):
            return cls()
        return cls(grant=_string_set(data.get("grant")), revoke=_string_set(data.get("revoke")))

    def to_json(self) -> dict[str, list[str]]:
        return {"grant": sorted(self.grant), "revoke": sorted(self.revoke)}

    @property
    def is_empty(self) -> bool:
        return not self.grant and not self.revoke


class _AllPermissions(Set):
    """Set view holding every catalog permission; used for the admin role."""

    def __contains__(self, item: object) -> bool:
        return item in PERMISSION_SET

    def __iter__(self) -> Iterator[str]:
        return iter(PERMISSIONS)

    def __len__(self) -> int:
        return len(PERMISSIONS)

    def __repr__(self) -> str:
        return "ALL_PERMISSIONS"


ALL_PERMISSIONS = _AllPermissions()


def resolve(
    role_permissions: Iterable[str],
    overrides: PermissionOverrides | None = None,
    is_system_admin_role: bool = False,
) -> AbstractSet[str]:
    if is_system_admin_role:
        return ALL_PERMISSIONS
    overrides = overrides or PermissionOverrides()
    return frozenset((set(role_permissions) | overrides.grant) - overrides.revoke)


def has_permission(effective: AbstractSet[str], permission: str) -> bool:
    return permission in effective


def has_any(effective: AbstractSet[str], permissions: Iterable[str]) -> bool:
    return any(p in effective for p in permissions)


def has_all(effective: AbstractSet[str], permissions: Iterable[str]) -> bool:
    return all(p in effective for p in permissions)
