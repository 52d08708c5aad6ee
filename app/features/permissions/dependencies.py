"""
Permission Gate: FastAPI dependencies for route protection.

Permissions are never trusted from the token. On every gated request the
gate reloads the user, their role and their overrides, and merges them with
the resolver. Role edits and override changes take effect on the next
request without re-login.

Usage:
    @router.post("/roles")
    async def create_role(
        decision: PermissionDecision = Depends(require_permission("permissions.manage")),
    ):
        ...
"""
from dataclasses import dataclass
from typing import AbstractSet, Annotated, Iterable, Optional

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.errors import AccountDeactivated, CrossTenantAccess, InsufficientPermission, InvalidToken
from app.features.auth.context import TenantContext
from app.features.auth.dependencies import get_tenant_context
from app.features.organizations.models import Organization
from app.features.permissions.registry import ADMIN_ROLE_SLUG, default_permissions_for
from app.features.permissions.resolver import PermissionOverrides, has_all, has_any, resolve
from app.features.roles.models import Role
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


@dataclass(frozen=True)
class EffectivePermissions:
    """Live permission state of the current user."""
    user: User
    role_slug: Optional[str]
    role_permissions: tuple[str, ...]
    overrides: PermissionOverrides
    effective: AbstractSet[str]

    @property
    def is_admin(self) -> bool:
        return self.role_slug == ADMIN_ROLE_SLUG

    def has(self, permission: str) -> bool:
        return self.is_admin or permission in self.effective

    def has_any(self, permissions: Iterable[str]) -> bool:
        return self.is_admin or has_any(self.effective, permissions)

    def has_all(self, permissions: Iterable[str]) -> bool:
        return self.is_admin or has_all(self.effective, permissions)


@dataclass(frozen=True)
class PermissionDecision:
    """Outcome of a passed gate, handed to the route."""
    tenant: TenantContext
    permissions: EffectivePermissions
    required: tuple[str, ...]

    @property
    def user(self) -> User:
        return self.permissions.user

    @property
    def organization_id(self) -> str:
        return self.tenant.organization_id


async def load_effective_permissions(db: AsyncSession, tenant: TenantContext) -> EffectivePermissions:
    """
    Raises:
        InvalidToken: the token's user no longer exists
        AccountDeactivated: the user was deactivated, or their organization is
            suspended or cancelled
        CrossTenantAccess: the user moved to a different organization
    """
    user = await db.get(User, tenant.user_id)
    if user is None:
        log.info("Token subject %s no longer exists", tenant.user_id)
        raise InvalidToken()
    if not user.is_active:
        raise AccountDeactivated()
    if user.organization_id != tenant.organization_id:
        raise CrossTenantAccess()
    organization = await db.get(Organization, user.organization_id)
    if organization is None or not organization.is_active:
        raise AccountDeactivated("Organization is not active")
    return await compute_effective_permissions(db, user, tenant.principal.role_slug)


async def compute_effective_permissions(
    db: AsyncSession,
    user: User,
    fallback_role_slug: Optional[str] = None,
) -> EffectivePermissions:
    """Merge a user's live role and overrides."""
    role: Optional[Role] = None
    if user.role_id:
        result = await db.execute(
            select(Role).where(Role.id == user.role_id, Role.organization_id == user.organization_id)
        )
        role = result.scalar_one_or_none()

    if role is not None:
        role_slug = role.slug
        role_permissions = tuple(role.permissions or ())
    else:
        # Legacy users without a role row fall back to the registry defaults
        role_slug = fallback_role_slug
        role_permissions = default_permissions_for(role_slug)

    overrides = PermissionOverrides.from_json(user.permissions)
    effective = resolve(role_permissions, overrides, is_system_admin_role=role_slug == ADMIN_ROLE_SLUG)
    return EffectivePermissions(
        user=user,
        role_slug=role_slug,
        role_permissions=role_permissions,
        overrides=overrides,
        effective=effective,
    )


async def get_effective_permissions(
    tenant: Annotated[TenantContext, Depends(get_tenant_context)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> EffectivePermissions:
    return await load_effective_permissions(db, tenant)


def _gate(required: tuple[str, ...], any_of: bool):
    async def permission_dependency(
        tenant: Annotated[TenantContext, Depends(get_tenant_context)],
        permissions: Annotated[EffectivePermissions, Depends(get_effective_permissions)],
    ) -> PermissionDecision:
        allowed = permissions.has_any(required) if any_of else permissions.has_all(required)
        if not allowed:
            log.info(
                "Permission denied: user=%s org=%s role=%s required=%s",
                tenant.user_id, tenant.organization_id, permissions.role_slug, list(required),
            )
            raise InsufficientPermission(required, permissions.role_slug, any_of=any_of)
        return PermissionDecision(tenant=tenant, permissions=permissions, required=required)

    return permission_dependency


def require_permission(permission: str):
    """Dependency requiring one exact permission."""
    return _gate((permission,), any_of=False)


def require_any_permission(permissions: Iterable[str]):
    """Dependency requiring at least one of the permissions."""
    return _gate(tuple(permissions), any_of=True)


def require_all_permissions(permissions: Iterable[str]):
    return _gate(tuple(permissions), any_of=False)
