"""
Tenant user administration: role assignment, overrides and deactivation.

Lookups by id load the row first and then check its organization, so a
foreign user id is answered with CrossTenantAccess.
"""
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import CannotModifySelf, UserNotFound
from app.features.auth.context import TenantContext
from app.features.permissions.registry import validate_permissions
from app.features.permissions.resolver import PermissionOverrides
from app.features.roles.store import get_role
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


async def list_users(db: AsyncSession, tenant: TenantContext, include_inactive: bool = True) -> list[User]:
    stmt = tenant.scope(select(User), User)
    if not include_inactive:
        stmt = stmt.where(User.is_active.is_(True))
    result = await db.execute(stmt.order_by(User.created_at, User.id))
    return list(result.scalars().all())


async def get_user(db: AsyncSession, tenant: TenantContext, user_id: str) -> User:
    """
    Raises:
        UserNotFound: no user with this id
        CrossTenantAccess: the user belongs to another organization
    """
    user = await db.get(User, user_id)
    if user is None:
        raise UserNotFound()
    return tenant.verify_ownership(user)


def _not_self(tenant: TenantContext, user_id: str) -> None:
    if user_id == tenant.user_id:
        raise CannotModifySelf()


async def set_permission_overrides(
    db: AsyncSession,
    tenant: TenantContext,
    user_id: str,
    grant: Iterable[str],
    revoke: Iterable[str],
) -> PermissionOverrides:
    """
    Replace a user's overrides wholesale.

    Raises:
        CannotModifySelf: callers cannot change their own overrides
        UnknownPermission: if any string is not in the catalog
    """
    _not_self(tenant, user_id)
    user = await get_user(db, tenant, user_id)
    overrides = PermissionOverrides(
        grant=frozenset(validate_permissions(grant)),
        revoke=frozenset(validate_permissions(revoke)),
    )
    user.permissions = overrides.to_json()
    await db.flush()
    log.info("Replaced permission overrides of user %s in org %s", user.id, tenant.organization_id)
    return overrides


async def update_user(
    db: AsyncSession,
    tenant: TenantContext,
    user_id: str,
    role_id: Optional[str] = None,
    is_active: Optional[bool] = None,
    full_name: Optional[str] = None,
) -> User:
    """
    Raises:
        CannotModifySelf: role or active flag changes on the caller
        RoleNotFound: the role is not one of the organization's roles
    """
    if role_id is not None or is_active is not None:
        _not_self(tenant, user_id)
    user = await get_user(db, tenant, user_id)

    if role_id is not None:
        role = await get_role(db, tenant.organization_id, role_id)
        user.role_id = role.id
    if is_active is not None:
        user.is_active = is_active
    if full_name is not None:
        user.full_name = full_name

    await db.flush()
    return user


async def deactivate_user(db: AsyncSession, tenant: TenantContext, user_id: str) -> User:
    """Soft delete: the row stays so audit history keeps its actor."""
    _not_self(tenant, user_id)
    user = await get_user(db, tenant, user_id)
    user.is_active = False
    await db.flush()
    log.info("Deactivated user %s in org %s", user.id, tenant.organization_id)
    return user
