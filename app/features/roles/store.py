"""
Role Store: organization-scoped persistence of roles.

Every function takes the caller's organization id and never reads or
writes another organization's roles. A role id that exists in a different
organization is reported exactly like a missing one.

Changes are flushed, not committed; the route owns the transaction.
"""
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from sqlalchemy import select, func, case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import DuplicateSlug, RoleInUse, RoleNotFound, SystemRoleImmutable
from app.features.permissions.registry import (
    ADMIN_ROLE_SLUG,
    DEFAULT_ROLE_DETAILS,
    DEFAULT_ROLE_PERMISSIONS,
    PERMISSIONS,
    validate_permissions,
)
from app.features.roles.models import Role
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)

UPDATABLE_FIELDS = ("name", "description", "permissions")


@dataclass
class RoleSummary:
    role: Role
    user_count: int

    @property
    def permission_count(self) -> int:
        return len(self.role.permissions or [])


# ============================================================================
# Reads
# ============================================================================

async def list_roles(db: AsyncSession, organization_id: str) -> list[RoleSummary]:
    """All roles of the organization, system roles first, then oldest first."""
    user_count = (
        select(func.count(User.id))
        .where(User.role_id == Role.id)
        .correlate(Role)
        .scalar_subquery()
    )
    stmt = (
        select(Role, user_count)
        .where(Role.organization_id == organization_id)
        .order_by(case((Role.is_system, 0), else_=1), Role.created_at, Role.id)
    )
    result = await db.execute(stmt)
    return [RoleSummary(role=role, user_count=count or 0) for role, count in result.all()]


async def get_role(db: AsyncSession, organization_id: str, role_id: str) -> Role:
    """
    Raises:
        RoleNotFound: if the id is unknown or belongs to another organization
    """
    result = await db.execute(
        select(Role).where(Role.id == role_id, Role.organization_id == organization_id)
    )
    role = result.scalar_one_or_none()
    if role is None:
        raise RoleNotFound()
    return role


async def get_role_by_slug(db: AsyncSession, organization_id: str, slug: str) -> Optional[Role]:
    result = await db.execute(
        select(Role).where(Role.organization_id == organization_id, Role.slug == slug)
    )
    return result.scalar_one_or_none()


async def count_role_users(db: AsyncSession, role_id: str) -> int:
    result = await db.execute(select(func.count(User.id)).where(User.role_id == role_id))
    return result.scalar_one()


async def list_role_users(db: AsyncSession, organization_id: str, role_id: str) -> list[User]:
    await get_role(db, organization_id, role_id)
    result = await db.execute(
        select(User)
        .where(User.role_id == role_id, User.organization_id == organization_id)
        .order_by(User.full_name)
    )
    return list(result.scalars().all())


# ============================================================================
# Writes
# ============================================================================

async def create_role(
    db: AsyncSession,
    organization_id: str,
    name: str,
    slug: str,
    permissions: Iterable[str],
    description: Optional[str] = None,
) -> Role:
    """
    Create a custom (non-system) role.

    Raises:
        UnknownPermission: if any permission is not in the catalog
        DuplicateSlug: if the organization already has a role with this slug
    """
    validated = validate_permissions(permissions)

    if await get_role_by_slug(db, organization_id, slug) is not None:
        raise DuplicateSlug(slug=slug)

    role = Role(
        organization_id=organization_id,
        name=name,
        slug=slug,
        description=description,
        permissions=list(validated),
        is_system=False,
    )
    db.add(role)
    try:
        await db.flush()
    except IntegrityError:
        # Concurrent insert won the unique constraint
        await db.rollback()
        raise DuplicateSlug(slug=slug)

    log.info("Created role %s (%s) in org %s", role.id, slug, organization_id)
    return role


async def update_role(db: AsyncSession, organization_id: str, role_id: str, changes: dict[str, Any]) -> Role:
    """
    Apply a partial update of name, description and/or permissions.

    Raises:
        RoleNotFound: unknown or cross-tenant id
        SystemRoleImmutable: system role or the admin slug
        UnknownPermission: if any permission is not in the catalog
    """
    role = await get_role(db, organization_id, role_id)
    if role.is_protected:
        raise SystemRoleImmutable()

    if changes.get("permissions") is not None:
        changes = {**changes, "permissions": list(validate_permissions(changes["permissions"]))}

    for key in UPDATABLE_FIELDS:
        if key in changes and (changes[key] is not None or key == "description"):
            setattr(role, key, changes[key])

    await db.flush()
    log.info("Updated role %s in org %s: %s", role.id, organization_id, sorted(changes))
    return role


async def delete_role(db: AsyncSession, organization_id: str, role_id: str) -> Role:
    """
    Raises:
        RoleNotFound: unknown or cross-tenant id
        SystemRoleImmutable: system role or the admin slug
        RoleInUse: one or more users still reference the role
    """
    role = await get_role(db, organization_id, role_id)
    if role.is_protected:
        raise SystemRoleImmutable()

    user_count = await count_role_users(db, role.id)
    if user_count > 0:
        raise RoleInUse(user_count=user_count)

    await db.delete(role)
    try:
        await db.flush()
    except IntegrityError:
        # A user was assigned between the count and the delete; the FK refused it
        await db.rollback()
        raise RoleInUse(user_count=await count_role_users(db, role_id))

    log.info("Deleted role %s (%s) in org %s", role_id, role.slug, organization_id)
    return role


async def provision_system_roles(db: AsyncSession, organization_id: str) -> dict[str, Role]:
    """
    Create the built-in roles for an organization, skipping any that exist.

    ``admin`` is a system role holding the full catalog. ``manager``,
    ``agent`` and ``member`` start from the default sets and stay editable.
    """
    roles: dict[str, Role] = {}
    for slug, permissions in DEFAULT_ROLE_PERMISSIONS.items():
        existing = await get_role_by_slug(db, organization_id, slug)
        if existing is not None:
            roles[slug] = existing
            continue
        details = DEFAULT_ROLE_DETAILS[slug]
        role = Role(
            organization_id=organization_id,
            slug=slug,
            name=details["name"],
            description=details["description"],
            permissions=list(PERMISSIONS if slug == ADMIN_ROLE_SLUG else permissions),
            is_system=slug == ADMIN_ROLE_SLUG,
        )
        db.add(role)
        roles[slug] = role
    await db.flush()
    return roles
