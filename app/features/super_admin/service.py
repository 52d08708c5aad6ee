"""
Super-admin credentials and platform-wide organization management.

Every authentication outcome is audited. Failures are written inline
because they end in an error response. Successes are queued on the trail
and written after the response.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AccountDeactivated, InvalidCredentials, OrganizationNotFound, WeakPassword
from app.features.audit.logger import AuditTrail
from app.features.audit.models import AuditLog
from app.features.auth.passwords import hash_password, verify_password
from app.features.auth.tokens import issue_super_admin_token
from app.features.organizations.models import Organization, OrganizationStatus
from app.features.roles.models import Role
from app.features.super_admin.models import SuperAdmin
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)

MIN_PASSWORD_LENGTH = 12


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return hash_password("not-a-real-password")


# ============================================================================
# Authentication
# ============================================================================

async def get_super_admin_by_email(db: AsyncSession, email: str) -> Optional[SuperAdmin]:
    result = await db.execute(select(SuperAdmin).where(SuperAdmin.email == email.lower()))
    return result.scalar_one_or_none()


async def authenticate_super_admin(
    db: AsyncSession,
    trail: AuditTrail,
    email: str,
    password: str,
) -> tuple[SuperAdmin, str]:
    """
    Verify a super admin's email and password and issue a 1-hour token.

    Raises:
        InvalidCredentials: unknown email or wrong password
        AccountDeactivated: the account is inactive
    """
    email = email.lower()
    admin = await get_super_admin_by_email(db, email)

    if admin is None:
        # Same bcrypt cost as a real check
        verify_password(password, _dummy_hash())
        await trail.write_now("auth.login_failed", "super_admin", None, {"email": email, "reason": "unknown_email"})
        raise InvalidCredentials()

    if not admin.is_active:
        await trail.write_now(
            "auth.login_failed", "super_admin", admin.id,
            {"email": email, "reason": "account_deactivated"}, actor_id=admin.id,
        )
        raise AccountDeactivated("Your super admin account has been deactivated. Please contact support.")

    if not verify_password(password, admin.password_hash):
        await trail.write_now(
            "auth.login_failed", "super_admin", admin.id,
            {"email": email, "reason": "invalid_password"}, actor_id=admin.id,
        )
        raise InvalidCredentials()

    admin.last_login_at = datetime.now(timezone.utc)
    await db.flush()

    trail.record("auth.login", "super_admin", admin.id, {"email": email}, actor_id=admin.id)
    log.info("Super admin %s signed in", admin.id)
    return admin, issue_super_admin_token(admin.id, admin.email)


async def change_super_admin_password(
    db: AsyncSession,
    trail: AuditTrail,
    admin: SuperAdmin,
    current_password: str,
    new_password: str,
) -> None:
    """
    Raises:
        WeakPassword: new password shorter than 12 characters
        InvalidCredentials: current password is wrong
    """
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise WeakPassword(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    if not verify_password(current_password, admin.password_hash):
        await trail.write_now(
            "auth.password_change_failed", "super_admin", admin.id, {"reason": "invalid_current_password"}
        )
        raise InvalidCredentials("Current password is incorrect")

    admin.password_hash = hash_password(new_password)
    await db.flush()
    trail.record("auth.password_changed", "super_admin", admin.id)


async def upsert_super_admin(db: AsyncSession, email: str, password: str, full_name: str) -> SuperAdmin:
    """Create a super admin, or reset the password of an existing one."""
    admin = await get_super_admin_by_email(db, email)
    if admin is None:
        admin = SuperAdmin(email=email.lower(), full_name=full_name, password_hash=hash_password(password))
        db.add(admin)
    else:
        admin.password_hash = hash_password(password)
        admin.is_active = True
    await db.flush()
    return admin


# ============================================================================
# Organizations
# ============================================================================

@dataclass
class OrganizationStats:
    organization: Organization
    user_count: int
    role_count: int = 0


def _user_count():
    return (
        select(func.count(User.id))
        .where(User.organization_id == Organization.id)
        .correlate(Organization)
        .scalar_subquery()
    )


async def list_organizations(
    db: AsyncSession,
    status: Optional[OrganizationStatus] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 50,
) -> list[OrganizationStats]:
    stmt = select(Organization, _user_count())
    if status is not None:
        stmt = stmt.where(Organization.status == status)
    if search:
        pattern = f"%{search.lower()}%"
        stmt = stmt.where(func.lower(Organization.name).like(pattern) | Organization.slug.like(pattern))
    stmt = stmt.order_by(Organization.created_at.desc(), Organization.id.desc()).offset(skip).limit(limit)
    result = await db.execute(stmt)
    return [OrganizationStats(organization=org, user_count=count or 0) for org, count in result.all()]


async def get_organization(db: AsyncSession, organization_id: str) -> OrganizationStats:
    """
    Raises:
        OrganizationNotFound
    """
    organization = await db.get(Organization, organization_id)
    if organization is None:
        raise OrganizationNotFound()
    user_count = await db.scalar(select(func.count(User.id)).where(User.organization_id == organization_id))
    role_count = await db.scalar(select(func.count(Role.id)).where(Role.organization_id == organization_id))
    return OrganizationStats(organization=organization, user_count=user_count or 0, role_count=role_count or 0)


async def set_organization_status(
    db: AsyncSession,
    trail: AuditTrail,
    organization_id: str,
    status: OrganizationStatus,
    reason: Optional[str] = None,
) -> Organization:
    """Change an organization's status and audit it as ``organization.<status>``."""
    organization = await db.get(Organization, organization_id)
    if organization is None:
        raise OrganizationNotFound()

    previous = organization.status
    organization.status = status
    await db.flush()

    trail.record(
        f"organization.{status.value}",
        "organization",
        organization.id,
        {"previous_status": previous.value, "status": status.value, "reason": reason},
        organization_id=organization.id,
    )
    log.info("Organization %s status %s -> %s", organization.id, previous.value, status.value)
    return organization


# ============================================================================
# Audit log
# ============================================================================

async def list_audit_logs(
    db: AsyncSession,
    action: Optional[str] = None,
    actor_id: Optional[str] = None,
    organization_id: Optional[str] = None,
    resource_type: Optional[str] = None,
    skip: int = 0,
    limit: int = 50,
) -> tuple[list[AuditLog], int]:
    stmt = select(AuditLog)
    if action:
        stmt = stmt.where(AuditLog.action == action)
    if actor_id:
        stmt = stmt.where(AuditLog.actor_id == actor_id)
    if organization_id:
        stmt = stmt.where(AuditLog.organization_id == organization_id)
    if resource_type:
        stmt = stmt.where(AuditLog.resource_type == resource_type)

    total = await db.scalar(select(func.count()).select_from(stmt.subquery()))
    result = await db.execute(
        stmt.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(skip).limit(limit)
    )
    return list(result.scalars().all()), total or 0
