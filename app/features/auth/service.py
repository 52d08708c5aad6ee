"""
Tenant Credential Issuer.

Verifies tenant credentials against the identity store and issues tenant
session tokens. Also handles organization self-registration and password
maintenance.
"""
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from appwrite.exception import AppwriteException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.errors import (
    AccountDeactivated,
    EmailInUse,
    InvalidCredentials,
    InvalidResetCode,
    OrganizationExists,
    WeakPassword,
)
from app.features.auth.models import PasswordResetCode
from app.features.auth.tokens import decode_password_reset_token, issue_password_reset_token, issue_tenant_token
from app.features.organizations.models import Organization, OrganizationStatus
from app.features.permissions.registry import ADMIN_ROLE_SLUG, FALLBACK_ROLE_SLUG, default_permissions_for
from app.features.roles.models import Role
from app.features.roles.store import provision_system_roles
from app.features.users.auth import AppwriteIdentityStore
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)

MIN_PASSWORD_LENGTH = 8


@dataclass
class TenantSession:
    user: User
    organization: Organization
    role: Optional[Role]
    role_slug: str
    role_permissions: list[str]
    token: str


def slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")[:100] or "organization"


def require_password_strength(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise WeakPassword(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


async def _get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def issue_session(db: AsyncSession, user: User, organization: Organization, ttl: Optional[int] = None) -> TenantSession:
    role = await db.get(Role, user.role_id) if user.role_id else None
    role_slug = role.slug if role is not None else FALLBACK_ROLE_SLUG
    role_permissions = list(role.permissions or []) if role is not None else list(default_permissions_for(role_slug))
    token = issue_tenant_token(user.id, organization.id, role_slug, role_permissions, ttl)
    return TenantSession(
        user=user,
        organization=organization,
        role=role,
        role_slug=role_slug,
        role_permissions=role_permissions,
        token=token,
    )


# ============================================================================
# Login
# ============================================================================

async def authenticate_tenant_user(
    db: AsyncSession,
    identity: AppwriteIdentityStore,
    email: str,
    password: str,
) -> TenantSession:
    """
    Verify credentials and issue a 7-day tenant token.

    Raises:
        InvalidCredentials: unknown email, wrong password or no local profile
        AccountDeactivated: inactive user, or organization not allowed to sign in
    """
    email = email.lower()
    appwrite_id = await identity.verify_password(email, password)
    if appwrite_id is None:
        log.info("Tenant login rejected for %s", email)
        raise InvalidCredentials()

    result = await db.execute(select(User).where(User.appwrite_id == appwrite_id))
    user = result.scalar_one_or_none()
    if user is None:
        log.warning("Identity %s has no user profile", appwrite_id)
        raise InvalidCredentials()
    if not user.is_active:
        raise AccountDeactivated()

    organization = await db.get(Organization, user.organization_id)
    if organization is None or not organization.is_active:
        raise AccountDeactivated("Organization is not active")

    user.last_login_at = datetime.now(timezone.utc)
    await db.flush()

    session = await issue_session(db, user, organization)
    log.info("User %s signed in to org %s as %s", user.id, organization.id, session.role_slug)
    return session


# ============================================================================
# Registration
# ============================================================================

async def register_organization(
    db: AsyncSession,
    identity: AppwriteIdentityStore,
    organization_name: str,
    email: str,
    password: str,
    full_name: str,
    organization_slug: Optional[str] = None,
    status: OrganizationStatus = OrganizationStatus.ACTIVE,
) -> TenantSession:
    """
    Create an organization, its built-in roles and its first admin user.

    The identity account is created first and removed again if the local
    writes fail. Returns a session with a short-lived token.

    Raises:
        WeakPassword, OrganizationExists, EmailInUse
    """
    require_password_strength(password)
    email = email.lower()
    slug = slugify(organization_slug or organization_name)

    existing = await db.execute(select(Organization.id).where(Organization.slug == slug))
    if existing.scalar_one_or_none() is not None:
        raise OrganizationExists(slug=slug)
    if await _get_user_by_email(db, email) is not None:
        raise EmailInUse()

    try:
        appwrite_id = await identity.create_user(email, password, full_name)
    except AppwriteException as e:
        if e.code == 409:
            raise EmailInUse()
        raise

    try:
        organization = Organization(name=organization_name, slug=slug, status=status)
        db.add(organization)
        await db.flush()

        roles = await provision_system_roles(db, organization.id)
        user = User(
            organization_id=organization.id,
            appwrite_id=appwrite_id,
            email=email,
            full_name=full_name,
            role_id=roles[ADMIN_ROLE_SLUG].id,
            is_active=True,
        )
        db.add(user)
        await db.flush()
    except Exception as e:
        await db.rollback()
        try:
            await identity.delete_user(appwrite_id)
        except AppwriteException as cleanup_error:
            log.error("Could not remove identity %s after failed registration: %s", appwrite_id, cleanup_error.message)
        if isinstance(e, IntegrityError):
            raise OrganizationExists(slug=slug) from e
        raise

    log.info("Registered organization %s (%s) with admin %s", organization.id, slug, user.id)
    return await issue_session(db, user, organization, ttl=config.REGISTRATION_TOKEN_TTL)


# ============================================================================
# Password maintenance
# ============================================================================

async def change_password(
    identity: AppwriteIdentityStore,
    user: User,
    current_password: str,
    new_password: str,
) -> None:
    """
    Raises:
        WeakPassword: new password too short
        InvalidCredentials: current password is wrong
    """
    require_password_strength(new_password)
    if await identity.verify_password(user.email, current_password) != user.appwrite_id:
        raise InvalidCredentials("Current password is incorrect")
    await identity.update_password(user.appwrite_id, new_password)
    log.info("User %s changed their password", user.id)


async def request_password_reset(db: AsyncSession, email: str) -> Optional[str]:
    """
    Store a fresh 6-digit code for the account.

    Returns the code, or None when no active account uses the email. Callers
    must answer both cases the same way.
    """
    email = email.lower()
    user = await _get_user_by_email(db, email)
    if user is None or not user.is_active:
        log.info("Password reset requested for unknown or inactive email")
        return None

    code = f"{secrets.randbelow(1_000_000):06d}"
    expires_at = datetime.now(timezone.utc) + timedelta(seconds=config.RESET_CODE_TTL)

    record = await db.get(PasswordResetCode, email)
    if record is None:
        db.add(PasswordResetCode(email=email, code=code, expires_at=expires_at, used=False))
    else:
        record.code = code
        record.expires_at = expires_at
        record.used = False
    await db.flush()
    return code


async def _valid_reset_record(db: AsyncSession, email: str) -> PasswordResetCode:
    record = await db.get(PasswordResetCode, email)
    if record is None or record.used or _aware(record.expires_at) < datetime.now(timezone.utc):
        raise InvalidResetCode()
    return record


async def verify_reset_code(db: AsyncSession, email: str, code: str) -> str:
    """
    Exchange a valid code for a 5-minute password reset token.

    Raises:
        InvalidResetCode: unknown, used, expired or mismatched code
    """
    email = email.lower()
    record = await _valid_reset_record(db, email)
    if not secrets.compare_digest(record.code, code):
        raise InvalidResetCode()
    return issue_password_reset_token(email)


async def reset_password(
    db: AsyncSession,
    identity: AppwriteIdentityStore,
    reset_token: str,
    new_password: str,
) -> None:
    """
    Raises:
        InvalidToken / TokenExpired / WrongTokenType: unusable reset token
        WeakPassword: new password too short
        InvalidResetCode: code already used or expired, or account gone
    """
    email = decode_password_reset_token(reset_token)
    require_password_strength(new_password)
    record = await _valid_reset_record(db, email)

    user = await _get_user_by_email(db, email)
    if user is None:
        raise InvalidResetCode()

    await identity.update_password(user.appwrite_id, new_password)
    record.used = True
    await db.flush()
    log.info("Password reset completed for user %s", user.id)
