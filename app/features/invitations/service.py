"""
Invitation lifecycle: invite, list pending, verify and accept.

Delivery is up to the caller; the inviter receives the token and shares the
acceptance link. Accepting creates the identity account and a user bound to
the inviting organization and the invitation's role.
"""
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from appwrite.exception import AppwriteException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.errors import AccountDeactivated, EmailInUse, InvalidInvitation, InvitationExists, RoleNotFound
from app.features.auth.context import TenantContext
from app.features.auth.service import TenantSession, issue_session, require_password_strength
from app.features.invitations.models import Invitation
from app.features.organizations.models import Organization
from app.features.permissions.registry import FALLBACK_ROLE_SLUG
from app.features.roles.models import Role
from app.features.roles.store import get_role, get_role_by_slug
from app.features.users.auth import AppwriteIdentityStore
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


@dataclass
class InvitationDetails:
    invitation: Invitation
    organization: Organization
    role: Optional[Role]


def _is_expired(invitation: Invitation) -> bool:
    expires_at = invitation.expires_at
    # SQLite hands back naive datetimes
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at < datetime.now(timezone.utc)


async def _email_taken(db: AsyncSession, email: str) -> bool:
    result = await db.execute(select(User.id).where(User.email == email))
    return result.scalar_one_or_none() is not None


async def create_invitation(
    db: AsyncSession,
    tenant: TenantContext,
    email: str,
    role_id: Optional[str] = None,
) -> Invitation:
    """
    Invite an email address into the caller's organization.

    Without a role id the organization's member role is used. An expired
    pending invitation for the same email is replaced.

    Raises:
        EmailInUse: a user with this email already exists
        InvitationExists: a live invitation is already pending
        RoleNotFound: the role is not one of the organization's roles
    """
    email = email.lower()
    if await _email_taken(db, email):
        raise EmailInUse()

    result = await db.execute(
        tenant.scope(select(Invitation), Invitation).where(
            Invitation.email == email,
            Invitation.accepted_at.is_(None),
        )
    )
    for pending in result.scalars().all():
        if not _is_expired(pending):
            raise InvitationExists()
        await db.delete(pending)

    if role_id is not None:
        role = await get_role(db, tenant.organization_id, role_id)
    else:
        role = await get_role_by_slug(db, tenant.organization_id, FALLBACK_ROLE_SLUG)
        if role is None:
            raise RoleNotFound()

    invitation = Invitation(
        organization_id=tenant.organization_id,
        email=email,
        role_id=role.id,
        token=secrets.token_urlsafe(32),
        invited_by=tenant.user_id,
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=config.INVITATION_TTL),
    )
    db.add(invitation)
    await db.flush()
    log.info("Invited %s to org %s as %s", email, tenant.organization_id, role.slug)
    return invitation


async def list_pending_invitations(db: AsyncSession, tenant: TenantContext) -> list[Invitation]:
    stmt = tenant.scope(select(Invitation), Invitation).where(Invitation.accepted_at.is_(None))
    result = await db.execute(stmt.order_by(Invitation.created_at.desc(), Invitation.id.desc()))
    return list(result.scalars().all())


async def get_valid_invitation(db: AsyncSession, token: str) -> InvitationDetails:
    """
    Raises:
        InvalidInvitation: unknown, already accepted or expired token
        AccountDeactivated: the organization is suspended or cancelled
    """
    result = await db.execute(select(Invitation).where(Invitation.token == token))
    invitation = result.scalar_one_or_none()
    if invitation is None or invitation.accepted_at is not None:
        raise InvalidInvitation()
    if _is_expired(invitation):
        raise InvalidInvitation("Invitation has expired")

    organization = await db.get(Organization, invitation.organization_id)
    if organization is None or not organization.is_active:
        raise AccountDeactivated("Organization is not active")

    role = None
    if invitation.role_id:
        role = await db.get(Role, invitation.role_id)
    if role is None:
        role = await get_role_by_slug(db, organization.id, FALLBACK_ROLE_SLUG)
    return InvitationDetails(invitation=invitation, organization=organization, role=role)


async def accept_invitation(
    db: AsyncSession,
    identity: AppwriteIdentityStore,
    token: str,
    password: str,
    full_name: str,
) -> TenantSession:
    """
    Create the invited user and sign them in.

    The identity account is removed again if the local writes fail.

    Raises:
        WeakPassword, InvalidInvitation, AccountDeactivated, EmailInUse
    """
    require_password_strength(password)
    details = await get_valid_invitation(db, token)
    invitation = details.invitation
    if await _email_taken(db, invitation.email):
        raise EmailInUse()

    try:
        appwrite_id = await identity.create_user(invitation.email, password, full_name)
    except AppwriteException as e:
        if e.code == 409:
            raise EmailInUse()
        raise

    try:
        user = User(
            organization_id=invitation.organization_id,
            appwrite_id=appwrite_id,
            email=invitation.email,
            full_name=full_name,
            role_id=details.role.id if details.role else None,
            is_active=True,
        )
        db.add(user)
        invitation.accepted_at = datetime.now(timezone.utc)
        await db.flush()
    except Exception as e:
        await db.rollback()
        try:
            await identity.delete_user(appwrite_id)
        except AppwriteException as cleanup_error:
            log.error("Could not remove identity %s after failed acceptance: %s", appwrite_id, cleanup_error.message)
        if isinstance(e, IntegrityError):
            raise EmailInUse() from e
        raise

    log.info("Invitation %s accepted; user %s joined org %s", invitation.id, user.id, invitation.organization_id)
    return await issue_session(db, user, details.organization)
