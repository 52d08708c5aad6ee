"""
Invitation routes, mounted under /users.

Inviting and listing need ``users.invite``. Verifying and accepting are
public: the invitation token is the credential.
"""
from typing import Annotated, List
from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.core.rate_limit import login_limit
from app.features.audit.dependencies import get_tenant_audit_trail
from app.features.audit.logger import AuditLogger, AuditTrail, get_audit_logger
from app.features.audit.models import ActorType
from app.features.auth.schemas import OrganizationSummary, RoleSummary, SessionResponse
from app.features.invitations import service
from app.features.invitations.schemas import (
    AcceptInvitationRequest,
    InvitationCreate,
    InvitationCreated,
    InvitationPreview,
    InvitationResponse,
)
from app.features.permissions.dependencies import PermissionDecision, require_permission
from app.features.users.auth import AppwriteIdentityStore, get_identity_store


router = APIRouter()

invite_users = require_permission("users.invite")


@router.post("/invite", response_model=InvitationCreated, status_code=status.HTTP_201_CREATED)
async def invite_user(
    body: InvitationCreate,
    decision: Annotated[PermissionDecision, Depends(invite_users)],
    trail: Annotated[AuditTrail, Depends(get_tenant_audit_trail)],
    db: AsyncSession = Depends(get_db),
):
    invitation = await service.create_invitation(db, decision.tenant, body.email, body.role_id)
    await db.commit()

    trail.record("user.invite", "invitation", invitation.id, {"email": invitation.email, "role_id": invitation.role_id})
    return invitation


@router.get("/invitations", response_model=List[InvitationResponse])
async def list_invitations(
    decision: Annotated[PermissionDecision, Depends(invite_users)],
    db: AsyncSession = Depends(get_db),
):
    """Pending invitations of the caller's organization, newest first."""
    return await service.list_pending_invitations(db, decision.tenant)


@router.get("/verify-invitation/{token}", response_model=InvitationPreview)
@login_limit
async def verify_invitation(
    request: Request,
    token: str,
    db: AsyncSession = Depends(get_db),
):
    details = await service.get_valid_invitation(db, token)
    role = details.role
    return InvitationPreview(
        email=details.invitation.email,
        organization=OrganizationSummary.from_model(details.organization),
        role=RoleSummary(id=role.id, slug=role.slug, name=role.name) if role else None,
        expires_at=details.invitation.expires_at,
    )


@router.post("/accept-invitation", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
@login_limit
async def accept_invitation(
    request: Request,
    body: AcceptInvitationRequest,
    background_tasks: BackgroundTasks,
    logger: Annotated[AuditLogger, Depends(get_audit_logger)],
    db: AsyncSession = Depends(get_db),
    identity: AppwriteIdentityStore = Depends(get_identity_store),
):
    """Create the invited account and return a tenant session."""
    session = await service.accept_invitation(db, identity, body.token, body.password, body.full_name)
    await db.commit()

    trail = AuditTrail.for_request(
        request,
        logger,
        background_tasks,
        actor_id=session.user.id,
        actor_type=ActorType.USER,
        organization_id=session.organization.id,
    )
    trail.record("user.invitation_accepted", "user", session.user.id, {"email": session.user.email, "role": session.role_slug})
    return SessionResponse.from_session(session, config.TENANT_TOKEN_TTL)
