"""
Super-admin API routes.

Separate realm from tenant auth: super admins sign in against the
super_admins table, get 1-hour tokens, have no organization context and
are audited on every mutation.
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.core.rate_limit import login_limit
from app.features.audit.logger import AuditTrail
from app.features.audit.schemas import AuditLogListResponse, AuditLogResponse
from app.features.auth.schemas import MessageResponse
from app.features.auth.service import register_organization
from app.features.organizations.models import OrganizationStatus
from app.features.organizations.schemas import (
    OrganizationCreate,
    OrganizationListResponse,
    OrganizationResponse,
    OrganizationStatusUpdate,
    OrganizationWithStats,
)
from app.features.super_admin import service
from app.features.super_admin.dependencies import (
    get_anonymous_audit_trail,
    get_current_super_admin,
    get_super_admin_audit_trail,
)
from app.features.super_admin.models import SuperAdmin
from app.features.super_admin.schemas import (
    SuperAdminChangePasswordRequest,
    SuperAdminLoginRequest,
    SuperAdminResponse,
    SuperAdminSessionResponse,
)
from app.features.users.auth import AppwriteIdentityStore, get_identity_store
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


def _with_stats(stats: service.OrganizationStats) -> OrganizationWithStats:
    return OrganizationWithStats(
        **OrganizationResponse.model_validate(stats.organization).model_dump(),
        user_count=stats.user_count,
        role_count=stats.role_count,
    )


# ============================================================================
# Authentication
# ============================================================================

@router.post("/login", response_model=SuperAdminSessionResponse)
@login_limit
async def login(
    request: Request,
    body: SuperAdminLoginRequest,
    trail: Annotated[AuditTrail, Depends(get_anonymous_audit_trail)],
    db: AsyncSession = Depends(get_db),
):
    admin, token = await service.authenticate_super_admin(db, trail, body.email, body.password)
    await db.commit()
    return SuperAdminSessionResponse(
        token=token,
        expires_in=config.SUPER_ADMIN_TOKEN_TTL,
        super_admin=SuperAdminResponse.model_validate(admin),
    )


@router.get("/me", response_model=SuperAdminResponse)
async def me(admin: Annotated[SuperAdmin, Depends(get_current_super_admin)]):
    return admin


@router.post("/logout", response_model=MessageResponse)
async def logout(
    admin: Annotated[SuperAdmin, Depends(get_current_super_admin)],
    trail: Annotated[AuditTrail, Depends(get_super_admin_audit_trail)],
):
    trail.record("auth.logout", "super_admin", admin.id)
    return {"message": "Logged out successfully"}


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    body: SuperAdminChangePasswordRequest,
    admin: Annotated[SuperAdmin, Depends(get_current_super_admin)],
    trail: Annotated[AuditTrail, Depends(get_super_admin_audit_trail)],
    db: AsyncSession = Depends(get_db),
):
    await service.change_super_admin_password(db, trail, admin, body.current_password, body.new_password)
    await db.commit()
    return {"message": "Password changed successfully"}


# ============================================================================
# Organizations
# ============================================================================

@router.get("/organizations", response_model=OrganizationListResponse)
async def list_organizations(
    admin: Annotated[SuperAdmin, Depends(get_current_super_admin)],
    status_filter: Annotated[Optional[OrganizationStatus], Query(alias="status")] = None,
    search: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    organizations = await service.list_organizations(db, status_filter, search, skip, limit)
    return OrganizationListResponse(
        organizations=[_with_stats(stats) for stats in organizations],
        skip=skip,
        limit=limit,
    )


@router.post("/organizations", response_model=OrganizationWithStats, status_code=status.HTTP_201_CREATED)
async def create_organization(
    body: OrganizationCreate,
    admin: Annotated[SuperAdmin, Depends(get_current_super_admin)],
    trail: Annotated[AuditTrail, Depends(get_super_admin_audit_trail)],
    db: AsyncSession = Depends(get_db),
    identity: AppwriteIdentityStore = Depends(get_identity_store),
):
    """Create an organization with its built-in roles and first admin user."""
    session = await register_organization(
        db,
        identity,
        organization_name=body.name,
        email=body.admin_email,
        password=body.admin_password,
        full_name=body.admin_full_name,
        organization_slug=body.slug,
        status=body.status,
    )
    stats = await service.get_organization(db, session.organization.id)
    await db.commit()

    trail.record(
        "organization.create",
        "organization",
        session.organization.id,
        body.model_dump(mode="json", exclude={"admin_password"}),
        organization_id=session.organization.id,
    )
    return _with_stats(stats)


@router.get("/organizations/{organization_id}", response_model=OrganizationWithStats)
async def get_organization(
    organization_id: str,
    admin: Annotated[SuperAdmin, Depends(get_current_super_admin)],
    db: AsyncSession = Depends(get_db),
):
    return _with_stats(await service.get_organization(db, organization_id))


@router.patch("/organizations/{organization_id}/status", response_model=OrganizationResponse)
async def update_organization_status(
    organization_id: str,
    body: OrganizationStatusUpdate,
    trail: Annotated[AuditTrail, Depends(get_super_admin_audit_trail)],
    db: AsyncSession = Depends(get_db),
):
    """Activate, suspend, cancel or mark an organization as trialing."""
    organization = await service.set_organization_status(db, trail, organization_id, body.status, body.reason)
    await db.commit()
    return organization


# ============================================================================
# Audit log
# ============================================================================

@router.get("/audit-logs", response_model=AuditLogListResponse)
async def list_audit_logs(
    admin: Annotated[SuperAdmin, Depends(get_current_super_admin)],
    action: Optional[str] = None,
    actor_id: Optional[str] = None,
    organization_id: Optional[str] = None,
    resource_type: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    items, total = await service.list_audit_logs(db, action, actor_id, organization_id, resource_type, skip, limit)
    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(item) for item in items],
        total=total,
        skip=skip,
        limit=limit,
    )
