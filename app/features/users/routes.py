"""
Tenant user API routes.

Users are always looked up inside the caller's organization. Changes to
another user's role, status or overrides are audited; nobody can change
their own.
"""
from typing import Annotated, List
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.errors import InsufficientPermission
from app.features.audit.dependencies import get_tenant_audit_trail
from app.features.audit.logger import AuditTrail
from app.features.auth.context import TenantContext
from app.features.auth.schemas import MessageResponse
from app.features.auth.dependencies import get_tenant_context
from app.features.permissions.dependencies import (
    EffectivePermissions,
    PermissionDecision,
    compute_effective_permissions,
    get_effective_permissions,
    require_permission,
)
from app.features.users import service
from app.features.users.schemas import (
    PermissionOverridesUpdate,
    UserPermissionsResponse,
    UserResponse,
    UserUpdate,
)


router = APIRouter()


def _permissions_response(target: EffectivePermissions) -> UserPermissionsResponse:
    return UserPermissionsResponse(
        user_id=target.user.id,
        role_slug=target.role_slug,
        role_permissions=list(target.role_permissions),
        grant=sorted(target.overrides.grant),
        revoke=sorted(target.overrides.revoke),
        effective_permissions=sorted(target.effective),
    )


@router.get("", response_model=List[UserResponse])
async def list_users(
    decision: Annotated[PermissionDecision, Depends(require_permission("users.view"))],
    db: AsyncSession = Depends(get_db),
):
    """List users in the caller's organization."""
    return await service.list_users(db, decision.tenant)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    decision: Annotated[PermissionDecision, Depends(require_permission("users.view"))],
    db: AsyncSession = Depends(get_db),
):
    return await service.get_user(db, decision.tenant, user_id)


@router.get("/{user_id}/permissions", response_model=UserPermissionsResponse)
async def get_user_permissions(
    user_id: str,
    caller: Annotated[EffectivePermissions, Depends(get_effective_permissions)],
    tenant: Annotated[TenantContext, Depends(get_tenant_context)],
    db: AsyncSession = Depends(get_db),
):
    """Role, overrides and effective permissions of a user (self, or with users.view)."""
    if user_id == caller.user.id:
        target = caller
    else:
        if not caller.has("users.view"):
            raise InsufficientPermission(["users.view"], caller.role_slug)
        user = await service.get_user(db, tenant, user_id)
        target = await compute_effective_permissions(db, user)

    return _permissions_response(target)


@router.put("/{user_id}/permissions", response_model=UserPermissionsResponse)
async def set_user_permissions(
    user_id: str,
    body: PermissionOverridesUpdate,
    decision: Annotated[PermissionDecision, Depends(require_permission("permissions.manage"))],
    trail: Annotated[AuditTrail, Depends(get_tenant_audit_trail)],
    db: AsyncSession = Depends(get_db),
):
    """Replace a user's grant/revoke overrides."""
    await service.set_permission_overrides(db, decision.tenant, user_id, body.grant, body.revoke)
    user = await service.get_user(db, decision.tenant, user_id)
    target = await compute_effective_permissions(db, user)
    await db.commit()

    trail.record("user.permissions_update", "user", user_id, body.model_dump())
    return _permissions_response(target)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    body: UserUpdate,
    decision: Annotated[PermissionDecision, Depends(require_permission("users.edit"))],
    trail: Annotated[AuditTrail, Depends(get_tenant_audit_trail)],
    db: AsyncSession = Depends(get_db),
):
    """Change another user's name, role or active flag."""
    changes = body.model_dump(exclude_unset=True)
    user = await service.update_user(db, decision.tenant, user_id, **changes)
    await db.commit()

    trail.record("user.update", "user", user_id, changes)
    return user


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: str,
    decision: Annotated[PermissionDecision, Depends(require_permission("users.delete"))],
    trail: Annotated[AuditTrail, Depends(get_tenant_audit_trail)],
    db: AsyncSession = Depends(get_db),
):
    """Deactivate a user."""
    await service.deactivate_user(db, decision.tenant, user_id)
    await db.commit()

    trail.record("user.deactivate", "user", user_id)
    return {"message": "User deactivated successfully"}

