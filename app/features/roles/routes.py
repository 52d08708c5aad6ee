"""
Role management API routes.

Reads are open to any active member of the organization. Mutations need
``permissions.manage`` and are audited.
"""
from typing import Annotated, List
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.audit.dependencies import get_tenant_audit_trail
from app.features.audit.logger import AuditTrail
from app.features.auth.schemas import MessageResponse
from app.features.permissions.dependencies import (
    EffectivePermissions,
    PermissionDecision,
    get_effective_permissions,
    require_permission,
)
from app.features.roles import store
from app.features.roles.schemas import (
    RoleCreate,
    RoleResponse,
    RoleUpdate,
    RoleUserResponse,
    RoleWithCounts,
)
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()

manage_permissions = require_permission("permissions.manage")


@router.get("", response_model=List[RoleWithCounts])
async def list_roles(
    caller: Annotated[EffectivePermissions, Depends(get_effective_permissions)],
    db: AsyncSession = Depends(get_db),
):
    """List the organization's roles with user and permission counts."""
    summaries = await store.list_roles(db, caller.user.organization_id)
    return [
        RoleWithCounts(
            **RoleResponse.model_validate(summary.role).model_dump(),
            user_count=summary.user_count,
            permission_count=summary.permission_count,
        )
        for summary in summaries
    ]


@router.get("/{role_id}", response_model=RoleResponse)
async def get_role(
    role_id: str,
    caller: Annotated[EffectivePermissions, Depends(get_effective_permissions)],
    db: AsyncSession = Depends(get_db),
):
    return await store.get_role(db, caller.user.organization_id, role_id)


@router.get("/{role_id}/users", response_model=List[RoleUserResponse])
async def list_role_users(
    role_id: str,
    caller: Annotated[EffectivePermissions, Depends(get_effective_permissions)],
    db: AsyncSession = Depends(get_db),
):
    """Users currently assigned to the role."""
    return await store.list_role_users(db, caller.user.organization_id, role_id)


@router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    body: RoleCreate,
    decision: Annotated[PermissionDecision, Depends(manage_permissions)],
    trail: Annotated[AuditTrail, Depends(get_tenant_audit_trail)],
    db: AsyncSession = Depends(get_db),
):
    """Create a custom role."""
    role = await store.create_role(
        db,
        decision.organization_id,
        name=body.name,
        slug=body.slug,
        permissions=body.permissions,
        description=body.description,
    )
    await db.commit()

    trail.record("role.create", "role", role.id, body.model_dump())
    return role


@router.patch("/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: str,
    body: RoleUpdate,
    decision: Annotated[PermissionDecision, Depends(manage_permissions)],
    trail: Annotated[AuditTrail, Depends(get_tenant_audit_trail)],
    db: AsyncSession = Depends(get_db),
):
    """Update name, description or permissions of a custom role."""
    changes = body.model_dump(exclude_unset=True)
    role = await store.update_role(db, decision.organization_id, role_id, changes)
    await db.commit()

    trail.record("role.update", "role", role.id, changes)
    return role


@router.delete("/{role_id}", response_model=MessageResponse)
async def delete_role(
    role_id: str,
    decision: Annotated[PermissionDecision, Depends(manage_permissions)],
    trail: Annotated[AuditTrail, Depends(get_tenant_audit_trail)],
    db: AsyncSession = Depends(get_db),
):
    """Delete a custom role that no user is assigned to."""
    role = await store.delete_role(db, decision.organization_id, role_id)
    await db.commit()

    trail.record("role.delete", "role", role_id, {"slug": role.slug, "name": role.name})
    return {"message": "Role deleted successfully"}
