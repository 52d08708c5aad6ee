"""
Permission catalog and self-inspection routes.
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Depends

from app.features.auth.dependencies import get_optional_principal
from app.features.auth.tokens import PrincipalContext
from app.features.permissions.dependencies import EffectivePermissions, get_effective_permissions
from app.features.permissions.registry import PERMISSION_GROUPS, PERMISSIONS
from app.features.permissions.schemas import (
    MyPermissionsResponse,
    PermissionCatalogResponse,
    PermissionCheckRequest,
    PermissionCheckResponse,
    PermissionOverridesSchema,
)


router = APIRouter()


@router.get("/catalog", response_model=PermissionCatalogResponse)
async def get_catalog(
    principal: Annotated[Optional[PrincipalContext], Depends(get_optional_principal)],
):
    """
    List every permission grouped for display.

    Public. With a valid tenant token, items are flagged with ``in_role`` from
    the role snapshot signed into the token (a display hint only; use
    ``/permissions/me`` for live effective permissions).
    """
    snapshot = set(principal.role_permissions) if principal else None
    groups = [
        {
            "key": key,
            "label": group["label"],
            "permissions": [
                {**item, "in_role": (item["key"] in snapshot) if snapshot is not None else None}
                for item in group["permissions"]
            ],
        }
        for key, group in PERMISSION_GROUPS.items()
    ]
    return {"permissions": list(PERMISSIONS), "groups": groups}


@router.get("/me", response_model=MyPermissionsResponse)
async def get_my_permissions(
    permissions: Annotated[EffectivePermissions, Depends(get_effective_permissions)],
):
    """Live role, overrides and effective permissions of the caller."""
    return MyPermissionsResponse(
        user_id=permissions.user.id,
        organization_id=permissions.user.organization_id,
        role_slug=permissions.role_slug,
        role_permissions=list(permissions.role_permissions),
        overrides=PermissionOverridesSchema(**permissions.overrides.to_json()),
        effective_permissions=sorted(permissions.effective),
    )


@router.post("/check", response_model=PermissionCheckResponse)
async def check_permissions(
    body: PermissionCheckRequest,
    permissions: Annotated[EffectivePermissions, Depends(get_effective_permissions)],
):
    """Evaluate permissions for the caller without performing an action."""
    results = {p: permissions.has(p) for p in body.permissions}
    allowed = permissions.has_any(body.permissions) if body.mode == "any" else permissions.has_all(body.permissions)
    return PermissionCheckResponse(allowed=allowed, mode=body.mode, results=results)
