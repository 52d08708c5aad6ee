"""
Pydantic schemas for the permission catalog and permission checks.
"""
from typing import List, Optional
from pydantic import BaseModel, Field


class PermissionItem(BaseModel):
    key: str
    label: str
    in_role: Optional[bool] = Field(None, description="Whether the caller's signed role snapshot includes it")


class PermissionGroup(BaseModel):
    key: str
    label: str
    permissions: List[PermissionItem]


class PermissionCatalogResponse(BaseModel):
    permissions: List[str]
    groups: List[PermissionGroup]


class PermissionOverridesSchema(BaseModel):
    grant: List[str] = Field(default_factory=list)
    revoke: List[str] = Field(default_factory=list)


class MyPermissionsResponse(BaseModel):
    user_id: str
    organization_id: str
    role_slug: Optional[str]
    role_permissions: List[str]
    overrides: PermissionOverridesSchema
    effective_permissions: List[str]


class PermissionCheckRequest(BaseModel):
    permissions: List[str] = Field(..., min_length=1)
    mode: str = Field("all", pattern="^(all|any)$")


class PermissionCheckResponse(BaseModel):
    allowed: bool
    mode: str
    results: dict[str, bool]
