"""
Pydantic schemas for tenant users.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict


class UserResponse(BaseModel):
    """Schema for user response."""
    id: str
    organization_id: str
    email: str
    full_name: str
    role_id: Optional[str] = None
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserUpdate(BaseModel):
    """Schema for updating a user (all fields optional)."""
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    role_id: Optional[str] = None
    is_active: Optional[bool] = None


class PermissionOverridesUpdate(BaseModel):
    """Complete replacement of a user's grant and revoke lists."""
    grant: List[str] = Field(default_factory=list)
    revoke: List[str] = Field(default_factory=list)


class UserPermissionsResponse(BaseModel):
    user_id: str
    role_slug: Optional[str]
    role_permissions: List[str]
    grant: List[str]
    revoke: List[str]
    effective_permissions: List[str]
