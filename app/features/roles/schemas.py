"""
Pydantic schemas for role management.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator


class RoleBase(BaseModel):
    """Base role schema."""
    name: str = Field(..., min_length=1, max_length=100, description="Display name")
    description: Optional[str] = Field(None, max_length=1000, description="Role description")


class RoleCreate(RoleBase):
    """Schema for creating a custom role."""
    slug: str = Field(..., min_length=1, max_length=50, description="Identifier, unique within the organization")
    permissions: List[str] = Field(default_factory=list, description="Catalog permission strings")

    @field_validator("slug")
    @classmethod
    def slug_format(cls, v: str) -> str:
        """Validate slug format."""
        v = v.strip().lower()
        if not v.replace("_", "").replace("-", "").isalnum():
            raise ValueError("Slug must contain only letters, digits, underscores, and hyphens")
        return v


class RoleUpdate(BaseModel):
    """Partial update; slug and system flag are fixed."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    permissions: Optional[List[str]] = None


class RoleResponse(RoleBase):
    id: str
    organization_id: str
    slug: str
    permissions: List[str]
    is_system: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoleWithCounts(RoleResponse):
    user_count: int
    permission_count: int


class RoleUserResponse(BaseModel):
    id: str
    email: str
    full_name: str
    is_active: bool

    model_config = ConfigDict(from_attributes=True)
