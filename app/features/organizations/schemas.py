"""
Pydantic schemas for organization management.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field, ConfigDict

from app.features.organizations.models import OrganizationStatus


class OrganizationResponse(BaseModel):
    """Schema for organization response."""
    id: str
    name: str
    slug: str
    status: OrganizationStatus
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrganizationWithStats(OrganizationResponse):
    user_count: int
    role_count: Optional[int] = None


class OrganizationListResponse(BaseModel):
    organizations: List[OrganizationWithStats]
    skip: int
    limit: int


class OrganizationCreate(BaseModel):
    """Organization plus its first admin user."""
    name: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=100)
    status: OrganizationStatus = OrganizationStatus.ACTIVE
    admin_email: EmailStr
    admin_full_name: str = Field(..., min_length=1, max_length=255)
    admin_password: str = Field(..., min_length=1, max_length=256)


class OrganizationStatusUpdate(BaseModel):
    status: OrganizationStatus
    reason: Optional[str] = Field(None, max_length=1000)
