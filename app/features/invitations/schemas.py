"""
Pydantic schemas for invitations.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.features.auth.schemas import OrganizationSummary, RoleSummary


class InvitationCreate(BaseModel):
    email: EmailStr
    role_id: Optional[str] = Field(None, description="Defaults to the organization's member role")


class InvitationResponse(BaseModel):
    id: str
    email: str
    role_id: Optional[str] = None
    invited_by: Optional[str] = None
    expires_at: datetime
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InvitationCreated(InvitationResponse):
    """Returned to the inviter only; the token goes into the acceptance link."""
    token: str


class InvitationPreview(BaseModel):
    email: str
    organization: OrganizationSummary
    role: Optional[RoleSummary] = None
    expires_at: datetime


class AcceptInvitationRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=64)
    full_name: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=256)
