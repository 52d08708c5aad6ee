"""
Pydantic schemas for tenant authentication.
"""
from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field

from app.features.users.schemas import UserResponse


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=256)


class RegisterRequest(BaseModel):
    organization_name: str = Field(..., min_length=1, max_length=255)
    organization_slug: Optional[str] = Field(None, max_length=100)
    full_name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=256)


class OrganizationSummary(BaseModel):
    id: str
    name: str
    slug: str
    status: str

    @classmethod
    def from_model(cls, org) -> "OrganizationSummary":
        return cls(id=org.id, name=org.name, slug=org.slug, status=org.status.value)


class RoleSummary(BaseModel):
    id: Optional[str] = None
    slug: str
    name: Optional[str] = None


class SessionResponse(BaseModel):
    """Token plus the profile it was issued for."""
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse
    organization: OrganizationSummary
    role: RoleSummary
    permissions: List[str]

    @classmethod
    def from_session(cls, session, ttl: int) -> "SessionResponse":
        """Build from an auth.service.TenantSession."""
        return cls(
            token=session.token,
            expires_in=ttl,
            user=UserResponse.model_validate(session.user),
            organization=OrganizationSummary.from_model(session.organization),
            role=RoleSummary(
                id=session.role.id if session.role else None,
                slug=session.role_slug,
                name=session.role.name if session.role else None,
            ),
            permissions=session.role_permissions,
        )


class MeResponse(BaseModel):
    user: UserResponse
    organization: OrganizationSummary
    role: RoleSummary
    permissions: List[str]


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1, max_length=256)


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetRequested(BaseModel):
    message: str
    dev_code: Optional[str] = Field(None, description="Only returned when EXPOSE_RESET_CODES=1")


class VerifyResetCodeRequest(BaseModel):
    email: EmailStr
    code: str = Field(..., pattern=r"^\d{6}$")


class ResetTokenResponse(BaseModel):
    reset_token: str
    expires_in: int


class ResetPasswordRequest(BaseModel):
    reset_token: str
    new_password: str = Field(..., min_length=1, max_length=256)


class MessageResponse(BaseModel):
    message: str
