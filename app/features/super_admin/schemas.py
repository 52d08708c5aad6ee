"""
Pydantic schemas for the super-admin realm.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, ConfigDict


class SuperAdminLoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)


class SuperAdminResponse(BaseModel):
    id: str
    email: str
    full_name: str
    is_active: bool
    last_login_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SuperAdminSessionResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_in: int
    super_admin: SuperAdminResponse


class SuperAdminChangePasswordRequest(BaseModel):
    # bcrypt only uses the first 72 bytes
    current_password: str = Field(..., min_length=1, max_length=72)
    new_password: str = Field(..., min_length=1, max_length=72)
