"""
Tenant authentication routes.

Tokens are stateless: logout only tells the client to discard its token.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.core.rate_limit import login_limit
from app.features.auth import service
from app.features.auth.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    MeResponse,
    MessageResponse,
    OrganizationSummary,
    PasswordResetRequest,
    PasswordResetRequested,
    RegisterRequest,
    ResetPasswordRequest,
    ResetTokenResponse,
    SessionResponse,
    VerifyResetCodeRequest,
)
from app.features.organizations.models import Organization
from app.features.permissions.dependencies import EffectivePermissions, get_effective_permissions
from app.features.roles.models import Role
from app.features.users.auth import AppwriteIdentityStore, get_identity_store
from app.features.users.schemas import UserResponse
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


@router.post("/register", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
@login_limit
async def register(
    request: Request,
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    identity: AppwriteIdentityStore = Depends(get_identity_store),
):
    """Create an organization with its first admin user."""
    session = await service.register_organization(
        db,
        identity,
        organization_name=body.organization_name,
        email=body.email,
        password=body.password,
        full_name=body.full_name,
        organization_slug=body.organization_slug,
    )
    await db.commit()
    return SessionResponse.from_session(session, config.REGISTRATION_TOKEN_TTL)


@router.post("/login", response_model=SessionResponse)
@login_limit
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
    identity: AppwriteIdentityStore = Depends(get_identity_store),
):
    session = await service.authenticate_tenant_user(db, identity, body.email, body.password)
    await db.commit()
    return SessionResponse.from_session(session, config.TENANT_TOKEN_TTL)


@router.post("/logout", response_model=MessageResponse)
async def logout(caller: Annotated[EffectivePermissions, Depends(get_effective_permissions)]):
    log.info("User %s logged out", caller.user.id)
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=MeResponse)
async def me(
    caller: Annotated[EffectivePermissions, Depends(get_effective_permissions)],
    db: AsyncSession = Depends(get_db),
):
    """Current user with live role and effective permissions."""
    organization = await db.get(Organization, caller.user.organization_id)
    role = await db.get(Role, caller.user.role_id) if caller.user.role_id else None
    return MeResponse(
        user=UserResponse.model_validate(caller.user),
        organization=OrganizationSummary.from_model(organization),
        role={
            "id": role.id if role else None,
            "slug": caller.role_slug or "",
            "name": role.name if role else None,
        },
        permissions=sorted(caller.effective),
    )


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    caller: Annotated[EffectivePermissions, Depends(get_effective_permissions)],
    identity: AppwriteIdentityStore = Depends(get_identity_store),
):
    await service.change_password(identity, caller.user, body.current_password, body.new_password)
    return {"message": "Password changed successfully"}


@router.post("/request-password-reset", response_model=PasswordResetRequested)
@login_limit
async def request_password_reset(
    request: Request,
    body: PasswordResetRequest,
    db: AsyncSession = Depends(get_db),
):
    """Send a reset code. The answer is the same whether the account exists or not."""
    code = await service.request_password_reset(db, body.email)
    await db.commit()
    return PasswordResetRequested(
        message="If an account exists for this email, a reset code has been sent",
        dev_code=code if config.EXPOSE_RESET_CODES else None,
    )


@router.post("/verify-reset-code", response_model=ResetTokenResponse)
@login_limit
async def verify_reset_code(
    request: Request,
    body: VerifyResetCodeRequest,
    db: AsyncSession = Depends(get_db),
):
    token = await service.verify_reset_code(db, body.email, body.code)
    return ResetTokenResponse(reset_token=token, expires_in=config.PASSWORD_RESET_TOKEN_TTL)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
    identity: AppwriteIdentityStore = Depends(get_identity_store),
):
    await service.reset_password(db, identity, body.reset_token, body.new_password)
    await db.commit()
    return {"message": "Password has been reset"}
