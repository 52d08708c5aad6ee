"""
FastAPI dependencies for the super-admin realm.

Uses the same token pipeline as tenant routes with the super-admin realm
policy, so tenant tokens are rejected here and super-admin tokens are
rejected on tenant routes. There is no role or permission resolution: an
active super admin may use every route in this realm.
"""
from typing import Annotated, Optional

from fastapi import BackgroundTasks, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.errors import AccountDeactivated, InvalidToken
from app.features.audit.logger import AuditLogger, AuditTrail, get_audit_logger
from app.features.audit.models import ActorType
from app.features.auth.tokens import PrincipalContext, Realm, decode_token, strip_bearer
from app.features.super_admin.models import SuperAdmin


async def get_super_admin_principal(
    authorization: Annotated[Optional[str], Header()] = None,
) -> PrincipalContext:
    return decode_token(strip_bearer(authorization), Realm.SUPER_ADMIN)


async def get_current_super_admin(
    principal: Annotated[PrincipalContext, Depends(get_super_admin_principal)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SuperAdmin:
    """
    Load the super admin named by the token and check it is still active.

    Raises:
        InvalidToken: the account no longer exists
        AccountDeactivated: the account was deactivated after the token was issued
    """
    admin = await db.get(SuperAdmin, principal.principal_id)
    if admin is None:
        raise InvalidToken()
    if not admin.is_active:
        raise AccountDeactivated()
    return admin


def get_anonymous_audit_trail(
    request: Request,
    background_tasks: BackgroundTasks,
    logger: Annotated[AuditLogger, Depends(get_audit_logger)],
) -> AuditTrail:
    """Trail for the login route, before an actor is known."""
    return AuditTrail.for_request(request, logger, background_tasks, actor_id=None, actor_type=ActorType.SUPER_ADMIN)


def get_super_admin_audit_trail(
    request: Request,
    background_tasks: BackgroundTasks,
    admin: Annotated[SuperAdmin, Depends(get_current_super_admin)],
    logger: Annotated[AuditLogger, Depends(get_audit_logger)],
) -> AuditTrail:
    return AuditTrail.for_request(request, logger, background_tasks, actor_id=admin.id, actor_type=ActorType.SUPER_ADMIN)
