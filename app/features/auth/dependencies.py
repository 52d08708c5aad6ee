"""
FastAPI dependencies for tenant authentication.

The request pipeline is built from small dependencies, each returning an
immutable value for the next one:

    Authorization header -> PrincipalContext -> TenantContext

FastAPI caches each dependency per request, so chaining them costs one
token decode per request.
"""
from typing import Annotated, Optional

from fastapi import Depends, Header

from app.core.errors import AuthenticationError
from app.features.auth.context import TenantContext, bind_tenant
from app.features.auth.tokens import PrincipalContext, Realm, decode_token, strip_bearer
from app.utils import get_logger


log = get_logger(__name__)


async def get_principal(
    authorization: Annotated[Optional[str], Header()] = None,
) -> PrincipalContext:
    """
    Verify the bearer token as a tenant session.

    Raises:
        MissingToken, InvalidToken, TokenExpired, WrongTokenType
    """
    return decode_token(strip_bearer(authorization), Realm.TENANT)


async def get_optional_principal(
    authorization: Annotated[Optional[str], Header()] = None,
) -> Optional[PrincipalContext]:
    """Like get_principal, but anonymous or unusable tokens give None."""
    if not authorization:
        return None
    try:
        return decode_token(strip_bearer(authorization), Realm.TENANT)
    except AuthenticationError as e:
        log.debug("Ignoring unusable token on optional route: %s", e.code)
        return None


async def get_tenant_context(
    principal: Annotated[PrincipalContext, Depends(get_principal)],
) -> TenantContext:
    return bind_tenant(principal)

