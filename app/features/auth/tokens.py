"""
Signed session tokens for both credential realms.

One issue/decode pipeline serves tenant users and platform super admins.
Each realm has a policy naming its type marker, subject claim and default
lifetime. A token issued for one realm is rejected by the other.

Decoding never touches the database: the returned PrincipalContext is
exactly what was signed at login. Live checks happen in the dependencies
that need them.
"""
import enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Mapping, Optional

import jwt

from app.core import config
from app.core.errors import InvalidToken, MissingToken, TokenExpired, WrongTokenType


PASSWORD_RESET_PURPOSE = "password-reset"


class Realm(str, enum.Enum):
    TENANT = "tenant"
    SUPER_ADMIN = "super_admin"


@dataclass(frozen=True)
class RealmPolicy:
    realm: Realm
    subject_claim: str
    default_ttl: int


REALM_POLICIES: dict[Realm, RealmPolicy] = {
    Realm.TENANT: RealmPolicy(Realm.TENANT, "principalId", config.TENANT_TOKEN_TTL),
    Realm.SUPER_ADMIN: RealmPolicy(Realm.SUPER_ADMIN, "superAdminId", config.SUPER_ADMIN_TOKEN_TTL),
}


@dataclass(frozen=True)
class PrincipalContext:
    """Verified token claims. Immutable; built once per request."""
    realm: Realm
    principal_id: str
    organization_id: Optional[str] = None
    role_slug: Optional[str] = None
    role_permissions: tuple[str, ...] = ()
    email: Optional[str] = None
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    claims: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)


# ============================================================================
# Issue
# ============================================================================

def _encode(claims: dict[str, Any], ttl: int) -> str:
    now = datetime.now(timezone.utc)
    payload = {**claims, "iat": now, "exp": now + timedelta(seconds=ttl)}
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def issue_token(realm: Realm, subject: str, claims: Optional[dict[str, Any]] = None, ttl: Optional[int] = None) -> str:
    policy = REALM_POLICIES[realm]
    payload = {**(claims or {}), policy.subject_claim: subject, "type": realm.value}
    return _encode(payload, ttl if ttl is not None else policy.default_ttl)


def issue_tenant_token(
    user_id: str,
    organization_id: str,
    role_slug: Optional[str],
    role_permissions: Iterable[str],
    ttl: Optional[int] = None,
) -> str:
    """Tenant session token carrying a snapshot of the role's permissions."""
    return issue_token(
        Realm.TENANT,
        user_id,
        {
            "organizationId": organization_id,
            "roleSlug": role_slug,
            "rolePermissionSnapshot": list(role_permissions),
        },
        ttl,
    )


def issue_super_admin_token(super_admin_id: str, email: str) -> str:
    return issue_token(Realm.SUPER_ADMIN, super_admin_id, {"email": email})


def issue_password_reset_token(email: str) -> str:
    return _encode({"email": email, "purpose": PASSWORD_RESET_PURPOSE}, config.PASSWORD_RESET_TOKEN_TTL)


# ============================================================================
# Verify
# ============================================================================

def strip_bearer(authorization: Optional[str]) -> str:
    """
    Extract the raw token from an Authorization header value.

    The ``Bearer `` prefix is optional.

    Raises:
        MissingToken: if the header is absent or blank
    """
    if not authorization or not authorization.strip():
        raise MissingToken()
    value = authorization.strip()
    scheme, _, rest = value.partition(" ")
    if scheme.lower() == "bearer":
        value = rest.strip()
    if not value:
        raise MissingToken()
    return value


def _decode(raw: str) -> dict[str, Any]:
    try:
        payload = jwt.decode(
            raw,
            config.JWT_SECRET,
            algorithms=[config.JWT_ALGORITHM],
            options={"require": ["exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpired()
    except jwt.InvalidTokenError:
        raise InvalidToken()
    if not isinstance(payload, dict):
        raise InvalidToken()
    return payload


def _timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return None


def decode_token(raw: str, realm: Realm) -> PrincipalContext:
    """
    Verify a session token for the given realm.

    Raises:
        InvalidToken: bad signature, malformed token or missing subject
        TokenExpired: valid signature past its expiry
        WrongTokenType: token belongs to another realm or is not a session token
    """
    payload = _decode(raw)
    policy = REALM_POLICIES[realm]

    if payload.get("type") != realm.value:
        raise WrongTokenType()

    subject = payload.get(policy.subject_claim)
    if not subject or not isinstance(subject, str):
        raise InvalidToken()

    snapshot = payload.get("rolePermissionSnapshot") or ()
    return PrincipalContext(
        realm=realm,
        principal_id=subject,
        organization_id=payload.get("organizationId"),
        role_slug=payload.get("roleSlug"),
        role_permissions=tuple(snapshot) if isinstance(snapshot, list) else (),
        email=payload.get("email"),
        issued_at=_timestamp(payload.get("iat")),
        expires_at=_timestamp(payload.get("exp")),
        claims=payload,
    )


def decode_password_reset_token(raw: str) -> str:
    """
    Verify a password reset authorization and return its email.

    Raises:
        InvalidToken / TokenExpired: as for session tokens
        WrongTokenType: token is a session token
    """
    payload = _decode(raw)
    if payload.get("purpose") != PASSWORD_RESET_PURPOSE or "type" in payload:
        raise WrongTokenType()
    email = payload.get("email")
    if not email:
        raise InvalidToken()
    return email
