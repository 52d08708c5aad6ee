from datetime import datetime, timedelta, timezone

import jwt
import pytest

from app.core import config
from app.core.errors import InvalidToken, MissingToken, TokenExpired, WrongTokenType
from app.features.auth.tokens import (
    Realm,
    decode_password_reset_token,
    decode_token,
    issue_password_reset_token,
    issue_super_admin_token,
    issue_tenant_token,
    issue_token,
    strip_bearer,
)


def _forge(payload: dict, secret: str = None) -> str:
    return jwt.encode(payload, secret or config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def test_tenant_token_round_trip():
    token = issue_tenant_token("user-1", "org-1", "agent", ["contacts.view", "tags.view"])

    principal = decode_token(token, Realm.TENANT)

    assert principal.realm == Realm.TENANT
    assert principal.principal_id == "user-1"
    assert principal.organization_id == "org-1"
    assert principal.role_slug == "agent"
    assert principal.role_permissions == ("contacts.view", "tags.view")
    assert principal.claims["type"] == "tenant"


def test_tenant_token_default_lifetime_is_seven_days():
    principal = decode_token(issue_tenant_token("u", "o", "member", []), Realm.TENANT)

    lifetime = principal.expires_at - principal.issued_at
    assert lifetime == timedelta(days=7)


def test_super_admin_token_lifetime_is_one_hour():
    principal = decode_token(issue_super_admin_token("sa-1", "root@example.com"), Realm.SUPER_ADMIN)

    assert principal.principal_id == "sa-1"
    assert principal.organization_id is None
    assert principal.email == "root@example.com"
    assert principal.expires_at - principal.issued_at == timedelta(hours=1)


def test_super_admin_token_rejected_in_tenant_realm():
    token = issue_super_admin_token("sa-1", "root@example.com")

    with pytest.raises(WrongTokenType):
        decode_token(token, Realm.TENANT)


def test_tenant_token_rejected_in_super_admin_realm():
    token = issue_tenant_token("user-1", "org-1", "admin", [])

    with pytest.raises(WrongTokenType):
        decode_token(token, Realm.SUPER_ADMIN)


def test_token_without_type_is_wrong_type():
    token = _forge({"principalId": "user-1", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)})

    with pytest.raises(WrongTokenType):
        decode_token(token, Realm.TENANT)


def test_expired_token():
    token = issue_token(Realm.TENANT, "user-1", {"organizationId": "org-1"}, ttl=-10)

    with pytest.raises(TokenExpired):
        decode_token(token, Realm.TENANT)


def test_bad_signature_is_invalid_even_when_expired():
    payload = {"principalId": "user-1", "type": "tenant", "exp": datetime.now(timezone.utc) - timedelta(hours=1)}

    with pytest.raises(InvalidToken):
        decode_token(_forge(payload, secret="someone-elses-secret"), Realm.TENANT)


def test_token_without_expiry_is_invalid():
    with pytest.raises(InvalidToken):
        decode_token(_forge({"principalId": "user-1", "type": "tenant"}), Realm.TENANT)


def test_token_without_subject_is_invalid():
    token = issue_token(Realm.TENANT, "", {"organizationId": "org-1"})

    with pytest.raises(InvalidToken):
        decode_token(token, Realm.TENANT)


@pytest.mark.parametrize("raw", ["garbage", "a.b.c", ""])
def test_malformed_tokens(raw):
    with pytest.raises((InvalidToken, MissingToken)):
        decode_token(strip_bearer(raw), Realm.TENANT)


@pytest.mark.parametrize(
    "header, expected",
    [
        ("Bearer abc", "abc"),
        ("bearer abc", "abc"),
        ("abc", "abc"),
        ("  Bearer   abc  ", "abc"),
    ],
)
def test_strip_bearer(header, expected):
    assert strip_bearer(header) == expected


@pytest.mark.parametrize("header", [None, "", "   ", "Bearer", "Bearer   "])
def test_strip_bearer_missing(header):
    with pytest.raises(MissingToken):
        strip_bearer(header)


def test_password_reset_token():
    token = issue_password_reset_token("ana@example.com")

    assert decode_password_reset_token(token) == "ana@example.com"


def test_password_reset_token_is_not_a_session():
    token = issue_password_reset_token("ana@example.com")

    with pytest.raises(WrongTokenType):
        decode_token(token, Realm.TENANT)


def test_session_token_is_not_a_reset_authorization():
    token = issue_tenant_token("user-1", "org-1", "admin", [])

    with pytest.raises(WrongTokenType):
        decode_password_reset_token(token)
