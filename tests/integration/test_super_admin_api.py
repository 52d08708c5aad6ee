import pytest

from app.core import config
from app.features.audit.logger import AuditLogger, get_audit_logger
from app.features.audit.models import ActorType
from app.features.auth.tokens import Realm, decode_token
from app.features.organizations.models import Organization, OrganizationStatus
from app.features.super_admin.models import SuperAdmin
from app.main import app


LOGIN = {"email": "root@example.com", "password": "super-secret-password"}


async def test_login(client, seed):
    admin = await seed.super_admin()

    response = await client.post("/super-admin/login", json=LOGIN, headers={"User-Agent": "pytest"})

    assert response.status_code == 200
    body = response.json()
    assert body["expires_in"] == config.SUPER_ADMIN_TOKEN_TTL
    assert body["super_admin"]["email"] == "root@example.com"
    assert "password_hash" not in body["super_admin"]
    principal = decode_token(body["token"], Realm.SUPER_ADMIN)
    assert principal.principal_id == admin.id
    assert principal.organization_id is None

    entries = await seed.audit_entries("auth.login")
    assert len(entries) == 1
    assert entries[0].actor_id == admin.id
    assert entries[0].actor_type == ActorType.SUPER_ADMIN
    assert entries[0].user_agent == "pytest"
    assert (await seed.get(SuperAdmin, admin.id)).last_login_at is not None


async def test_wrong_password_is_audited_without_the_password(client, seed):
    admin = await seed.super_admin()

    response = await client.post(
        "/super-admin/login",
        json={"email": "root@example.com", "password": "wrong-password"},
        headers={"X-Forwarded-For": "203.0.113.7"},
    )

    assert response.status_code == 401
    assert response.json()["error"] == "INVALID_CREDENTIALS"
    entries = await seed.audit_entries("auth.login_failed")
    assert len(entries) == 1
    assert entries[0].actor_id == admin.id
    assert entries[0].details["reason"] == "invalid_password"
    assert entries[0].ip_address == "203.0.113.7"
    assert "wrong-password" not in str(entries[0].details)
    assert await seed.audit_entries("auth.login") == []


async def test_unknown_email_is_audited(client, seed):
    await seed.super_admin()

    response = await client.post("/super-admin/login", json={"email": "nobody@example.com", "password": "whatever"})

    assert response.status_code == 401
    entries = await seed.audit_entries("auth.login_failed")
    assert entries[0].actor_id is None
    assert entries[0].details == {"email": "nobody@example.com", "reason": "unknown_email"}


async def test_deactivated_super_admin_cannot_login(client, seed):
    await seed.super_admin(is_active=False)

    response = await client.post("/super-admin/login", json=LOGIN)

    assert response.status_code == 403
    assert response.json()["error"] == "ACCOUNT_DEACTIVATED"
    entries = await seed.audit_entries("auth.login_failed")
    assert entries[0].details["reason"] == "account_deactivated"


async def test_token_of_deactivated_super_admin_is_rejected(client, seed):
    admin = await seed.super_admin()
    headers = seed.super_admin_headers(admin)
    async with seed.session_factory() as session:
        (await session.get(SuperAdmin, admin.id)).is_active = False
        await session.commit()

    response = await client.get("/super-admin/me", headers=headers)

    assert response.status_code == 403


async def test_me(client, seed):
    admin = await seed.super_admin()

    response = await client.get("/super-admin/me", headers=seed.super_admin_headers(admin))

    assert response.status_code == 200
    assert response.json()["id"] == admin.id


@pytest.mark.parametrize(
    "method, path",
    [
        ("GET", "/super-admin/me"),
        ("GET", "/super-admin/organizations"),
        ("POST", "/super-admin/logout"),
        ("GET", "/super-admin/audit-logs"),
    ],
)
async def test_tenant_token_rejected_on_super_admin_routes(client, seed, method, path):
    org = await seed.organization("acme")
    tenant_admin = await seed.user(org, "boss@example.com", "admin")

    response = await client.request(method, path, headers=await seed.headers(tenant_admin))

    assert response.status_code == 401
    assert response.json()["error"] == "WRONG_TOKEN_TYPE"


async def test_logout_is_audited(client, seed):
    admin = await seed.super_admin()

    response = await client.post("/super-admin/logout", headers=seed.super_admin_headers(admin))

    assert response.status_code == 200
    assert len(await seed.audit_entries("auth.logout")) == 1


async def test_change_password(client, seed):
    admin = await seed.super_admin()
    headers = seed.super_admin_headers(admin)

    short = await client.post(
        "/super-admin/change-password",
        json={"current_password": LOGIN["password"], "new_password": "too-short"},
        headers=headers,
    )
    wrong = await client.post(
        "/super-admin/change-password",
        json={"current_password": "not-my-password", "new_password": "a-much-longer-password"},
        headers=headers,
    )
    ok = await client.post(
        "/super-admin/change-password",
        json={"current_password": LOGIN["password"], "new_password": "a-much-longer-password"},
        headers=headers,
    )

    assert short.status_code == 400
    assert wrong.status_code == 401
    assert ok.status_code == 200
    failed = await seed.audit_entries("auth.password_change_failed")
    assert failed[0].details == {"reason": "invalid_current_password"}
    assert len(await seed.audit_entries("auth.password_changed")) == 1

    relogin = await client.post(
        "/super-admin/login", json={"email": LOGIN["email"], "password": "a-much-longer-password"}
    )
    assert relogin.status_code == 200


async def test_list_and_get_organizations(client, seed):
    admin = await seed.super_admin()
    acme = await seed.organization("acme")
    await seed.organization("globex", status=OrganizationStatus.SUSPENDED)
    await seed.user(acme, "ann@example.com", "agent")
    headers = seed.super_admin_headers(admin)

    everything = await client.get("/super-admin/organizations", headers=headers)
    suspended = await client.get("/super-admin/organizations", params={"status": "suspended"}, headers=headers)
    searched = await client.get("/super-admin/organizations", params={"search": "ACM"}, headers=headers)
    detail = await client.get(f"/super-admin/organizations/{acme.id}", headers=headers)
    missing = await client.get("/super-admin/organizations/01HZZZZZZZZZZZZZZZZZZZZZZZ", headers=headers)

    assert {org["slug"] for org in everything.json()["organizations"]} == {"acme", "globex"}
    assert [org["slug"] for org in suspended.json()["organizations"]] == ["globex"]
    assert [org["slug"] for org in searched.json()["organizations"]] == ["acme"]
    assert detail.json()["user_count"] == 1
    assert detail.json()["role_count"] == 4
    assert missing.status_code == 404


async def test_create_organization(client, seed, identity):
    admin = await seed.super_admin()

    response = await client.post(
        "/super-admin/organizations",
        json={
            "name": "Initech",
            "slug": "initech",
            "status": "trialing",
            "admin_email": "bill@example.com",
            "admin_full_name": "Bill Lumbergh",
            "admin_password": "tps-report-password",
        },
        headers=seed.super_admin_headers(admin),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["slug"] == "initech"
    assert body["status"] == "trialing"
    assert body["user_count"] == 1
    assert body["role_count"] == 4
    assert len(identity.accounts) == 1

    entries = await seed.audit_entries("organization.create")
    assert entries[0].organization_id == body["id"]
    assert "admin_password" not in entries[0].details
    assert "tps-report-password" not in str(entries[0].details)

    login = await client.post("/auth/login", json={"email": "bill@example.com", "password": "tps-report-password"})
    assert login.status_code == 200
    assert login.json()["role"]["slug"] == "admin"


async def test_suspending_organization_blocks_login_and_is_audited(client, seed):
    admin = await seed.super_admin()
    org = await seed.organization("acme")
    await seed.user(org, "ann@example.com", "agent", password="agent-password")

    response = await client.patch(
        f"/super-admin/organizations/{org.id}/status",
        json={"status": "suspended", "reason": "unpaid invoice"},
        headers=seed.super_admin_headers(admin),
    )

    assert response.status_code == 200
    assert response.json()["status"] == "suspended"
    assert (await seed.get(Organization, org.id)).status == OrganizationStatus.SUSPENDED

    entries = await seed.audit_entries("organization.suspended")
    assert entries[0].actor_id == admin.id
    assert entries[0].details == {"previous_status": "active", "status": "suspended", "reason": "unpaid invoice"}

    login = await client.post("/auth/login", json={"email": "ann@example.com", "password": "agent-password"})
    assert login.status_code == 403


async def test_audit_log_listing(client, seed):
    admin = await seed.super_admin()
    headers = seed.super_admin_headers(admin)
    await client.post("/super-admin/login", json={"email": "root@example.com", "password": "wrong-password"})
    await client.post("/super-admin/logout", headers=headers)

    everything = await client.get("/super-admin/audit-logs", headers=headers)
    failures = await client.get("/super-admin/audit-logs", params={"action": "auth.login_failed"}, headers=headers)

    assert everything.status_code == 200
    assert everything.json()["total"] == 2
    assert [item["action"] for item in everything.json()["items"]] == ["auth.logout", "auth.login_failed"]
    assert failures.json()["total"] == 1
    assert failures.json()["items"][0]["details"]["reason"] == "invalid_password"


async def test_suspension_revokes_existing_tenant_tokens(client, seed):
    admin = await seed.super_admin()
    org = await seed.organization("acme")
    tenant_admin = await seed.user(org, "boss@example.com", "admin")
    tenant_headers = await seed.headers(tenant_admin)
    status_url = f"/super-admin/organizations/{org.id}/status"

    before = await client.get("/roles", headers=tenant_headers)
    await client.patch(status_url, json={"status": "suspended"}, headers=seed.super_admin_headers(admin))
    during = await client.get("/roles", headers=tenant_headers)
    await client.patch(status_url, json={"status": "active"}, headers=seed.super_admin_headers(admin))
    after = await client.get("/roles", headers=tenant_headers)

    assert before.status_code == 200
    assert during.status_code == 403
    assert during.json()["error"] == "ACCOUNT_DEACTIVATED"
    assert after.status_code == 200


async def test_failed_login_is_still_answered_when_audit_storage_is_down(client, seed):
    await seed.super_admin()

    def unreachable():
        raise RuntimeError("audit store unreachable")

    app.dependency_overrides[get_audit_logger] = lambda: AuditLogger(unreachable)

    response = await client.post("/super-admin/login", json={"email": LOGIN["email"], "password": "wrong-password"})

    assert response.status_code == 401
    assert response.json()["error"] == "INVALID_CREDENTIALS"
