import pytest

from app.features.users.models import User


async def test_list_users_is_scoped_to_organization(client, seed):
    acme = await seed.organization("acme")
    globex = await seed.organization("globex")
    member = await seed.user(acme, "mia@example.com", "member")
    await seed.user(acme, "ann@example.com", "agent")
    await seed.user(globex, "outsider@example.com", "admin")

    response = await client.get("/users", headers=await seed.headers(member))

    assert response.status_code == 200
    assert sorted(user["email"] for user in response.json()) == ["ann@example.com", "mia@example.com"]


async def test_get_user_from_other_organization_is_denied(client, seed):
    acme = await seed.organization("acme")
    globex = await seed.organization("globex")
    admin = await seed.user(acme, "boss@example.com", "admin")
    outsider = await seed.user(globex, "outsider@example.com", "admin")

    response = await client.get(f"/users/{outsider.id}", headers=await seed.headers(admin))

    assert response.status_code == 403
    assert response.json()["error"] == "CROSS_TENANT_ACCESS"


@pytest.mark.parametrize(
    "method, suffix, payload",
    [
        ("PATCH", "", {"full_name": "Renamed", "is_active": False}),
        ("DELETE", "", None),
        ("PUT", "/permissions", {"grant": ["users.delete"], "revoke": []}),
    ],
)
async def test_cannot_modify_user_in_other_organization(client, seed, method, suffix, payload):
    acme = await seed.organization("acme")
    globex = await seed.organization("globex")
    admin = await seed.user(acme, "boss@example.com", "admin")
    outsider = await seed.user(globex, "outsider@example.com", "agent")

    response = await client.request(
        method, f"/users/{outsider.id}{suffix}", json=payload, headers=await seed.headers(admin)
    )

    assert response.status_code == 403
    assert response.json()["error"] == "CROSS_TENANT_ACCESS"
    stored = await seed.get(User, outsider.id)
    assert stored.full_name == "Outsider"
    assert stored.is_active is True
    assert stored.permissions is None


async def test_get_unknown_user(client, seed):
    org = await seed.organization("acme")
    admin = await seed.user(org, "boss@example.com", "admin")

    response = await client.get("/users/01HZZZZZZZZZZZZZZZZZZZZZZZ", headers=await seed.headers(admin))

    assert response.status_code == 404
    assert response.json()["error"] == "USER_NOT_FOUND"


async def test_set_overrides_and_read_them_back(client, seed):
    org = await seed.organization("acme")
    admin = await seed.user(org, "boss@example.com", "admin")
    agent = await seed.user(org, "ann@example.com", "agent")
    headers = await seed.headers(admin)

    response = await client.put(
        f"/users/{agent.id}/permissions",
        json={"grant": ["campaigns.send"], "revoke": ["contacts.edit", "contacts.edit"]},
        headers=headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["grant"] == ["campaigns.send"]
    assert body["revoke"] == ["contacts.edit"]
    assert "campaigns.send" in body["effective_permissions"]
    assert "contacts.edit" not in body["effective_permissions"]

    stored = await seed.get(User, agent.id)
    assert stored.permissions == {"grant": ["campaigns.send"], "revoke": ["contacts.edit"]}

    entries = await seed.audit_entries("user.permissions_update")
    assert entries[0].resource_id == agent.id
    assert entries[0].actor_id == admin.id


async def test_overrides_are_replaced_wholesale(client, seed):
    org = await seed.organization("acme")
    admin = await seed.user(org, "boss@example.com", "admin")
    agent = await seed.user(org, "ann@example.com", "agent", overrides={"grant": ["tags.create"]})

    response = await client.put(f"/users/{agent.id}/permissions", json={}, headers=await seed.headers(admin))

    assert response.json()["grant"] == []
    assert (await seed.get(User, agent.id)).permissions == {"grant": [], "revoke": []}


async def test_cannot_change_own_overrides(client, seed):
    org = await seed.organization("acme")
    admin = await seed.user(org, "boss@example.com", "admin")

    response = await client.put(
        f"/users/{admin.id}/permissions",
        json={"revoke": ["users.delete"]},
        headers=await seed.headers(admin),
    )

    assert response.status_code == 400
    assert response.json()["error"] == "CANNOT_MODIFY_SELF"


async def test_override_with_unknown_permission(client, seed):
    org = await seed.organization("acme")
    admin = await seed.user(org, "boss@example.com", "admin")
    agent = await seed.user(org, "ann@example.com", "agent")

    response = await client.put(
        f"/users/{agent.id}/permissions",
        json={"grant": ["everything"]},
        headers=await seed.headers(admin),
    )

    assert response.status_code == 400
    assert response.json()["error"] == "UNKNOWN_PERMISSION"
    assert (await seed.get(User, agent.id)).permissions is None


async def test_read_own_permissions_without_users_view(client, seed):
    org = await seed.organization("acme")
    agent_role = await seed.role(org, "agent")
    async with seed.session_factory() as session:
        role = await session.get(type(agent_role), agent_role.id)
        role.permissions = ["contacts.view"]
        await session.commit()
    agent = await seed.user(org, "ann@example.com", "agent")
    other = await seed.user(org, "mia@example.com", "member")
    headers = await seed.headers(agent)

    own = await client.get(f"/users/{agent.id}/permissions", headers=headers)
    theirs = await client.get(f"/users/{other.id}/permissions", headers=headers)

    assert own.status_code == 200
    assert own.json()["effective_permissions"] == ["contacts.view"]
    assert theirs.status_code == 403
    assert theirs.json()["required_permission"] == "users.view"


async def test_assign_role(client, seed):
    org = await seed.organization("acme")
    admin = await seed.user(org, "boss@example.com", "admin")
    member = await seed.user(org, "mia@example.com", "member")
    manager_role = await seed.role(org, "manager")

    response = await client.patch(
        f"/users/{member.id}",
        json={"role_id": manager_role.id},
        headers=await seed.headers(admin),
    )

    assert response.status_code == 200
    assert response.json()["role_id"] == manager_role.id
    me = await client.get("/permissions/me", headers=await seed.headers(member))
    assert me.json()["role_slug"] == "manager"


async def test_assign_role_from_other_organization(client, seed):
    acme = await seed.organization("acme")
    globex = await seed.organization("globex")
    admin = await seed.user(acme, "boss@example.com", "admin")
    member = await seed.user(acme, "mia@example.com", "member")
    foreign = await seed.role(globex, "admin")

    response = await client.patch(
        f"/users/{member.id}",
        json={"role_id": foreign.id},
        headers=await seed.headers(admin),
    )

    assert response.status_code == 404
    assert (await seed.get(User, member.id)).role_id != foreign.id


async def test_cannot_change_own_role(client, seed):
    org = await seed.organization("acme")
    admin = await seed.user(org, "boss@example.com", "admin")
    member_role = await seed.role(org, "member")

    response = await client.patch(
        f"/users/{admin.id}",
        json={"role_id": member_role.id},
        headers=await seed.headers(admin),
    )

    assert response.status_code == 400


async def test_deactivated_user_loses_access(client, seed):
    org = await seed.organization("acme")
    admin = await seed.user(org, "boss@example.com", "admin")
    agent = await seed.user(org, "ann@example.com", "agent")
    agent_headers = await seed.headers(agent)

    response = await client.delete(f"/users/{agent.id}", headers=await seed.headers(admin))

    assert response.status_code == 200
    assert response.json() == {"message": "User deactivated successfully"}
    assert (await seed.get(User, agent.id)).is_active is False
    denied = await client.get("/permissions/me", headers=agent_headers)
    assert denied.status_code == 403
    assert denied.json()["error"] == "ACCOUNT_DEACTIVATED"
    assert len(await seed.audit_entries("user.deactivate")) == 1


async def test_deactivate_requires_users_delete(client, seed):
    org = await seed.organization("acme")
    manager = await seed.user(org, "max@example.com", "manager")
    agent = await seed.user(org, "ann@example.com", "agent")

    response = await client.delete(f"/users/{agent.id}", headers=await seed.headers(manager))

    assert response.status_code == 403
    assert (await seed.get(User, agent.id)).is_active is True
