import pytest

from app.core.errors import UnknownPermission
from app.features.permissions.registry import (
    ADMIN_ROLE_SLUG,
    DEFAULT_ROLE_PERMISSIONS,
    FALLBACK_ROLE_SLUG,
    PERMISSION_GROUPS,
    PERMISSION_LABELS,
    PERMISSION_SET,
    PERMISSIONS,
    default_permissions_for,
    is_known,
    validate_permissions,
)


def test_catalog_has_no_duplicates():
    assert len(PERMISSIONS) == len(PERMISSION_SET)
    assert set(PERMISSION_LABELS) == PERMISSION_SET


def test_every_permission_is_module_dot_action():
    for permission in PERMISSIONS:
        module, _, action = permission.partition(".")
        assert module and action, permission


def test_groups_cover_team_management():
    team = [item["key"] for item in PERMISSION_GROUPS["team"]["permissions"]]

    assert "permissions.manage" in team
    assert "users.delete" in team


def test_default_role_sets_only_use_catalog_permissions():
    for slug, permissions in DEFAULT_ROLE_PERMISSIONS.items():
        assert set(permissions) <= PERMISSION_SET, slug


def test_admin_default_is_full_catalog():
    assert set(DEFAULT_ROLE_PERMISSIONS[ADMIN_ROLE_SLUG]) == PERMISSION_SET


def test_only_admin_can_manage_permissions_by_default():
    holders = [slug for slug, perms in DEFAULT_ROLE_PERMISSIONS.items() if "permissions.manage" in perms]

    assert holders == [ADMIN_ROLE_SLUG]


def test_member_default_is_read_only():
    assert all(p.endswith(".view") for p in DEFAULT_ROLE_PERMISSIONS[FALLBACK_ROLE_SLUG])


def test_validate_dedupes_and_keeps_order():
    assert validate_permissions(["deals.view", "contacts.view", "deals.view"]) == ("deals.view", "contacts.view")


def test_validate_rejects_unknown_strings():
    with pytest.raises(UnknownPermission) as exc_info:
        validate_permissions(["contacts.view", "contacts.fly", "CONTACTS.VIEW"])

    assert exc_info.value.extra["unknown"] == ["contacts.fly", "CONTACTS.VIEW"]
    assert exc_info.value.status_code == 400


def test_is_known():
    assert is_known("tickets.assign")
    assert not is_known("tickets")


@pytest.mark.parametrize("slug", [None, "", "no-such-role"])
def test_unknown_role_slug_falls_back_to_member(slug):
    assert default_permissions_for(slug) == DEFAULT_ROLE_PERMISSIONS[FALLBACK_ROLE_SLUG]


def test_known_role_slug_defaults():
    assert default_permissions_for("agent") == DEFAULT_ROLE_PERMISSIONS["agent"]
