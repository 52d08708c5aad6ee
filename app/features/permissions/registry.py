"""
Static catalog of tenant permissions.

Permission strings have the form ``<module>.<action>`` and are matched
exactly (case-sensitive, no wildcards). Groups exist for UI presentation;
default role sets are used to provision new organizations and as the
fallback for users without an assigned role.
"""
from typing import Iterable

from app.core.errors import UnknownPermission


ADMIN_ROLE_SLUG = "admin"
FALLBACK_ROLE_SLUG = "member"


# ============================================================================
# Permission Definitions
# ============================================================================

PERMISSION_GROUPS: dict[str, dict] = {
    "crm": {
        "label": "CRM",
        "permissions": [
            {"key": "contacts.view", "label": "View Contacts"},
            {"key": "contacts.create", "label": "Create Contacts"},
            {"key": "contacts.edit", "label": "Edit Contacts"},
            {"key": "contacts.delete", "label": "Delete Contacts"},
            {"key": "contacts.export", "label": "Export Contacts"},
            {"key": "companies.view", "label": "View Companies"},
            {"key": "companies.create", "label": "Create Companies"},
            {"key": "companies.edit", "label": "Edit Companies"},
            {"key": "companies.delete", "label": "Delete Companies"},
            {"key": "companies.export", "label": "Export Companies"},
            {"key": "segments.view", "label": "View Segments"},
            {"key": "segments.create", "label": "Create Segments"},
            {"key": "segments.edit", "label": "Edit Segments"},
            {"key": "segments.delete", "label": "Delete Segments"},
            {"key": "deals.view", "label": "View Deals"},
            {"key": "deals.create", "label": "Create Deals"},
            {"key": "deals.edit", "label": "Edit Deals"},
            {"key": "deals.delete", "label": "Delete Deals"},
            {"key": "deals.export", "label": "Export Deals"},
        ],
    },
    "campaigns": {
        "label": "Campaigns",
        "permissions": [
            {"key": "campaigns.view", "label": "View Campaigns"},
            {"key": "campaigns.create", "label": "Create Campaigns"},
            {"key": "campaigns.edit", "label": "Edit Campaigns"},
            {"key": "campaigns.delete", "label": "Delete Campaigns"},
            {"key": "campaigns.send", "label": "Send Campaigns"},
        ],
    },
    "conversations": {
        "label": "Conversations",
        "permissions": [
            {"key": "conversations.view", "label": "View Conversations"},
            {"key": "conversations.reply", "label": "Reply to Conversations"},
            {"key": "conversations.assign", "label": "Assign Conversations"},
            {"key": "conversations.manage", "label": "Manage Conversation Settings"},
        ],
    },
    "tickets": {
        "label": "Tickets",
        "permissions": [
            {"key": "tickets.view", "label": "View Tickets"},
            {"key": "tickets.create", "label": "Create Tickets"},
            {"key": "tickets.edit", "label": "Edit Tickets"},
            {"key": "tickets.delete", "label": "Delete Tickets"},
            {"key": "tickets.assign", "label": "Assign Tickets"},
        ],
    },
    "analytics": {
        "label": "Analytics",
        "permissions": [
            {"key": "analytics.view", "label": "View Analytics"},
            {"key": "analytics.export", "label": "Export Analytics"},
        ],
    },
    "settings": {
        "label": "Settings",
        "permissions": [
            {"key": "tags.view", "label": "View Tags"},
            {"key": "tags.create", "label": "Create Tags"},
            {"key": "tags.edit", "label": "Edit Tags"},
            {"key": "tags.delete", "label": "Delete Tags"},
            {"key": "statuses.view", "label": "View Contact Statuses"},
            {"key": "statuses.create", "label": "Create Contact Statuses"},
            {"key": "statuses.edit", "label": "Edit Contact Statuses"},
            {"key": "statuses.delete", "label": "Delete Contact Statuses"},
            {"key": "lead_sources.view", "label": "View Lead Sources"},
            {"key": "lead_sources.create", "label": "Create Lead Sources"},
            {"key": "lead_sources.edit", "label": "Edit Lead Sources"},
            {"key": "lead_sources.delete", "label": "Delete Lead Sources"},
        ],
    },
    "team": {
        "label": "Team Management",
        "permissions": [
            {"key": "users.view", "label": "View Users"},
            {"key": "users.invite", "label": "Invite Users"},
            {"key": "users.edit", "label": "Edit Users"},
            {"key": "users.delete", "label": "Delete Users"},
            {"key": "permissions.manage", "label": "Manage Permissions"},
        ],
    },
    "organization": {
        "label": "Organization",
        "permissions": [
            {"key": "organization.view", "label": "View Organization"},
            {"key": "organization.edit", "label": "Edit Organization"},
            {"key": "organization.delete", "label": "Delete Organization"},
        ],
    },
}

# Every permission in catalog order
PERMISSIONS: tuple[str, ...] = tuple(
    item["key"] for group in PERMISSION_GROUPS.values() for item in group["permissions"]
)
PERMISSION_SET: frozenset[str] = frozenset(PERMISSIONS)

PERMISSION_LABELS: dict[str, str] = {
    item["key"]: item["label"] for group in PERMISSION_GROUPS.values() for item in group["permissions"]
}


# ============================================================================
# Role-Based Default Permissions
# ============================================================================

_MEMBER = [
    "contacts.view", "companies.view", "segments.view", "deals.view",
    "conversations.view", "tickets.view",
    "tags.view", "statuses.view", "lead_sources.view",
    "users.view", "organization.view",
]

_AGENT = [
    "contacts.view", "contacts.create", "contacts.edit",
    "companies.view", "companies.create", "companies.edit",
    "segments.view",
    "deals.view", "deals.create", "deals.edit",
    "conversations.view", "conversations.reply",
    "tickets.view", "tickets.create", "tickets.edit",
    "tags.view", "statuses.view", "lead_sources.view",
    "users.view",
    "organization.view",
]

_MANAGER = [
    *[p for p in PERMISSIONS if p.split(".")[0] in ("contacts", "companies", "segments", "deals", "campaigns", "conversations")],
    "tickets.view", "tickets.create", "tickets.edit", "tickets.assign",
    "analytics.view", "analytics.export",
    "tags.view", "statuses.view", "lead_sources.view",
    "users.view", "users.invite",
    "organization.view",
]

DEFAULT_ROLE_PERMISSIONS: dict[str, tuple[str, ...]] = {
    ADMIN_ROLE_SLUG: PERMISSIONS,
    "manager": tuple(_MANAGER),
    "agent": tuple(_AGENT),
    FALLBACK_ROLE_SLUG: tuple(_MEMBER),
}

DEFAULT_ROLE_DETAILS: dict[str, dict[str, str]] = {
    ADMIN_ROLE_SLUG: {"name": "Admin", "description": "Full access to every module"},
    "manager": {"name": "Manager", "description": "Manages CRM data, campaigns, conversations and tickets"},
    "agent": {"name": "Agent", "description": "Works contacts, deals, conversations and tickets"},
    FALLBACK_ROLE_SLUG: {"name": "Member", "description": "Read-only access"},
}


# ============================================================================
# Lookups
# ============================================================================

def is_known(permission: str) -> bool:
    return permission in PERMISSION_SET


def validate_permissions(permissions: Iterable[str]) -> tuple[str, ...]:
    """
    Check every string against the catalog.

    Returns the permissions deduplicated in their original order.

    Raises:
        UnknownPermission: if any string is not in the catalog
    """
    seen: dict[str, None] = {}
    unknown = []
    for permission in permissions:
        if not isinstance(permission, str) or permission not in PERMISSION_SET:
            unknown.append(permission)
            continue
        seen.setdefault(permission, None)
    if unknown:
        raise UnknownPermission(f"Unknown permission(s): {', '.join(map(str, unknown))}", unknown=unknown)
    return tuple(seen)


def default_permissions_for(role_slug: str | None) -> tuple[str, ...]:
    """Baseline permissions for a role slug; unknown slugs get the member set."""
    return DEFAULT_ROLE_PERMISSIONS.get(role_slug or FALLBACK_ROLE_SLUG, DEFAULT_ROLE_PERMISSIONS[FALLBACK_ROLE_SLUG])
