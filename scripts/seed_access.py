"""
Seed script for access control data.

Run this script after deploying to:
- Provision missing built-in roles for every existing organization
- Assign users without a role to the member role
- Create (or reset) the platform super admin from SUPER_ADMIN_EMAIL / SUPER_ADMIN_PASSWORD

Usage:
    uv run python -m scripts.seed_access
"""
import asyncio
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import AsyncSessionLocal, init_db
from app.features.organizations.models import Organization
from app.features.permissions.registry import FALLBACK_ROLE_SLUG
from app.features.roles.store import provision_system_roles
from app.features.super_admin.models import SuperAdmin
from app.features.super_admin.service import upsert_super_admin
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


async def seed_roles(db: AsyncSession) -> int:
    """
    Provision built-in roles for every organization.

    Returns:
        Number of organizations processed
    """
    result = await db.execute(select(Organization))
    organizations = result.scalars().all()

    for organization in organizations:
        roles = await provision_system_roles(db, organization.id)

        result = await db.execute(
            select(User).where(User.organization_id == organization.id, User.role_id.is_(None))
        )
        orphans = result.scalars().all()
        for user in orphans:
            user.role_id = roles[FALLBACK_ROLE_SLUG].id
        if orphans:
            log.info("Assigned %s user(s) without a role to '%s' in %s", len(orphans), FALLBACK_ROLE_SLUG, organization.slug)

    await db.flush()
    log.info("Built-in roles present for %s organization(s)", len(organizations))
    return len(organizations)


async def seed_super_admin(
    db: AsyncSession,
    email: Optional[str],
    password: Optional[str],
    full_name: str,
) -> Optional[SuperAdmin]:
    if not email or not password:
        log.info("SUPER_ADMIN_EMAIL / SUPER_ADMIN_PASSWORD not set, skipping super admin")
        return None
    admin = await upsert_super_admin(db, email, password, full_name)
    log.info("Super admin ready: %s", admin.email)
    return admin


async def main():
    """Main function to seed access control data."""
    log.info("Starting access seeding...")

    # Initialize database tables first
    await init_db()

    async with AsyncSessionLocal() as db:
        try:
            await seed_roles(db)
            await seed_super_admin(db, config.SUPER_ADMIN_EMAIL, config.SUPER_ADMIN_PASSWORD, config.SUPER_ADMIN_NAME)
            await db.commit()
        except Exception as e:
            log.error(f"Error seeding access data: {e}", exc_info=True)
            await db.rollback()
            raise

    log.info("Access seeding completed successfully!")


if __name__ == "__main__":
    asyncio.run(main())
