import os

# Settings are read at import time, so they must be in place before the app loads
os.environ["JWT_SECRET"] = "test-secret"
os.environ["RATE_LIMIT_ENABLED"] = "0"
os.environ["EXPOSE_RESET_CODES"] = "1"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test-unused.db")

from typing import Any, Optional  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from appwrite.exception import AppwriteException  # noqa: E402
from httpx import ASGITransport  # noqa: E402
from sqlalchemy import select  # noqa: E402

from app.core.database.engine import create_engine, create_session_factory, get_db, init_db  # noqa: E402
from app.features.audit.logger import AuditLogger, get_audit_logger  # noqa: E402
from app.features.audit.models import AuditLog  # noqa: E402
from app.features.auth.passwords import hash_password  # noqa: E402
from app.features.auth.tokens import issue_super_admin_token, issue_tenant_token  # noqa: E402
from app.features.organizations.models import Organization, OrganizationStatus  # noqa: E402
from app.features.roles.models import Role  # noqa: E402
from app.features.roles.store import provision_system_roles  # noqa: E402
from app.features.super_admin.models import SuperAdmin  # noqa: E402
from app.features.users.auth import get_identity_store  # noqa: E402
from app.features.users.models import User  # noqa: E402
from app.main import app  # noqa: E402


# -----------------------------------------------------------------------------
# Identity store double
# -----------------------------------------------------------------------------


class FakeIdentityStore:
    """In-memory stand-in for the Appwrite identity store."""

    def __init__(self):
        self.accounts: dict[str, dict[str, str]] = {}
        self._next = 0

    def add(self, email: str, password: str) -> str:
        self._next += 1
        appwrite_id = f"aw-{self._next}"
        self.accounts[appwrite_id] = {"email": email.lower(), "password": password}
        return appwrite_id

    def password_of(self, appwrite_id: str) -> str:
        return self.accounts[appwrite_id]["password"]

    async def verify_password(self, email: str, password: str) -> Optional[str]:
        for appwrite_id, account in self.accounts.items():
            if account["email"] == email.lower() and account["password"] == password:
                return appwrite_id
        return None

    async def create_user(self, email: str, password: str, name: str) -> str:
        if any(account["email"] == email.lower() for account in self.accounts.values()):
            raise AppwriteException("user already exists", code=409)
        return self.add(email, password)

    async def update_password(self, appwrite_id: str, password: str) -> None:
        self.accounts[appwrite_id]["password"] = password

    async def delete_user(self, appwrite_id: str) -> None:
        self.accounts.pop(appwrite_id, None)


# -----------------------------------------------------------------------------
# Database Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
async def engine(tmp_path):
    """A fresh SQLite database file per test."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def identity():
    return FakeIdentityStore()


@pytest.fixture
def audit_logger(session_factory):
    return AuditLogger(session_factory)


# -----------------------------------------------------------------------------
# Client Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
async def client(session_factory, identity, audit_logger):
    """
    AsyncClient against the app with the database, identity store and audit
    logger pointed at the test doubles.
    """
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_identity_store] = lambda: identity
    app.dependency_overrides[get_audit_logger] = lambda: audit_logger

    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as c:
        yield c

    app.dependency_overrides.clear()


# -----------------------------------------------------------------------------
# Seeding helpers
# -----------------------------------------------------------------------------


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class Seeder:
    def __init__(self, session_factory, identity: FakeIdentityStore):
        self.session_factory = session_factory
        self.identity = identity

    async def organization(self, slug: str, status: OrganizationStatus = OrganizationStatus.ACTIVE) -> Organization:
        async with self.session_factory() as session:
            organization = Organization(name=slug.title(), slug=slug, status=status)
            session.add(organization)
            await session.flush()
            await provision_system_roles(session, organization.id)
            await session.commit()
            return organization

    async def role(self, organization: Organization, slug: str) -> Role:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Role).where(Role.organization_id == organization.id, Role.slug == slug)
            )
            return result.scalar_one()

    async def custom_role(self, organization: Organization, slug: str, permissions: list[str]) -> Role:
        async with self.session_factory() as session:
            role = Role(organization_id=organization.id, slug=slug, name=slug.title(), permissions=permissions)
            session.add(role)
            await session.commit()
            return role

    async def user(
        self,
        organization: Organization,
        email: str,
        role_slug: Optional[str] = "member",
        password: str = "correct-horse-battery",
        overrides: Optional[dict[str, Any]] = None,
        is_active: bool = True,
    ) -> User:
        role = await self.role(organization, role_slug) if role_slug else None
        appwrite_id = self.identity.add(email, password)
        async with self.session_factory() as session:
            user = User(
                organization_id=organization.id,
                appwrite_id=appwrite_id,
                email=email.lower(),
                full_name=email.split("@")[0].title(),
                role_id=role.id if role else None,
                permissions=overrides,
                is_active=is_active,
            )
            session.add(user)
            await session.commit()
            return user

    async def token(self, user: User) -> str:
        """Token shaped exactly like the one login issues."""
        async with self.session_factory() as session:
            role = await session.get(Role, user.role_id) if user.role_id else None
        return issue_tenant_token(
            user.id,
            user.organization_id,
            role.slug if role else "member",
            list(role.permissions) if role else [],
        )

    async def headers(self, user: User) -> dict[str, str]:
        return auth(await self.token(user))

    async def super_admin(
        self,
        email: str = "root@example.com",
        password: str = "super-secret-password",
        is_active: bool = True,
    ) -> SuperAdmin:
        async with self.session_factory() as session:
            admin = SuperAdmin(
                email=email,
                full_name="Root",
                password_hash=hash_password(password),
                is_active=is_active,
            )
            session.add(admin)
            await session.commit()
            return admin

    def super_admin_headers(self, admin: SuperAdmin) -> dict[str, str]:
        return auth(issue_super_admin_token(admin.id, admin.email))

    async def audit_entries(self, action: Optional[str] = None) -> list[AuditLog]:
        async with self.session_factory() as session:
            stmt = select(AuditLog).order_by(AuditLog.created_at, AuditLog.id)
            if action:
                stmt = stmt.where(AuditLog.action == action)
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get(self, model, ident):
        async with self.session_factory() as session:
            return await session.get(model, ident)


@pytest.fixture
def seed(session_factory, identity):
    return Seeder(session_factory, identity)
