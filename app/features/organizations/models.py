"""
Organization (tenant) model.

Every tenant-owned row carries an organization_id. Organizations are created
by self-service registration or by a super admin, and their status is
managed from the super-admin realm.
"""
import enum
from sqlalchemy import String, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class OrganizationStatus(str, enum.Enum):
    """Lifecycle status of a tenant."""
    ACTIVE = "active"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"
    TRIALING = "trialing"


# Statuses whose users may sign in
LOGIN_ALLOWED_STATUSES = frozenset({OrganizationStatus.ACTIVE, OrganizationStatus.TRIALING})


class Organization(Base, TimestampMixin):
    """
    Organization model representing a CRM tenant.

    The slug is globally unique and derived from the name at registration.
    """
    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)

    status: Mapped[OrganizationStatus] = mapped_column(
        SQLEnum(OrganizationStatus, values_callable=lambda e: [m.value for m in e]),
        default=OrganizationStatus.ACTIVE,
        nullable=False,
        index=True,
    )

    @property
    def is_active(self) -> bool:
        return self.status in LOGIN_ALLOWED_STATUSES

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, slug={self.slug!r}, status={self.status})>"
