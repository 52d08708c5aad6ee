"""
Organization-scoped role model.

A role is a named permission set. Slugs are unique within an organization.
System roles (the provisioned ``admin`` role) can never be edited or deleted,
and a role still assigned to any user cannot be deleted.
"""
from typing import Any
from sqlalchemy import String, ForeignKey, JSON, Text, Boolean, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid
from app.features.permissions.registry import ADMIN_ROLE_SLUG


class Role(Base, TimestampMixin):
    """
    Role within a single organization.

    ``permissions`` holds an ordered JSON list of catalog permission strings.
    Writes go through app.features.roles.store, which validates them.
    """
    __tablename__ = "roles"
    __table_args__ = (
        UniqueConstraint("organization_id", "slug", name="uq_roles_organization_slug"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    organization_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    slug: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    permissions: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)

    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    @property
    def is_admin(self) -> bool:
        return self.slug == ADMIN_ROLE_SLUG

    @property
    def is_protected(self) -> bool:
        return self.is_system or self.is_admin

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, org_id={self.organization_id}, slug={self.slug!r}, system={self.is_system})>"
