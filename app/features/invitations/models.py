"""
Pending invitations to join an organization.
"""
from datetime import datetime
from sqlalchemy import String, ForeignKey, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class Invitation(Base, TimestampMixin):
    """
    Invitation for an email address to join an organization with a role.

    The token is the only credential needed to accept; ``accepted_at`` is set
    once and the invitation can't be used again.
    """
    __tablename__ = "invitations"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    organization_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Cleared when the role is deleted; acceptance then falls back to member
    role_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("roles.id", ondelete="SET NULL"),
        nullable=True,
    )

    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)

    invited_by: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Invitation(id={self.id}, email={self.email!r}, org_id={self.organization_id})>"
