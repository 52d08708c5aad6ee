"""
Append-only audit trail.

Tracks who did what, when, and from where. Rows are written by
app.features.audit.logger and never updated.
"""
import enum
from typing import Any, Dict
from sqlalchemy import String, JSON, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class ActorType(str, enum.Enum):
    SUPER_ADMIN = "super_admin"
    USER = "user"


class AuditLog(Base, TimestampMixin):
    """
    Audit log entry for a privileged action or an authentication event.

    ``actor_id`` points at a super admin or a tenant user depending on
    ``actor_type``; it is empty when a login names an unknown account.
    """
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # Actor
    actor_id: Mapped[str | None] = mapped_column(String(26), nullable=True, index=True)
    actor_type: Mapped[ActorType] = mapped_column(
        SQLEnum(ActorType, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ActorType.SUPER_ADMIN,
    )

    # Action details
    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_id: Mapped[str | None] = mapped_column(String(26), nullable=True, index=True)

    # Context
    organization_id: Mapped[str | None] = mapped_column(String(26), nullable=True, index=True)
    details: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, actor_id={self.actor_id}, action={self.action}, resource={self.resource_type})>"
