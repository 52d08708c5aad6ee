"""
Audit Logger.

Writes append-only audit entries in their own database session so an audit
write can never roll back or fail the request that caused it. Failures are
logged and dropped.

Routes don't call the logger directly. They depend on an AuditTrail bound
to the current actor and request, and either:

- ``trail.record(...)`` - queue the entry as a background task. It is written
  only after a successful response is sent.
- ``await trail.write_now(...)`` - write immediately, for events like failed
  logins that end in an error response.
"""
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import BackgroundTasks, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database.engine import AsyncSessionLocal
from app.core.errors import AuditWriteFailure
from app.features.audit.models import ActorType, AuditLog
from app.utils import get_logger


log = get_logger(__name__)

SENSITIVE_FIELDS = frozenset({"password", "password_hash", "token", "secret", "api_key"})
REDACTED = "[REDACTED]"


def redact(details: Any) -> Any:
    """Copy of ``details`` with sensitive keys replaced at any depth."""
    if isinstance(details, dict):
        return {
            key: REDACTED if str(key).lower() in SENSITIVE_FIELDS else redact(value)
            for key, value in details.items()
        }
    if isinstance(details, (list, tuple)):
        return [redact(item) for item in details]
    return details


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class AuditLogger:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def _write(self, entry: AuditLog) -> None:
        try:
            async with self.session_factory() as session:
                session.add(entry)
                await session.commit()
        except SQLAlchemyError as e:
            raise AuditWriteFailure(str(e)) from e

    async def log(
        self,
        actor_id: Optional[str],
        action: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        *,
        actor_type: ActorType = ActorType.SUPER_ADMIN,
        organization_id: Optional[str] = None,
    ) -> None:
        """Persist one entry. Never raises."""
        entry = AuditLog(
            actor_id=actor_id,
            actor_type=actor_type,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            organization_id=organization_id,
            details=redact(details) if details is not None else None,
            ip_address=ip_address,
            user_agent=(user_agent or "")[:255] or None,
        )
        try:
            await self._write(entry)
        except AuditWriteFailure as e:
            log.error("Audit write failed for action=%s actor=%s: %s", action, actor_id, e.message)
            return
        except Exception:
            log.exception("Audit write failed for action=%s actor=%s", action, actor_id)
            return
        log.info(
            "Audit: actor=%s:%s action=%s resource=%s:%s org=%s",
            actor_type.value, actor_id, action, resource_type, resource_id, organization_id,
        )


_audit_logger = AuditLogger(AsyncSessionLocal)


def get_audit_logger() -> AuditLogger:
    """FastAPI dependency; tests override it to point at their database."""
    return _audit_logger


@dataclass
class AuditTrail:
    """Audit helper bound to one request and one actor."""
    logger: AuditLogger
    background_tasks: BackgroundTasks
    actor_id: Optional[str]
    actor_type: ActorType
    organization_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    method: Optional[str] = None

    @classmethod
    def for_request(
        cls,
        request: Request,
        logger: AuditLogger,
        background_tasks: BackgroundTasks,
        actor_id: Optional[str],
        actor_type: ActorType,
        organization_id: Optional[str] = None,
    ) -> "AuditTrail":
        return cls(
            logger=logger,
            background_tasks=background_tasks,
            actor_id=actor_id,
            actor_type=actor_type,
            organization_id=organization_id,
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("user-agent"),
            method=request.method,
        )

    def _kwargs(self, action: str, resource_type: str, resource_id, details, actor_id, organization_id) -> dict:
        return dict(
            actor_id=actor_id if actor_id is not None else self.actor_id,
            action=action.format(method=(self.method or "").lower()) if "{method}" in action else action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details,
            ip_address=self.ip_address,
            user_agent=self.user_agent,
            actor_type=self.actor_type,
            organization_id=organization_id if organization_id is not None else self.organization_id,
        )

    def record(
        self,
        action: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        *,
        actor_id: Optional[str] = None,
        organization_id: Optional[str] = None,
    ) -> None:
        """Queue an entry to be written after the response is sent."""
        self.background_tasks.add_task(
            self.logger.log, **self._kwargs(action, resource_type, resource_id, details, actor_id, organization_id)
        )

    async def write_now(
        self,
        action: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        *,
        actor_id: Optional[str] = None,
        organization_id: Optional[str] = None,
    ) -> None:
        await self.logger.log(**self._kwargs(action, resource_type, resource_id, details, actor_id, organization_id))
