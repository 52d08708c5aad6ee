"""
Audit trail dependencies for tenant routes.
"""
from typing import Annotated

from fastapi import BackgroundTasks, Depends, Request

from app.features.audit.logger import AuditLogger, AuditTrail, get_audit_logger
from app.features.audit.models import ActorType
from app.features.auth.context import TenantContext
from app.features.auth.dependencies import get_tenant_context


async def get_tenant_audit_trail(
    request: Request,
    background_tasks: BackgroundTasks,
    tenant: Annotated[TenantContext, Depends(get_tenant_context)],
    logger: Annotated[AuditLogger, Depends(get_audit_logger)],
) -> AuditTrail:
    return AuditTrail.for_request(
        request,
        logger,
        background_tasks,
        actor_id=tenant.user_id,
        actor_type=ActorType.USER,
        organization_id=tenant.organization_id,
    )
