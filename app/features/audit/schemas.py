"""
Pydantic schemas for reading the audit log.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict

from app.features.audit.models import ActorType


class AuditLogResponse(BaseModel):
    """Schema for audit log response."""
    id: str
    actor_id: Optional[str]
    actor_type: ActorType
    action: str
    resource_type: str
    resource_id: Optional[str]
    organization_id: Optional[str]
    details: Optional[Dict[str, Any]]
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuditLogListResponse(BaseModel):
    """Paginated audit log response."""
    items: List[AuditLogResponse]
    total: int
    skip: int
    limit: int
