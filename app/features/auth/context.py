"""
Tenant Context Binder.

Turns a verified tenant principal into a TenantContext scoped to its
organization, and guards individual resources against cross-tenant access.
"""
from dataclasses import dataclass
from typing import Any, Mapping

from sqlalchemy import Select

from app.core.errors import CrossTenantAccess, TenantContextMissing
from app.features.auth.tokens import PrincipalContext


@dataclass(frozen=True)
class TenantContext:
    principal: PrincipalContext
    organization_id: str

    @property
    def user_id(self) -> str:
        return self.principal.principal_id

    def owns(self, resource: Any, org_field: str = "organization_id") -> bool:
        if isinstance(resource, Mapping):
            owner = resource.get(org_field)
        else:
            owner = getattr(resource, org_field, None)
        return owner is not None and owner == self.organization_id

    def verify_ownership(self, resource: Any, org_field: str = "organization_id") -> Any:
        """
        Return the resource when it belongs to this organization.

        Raises:
            CrossTenantAccess: the resource's organization differs or is missing
        """
        if not self.owns(resource, org_field):
            raise CrossTenantAccess()
        return resource

    def scope(self, stmt: Select, model: Any) -> Select:
        """Restrict a select to this organization's rows."""
        return stmt.where(model.organization_id == self.organization_id)


def bind_tenant(principal: PrincipalContext) -> TenantContext:
    """
    Raises:
        TenantContextMissing: the principal carries no organization id
    """
    if not principal.organization_id:
        raise TenantContextMissing()
    return TenantContext(principal=principal, organization_id=principal.organization_id)
