from typing import Optional
from fastapi import Request

from ..config import settings
from ..exceptions import Forbidden, TenantContextMissing
from ..models import Tenant


class TenantContext:
    """Manages tenant context for the current request."""

    def __init__(self, tenant: Tenant):
        self.tenant = tenant
        self.tenant_id = tenant.id

    @property
    def id(self) -> str:
        """Get the tenant ID."""
        return str(self.tenant_id)

    @property
    def key(self) -> str:
        return self.tenant.tenant_key

    @property
    def is_active(self) -> bool:
        return self.tenant.active


async def resolve_tenant(tenant_id: Optional[str] = None, tenant_key: Optional[str] = None) -> TenantContext:
    """
    Load an active tenant by primary key or by tenant key.

    Raises:
        TenantContextMissing: neither identifier was supplied
        Forbidden: the tenant is unknown or inactive
    """
    if tenant_id:
        tenant = await Tenant.filter(id=tenant_id).first()
    elif tenant_key and tenant_key.strip():
        tenant = await Tenant.filter(tenant_key=tenant_key.strip()).first()
    else:
        raise TenantContextMissing()

    if tenant is None:
        raise Forbidden("Unknown tenant")
    if not tenant.active:
        raise Forbidden("Tenant is not active")

    return TenantContext(tenant)


async def get_tenant_context(request: Request) -> TenantContext:
    """
    Extract tenant context from the request.

    A bearer token binds the request to its tenant. Without authentication the
    tenant key is read from the tenant header.
    """
    auth_user = getattr(request.state, "auth_user", None) or {}

    tenant_id = auth_user.get("tenant_id")
    if tenant_id:
        return await resolve_tenant(tenant_id=tenant_id)

    return await resolve_tenant(tenant_key=request.headers.get(settings.tenant_header))
