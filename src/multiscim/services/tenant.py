from typing import Optional, List
from uuid import UUID
from tortoise.exceptions import DoesNotExist, IntegrityError

from ..models import Tenant
from ..utils import logger
from ..exceptions import ResourceNotFound, ResourceAlreadyExists, InvalidValue


class TenantService:
    """Administrative operations on tenants (the customer boundary)."""

    @staticmethod
    async def create_tenant(
        tenant_key: str,
        display_name: str,
        description: Optional[str] = None,
        active: bool = True,
    ) -> Tenant:
        """
        Create a new tenant.

        Args:
            tenant_key: Correlation string clients present to select the tenant (e.g. 'acme-corp')
            display_name: Human-readable name (e.g. 'Acme Corporation')
            description: Optional free text
            active: Whether requests may be served for the tenant

        Raises:
            InvalidValue: If the tenant key or display name is blank
            ResourceAlreadyExists: If the tenant key is taken
        """
        if not tenant_key or not tenant_key.strip():
            raise InvalidValue("Tenant key is required")
        if not display_name or not display_name.strip():
            raise InvalidValue("Tenant display name is required")

        tenant_key = tenant_key.strip()
        if await Tenant.filter(tenant_key=tenant_key).exists():
            raise ResourceAlreadyExists("Tenant", "tenant_key", tenant_key)

        try:
            tenant = await Tenant.create(
                tenant_key=tenant_key,
                display_name=display_name.strip(),
                description=description,
                active=active,
            )
        except IntegrityError:
            raise ResourceAlreadyExists("Tenant", "tenant_key", tenant_key)

        logger.info(f"Created tenant: {tenant.tenant_key} (ID: {tenant.id})")
        return tenant

    @staticmethod
    async def get_tenant(tenant_id: UUID) -> Tenant:
        try:
            return await Tenant.get(id=tenant_id)
        except (DoesNotExist, ValueError):
            raise ResourceNotFound("Tenant", str(tenant_id))

    @staticmethod
    async def get_tenant_by_key(tenant_key: str) -> Tenant:
        tenant = await Tenant.filter(tenant_key=tenant_key).first()
        if not tenant:
            raise ResourceNotFound("Tenant", tenant_key)
        return tenant

    @staticmethod
    async def find_tenant(identifier: str) -> Tenant:
        """Look a tenant up by UUID, falling back to its tenant key."""
        try:
            tenant_id = UUID(identifier)
        except ValueError:
            return await TenantService.get_tenant_by_key(identifier)
        return await TenantService.get_tenant(tenant_id)

    @staticmethod
    async def list_tenants(
        active_only: bool = True,
        offset: int = 0,
        limit: int = 100
    ) -> List[Tenant]:
        query = Tenant.all()
        if active_only:
            query = query.filter(active=True)

        return await query.offset(offset).limit(limit).order_by("tenant_key")

    @staticmethod
    async def update_tenant(
        tenant_id: UUID,
        display_name: Optional[str] = None,
        description: Optional[str] = None,
        active: Optional[bool] = None,
    ) -> Tenant:
        """
        Update a tenant. Arguments left as None are not changed.

        Raises:
            ResourceNotFound: If tenant not found
        """
        tenant = await TenantService.get_tenant(tenant_id)

        if display_name is not None:
            if not display_name.strip():
                raise InvalidValue("Tenant display name cannot be empty")
            tenant.display_name = display_name.strip()
        if description is not None:
            tenant.description = description
        if active is not None:
            tenant.active = active

        await tenant.save()
        logger.info(f"Updated tenant: {tenant.tenant_key} (ID: {tenant.id})")
        return tenant

    @staticmethod
    async def delete_tenant(tenant_id: UUID) -> None:
        """
        Delete a tenant.

        WARNING: This cascades to every User, Group and API token of the tenant.
        """
        tenant = await TenantService.get_tenant(tenant_id)
        stats = await TenantService.get_tenant_stats(tenant.id)

        logger.warning(
            f"Deleting tenant '{tenant.tenant_key}' (ID: {tenant.id}) with "
            f"{stats['counts']['users']} users, {stats['counts']['groups']} groups, "
            f"{stats['counts']['api_tokens']} tokens"
        )

        await tenant.delete()
        logger.info(f"Deleted tenant: {tenant.tenant_key} (ID: {tenant_id})")

    @staticmethod
    async def get_tenant_stats(tenant_id: UUID) -> dict:
        tenant = await TenantService.get_tenant(tenant_id)

        return {
            "id": str(tenant.id),
            "tenant_key": tenant.tenant_key,
            "display_name": tenant.display_name,
            "active": tenant.active,
            "created_at": tenant.created_at.isoformat(),
            "modified_at": tenant.modified_at.isoformat(),
            "counts": {
                "users": await tenant.users.all().count(),
                "groups": await tenant.groups.all().count(),
                "api_tokens": await tenant.api_tokens.all().count(),
            }
        }
