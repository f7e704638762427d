from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple, Union
from tortoise.exceptions import IntegrityError
from tortoise.transactions import atomic
from multiscim.models import User
from multiscim.models.user import generate_resource_id
from multiscim.schemas import (
    UserRequest, UserResponse, Meta, ResourceType, SCIMSchemaUri, PatchOperation
)
from multiscim.exceptions import ResourceNotFound, ResourceAlreadyExists, InvalidValue, TenantContextMissing
from multiscim.utils import (
    generate_etag, SimpleFilterTranslator, logger, PaginationParams, normalize_sort_order,
    populate_user_references
)
from multiscim.services.patch_interpreter import UserPatchInterpreter
from multiscim.config import settings

# Scalar columns copied one-to-one between the row and the resource
SIMPLE_FIELDS = [
    "user_name",
    "external_id",
    "display_name",
    "nick_name",
    "profile_url",
    "title",
    "user_type",
    "preferred_language",
    "locale",
    "timezone",
    "active",
]

# Multi-valued attributes stored as JSON lists on the row
COLLECTION_FIELDS = [
    "emails",
    "phone_numbers",
    "ims",
    "photos",
    "addresses",
    "entitlements",
    "roles",
    "x509_certificates",
    "groups",
]

SORT_FIELD_MAP = {
    "id": "id",
    "username": "user_name",
    "displayname": "display_name",
    "externalid": "external_id",
    "title": "title",
    "meta.created": "created",
    "meta.lastmodified": "last_modified",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserService:
    """Tenant-scoped User orchestration: validation, uniqueness, PATCH and persistence."""

    def __init__(self, validate_manager_reference_exists: bool = False):
        self.validate_manager_reference_exists = validate_manager_reference_exists
        self.interpreter = UserPatchInterpreter()

    @classmethod
    def from_settings(cls) -> "UserService":
        return cls(validate_manager_reference_exists=settings.validate_manager_reference_exists)

    @staticmethod
    def _require_tenant(tenant_id: Optional[str]) -> str:
        if not tenant_id:
            raise TenantContextMissing()
        return str(tenant_id)

    @staticmethod
    def _location(user_id: str) -> str:
        return f"{settings.api_prefix}/Users/{user_id}"

    async def _get_row(self, tenant_id: str, user_id: str) -> User:
        user = await User.filter(id=user_id, tenant_id=tenant_id).first()
        if not user:
            raise ResourceNotFound("User", user_id)
        return user

    @atomic()
    async def create_user(self, tenant_id: str, user_data: UserRequest) -> UserResponse:
        tenant_id = self._require_tenant(tenant_id)

        if not user_data.schemas or SCIMSchemaUri.USER.value not in user_data.schemas:
            raise InvalidValue("Missing or invalid 'schemas' property.")
        if not user_data.user_name or not user_data.user_name.strip():
            raise InvalidValue("userName is required")

        user_id = generate_resource_id()
        now = utcnow()
        resource = UserResponse(
            id=user_id,
            meta=Meta(
                resource_type=ResourceType.USER,
                created=now,
                last_modified=now,
                location=self._location(user_id),
            ),
            **user_data.model_dump(exclude={"schemas"}),
        )

        await self._ensure_unique(tenant_id, resource)
        await self._finalize(tenant_id, resource)

        row = User(id=user_id, tenant_id=tenant_id, created=now)
        self._apply_resource(row, resource)
        await self._save(row, resource)

        logger.info(f"Created user {resource.user_name} ({user_id}) in tenant {tenant_id}")
        return resource

    async def get_user(self, tenant_id: str, user_id: str) -> UserResponse:
        tenant_id = self._require_tenant(tenant_id)
        return self._to_response(await self._get_row(tenant_id, user_id))

    async def list_users(
        self,
        tenant_id: str,
        pagination: PaginationParams,
        filter_query: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = "ascending",
    ) -> Tuple[List[UserResponse], int]:
        tenant_id = self._require_tenant(tenant_id)
        pagination.validate_bounds()
        sort_order = normalize_sort_order(sort_order)

        query = User.filter(tenant_id=tenant_id)

        predicate = SimpleFilterTranslator(resource_type="User").translate(filter_query)
        if predicate is not None:
            query = query.filter(predicate)

        # Get total count after filtering
        total_count = await query.count()

        sort_field = SORT_FIELD_MAP.get(sort_by.lower()) if sort_by else None
        if sort_field:
            order_prefix = "-" if sort_order == "descending" else ""
            query = query.order_by(f"{order_prefix}{sort_field}", "id")
        else:
            query = query.order_by("created", "id")

        rows = await query.offset(pagination.offset).limit(pagination.limit)
        return [self._to_response(row) for row in rows], total_count

    @atomic()
    async def replace_user(self, tenant_id: str, user_id: str, user_data: UserRequest) -> UserResponse:
        tenant_id = self._require_tenant(tenant_id)
        row = await self._get_row(tenant_id, user_id)

        if user_data.schemas is not None and SCIMSchemaUri.USER.value not in user_data.schemas:
            raise InvalidValue("Missing or invalid 'schemas' property.")
        if not user_data.user_name or not user_data.user_name.strip():
            raise InvalidValue("userName is required")

        current = self._to_response(row)
        data = user_data.model_dump(exclude={"schemas"})
        # Group memberships are server-managed, keep them unless the client restates them
        if user_data.groups is None:
            data["groups"] = current.groups

        resource = UserResponse(
            id=row.id,
            meta=current.meta.model_copy(update={"last_modified": utcnow()}),
            **data,
        )

        await self._ensure_unique(tenant_id, resource, exclude_id=row.id)
        await self._finalize(tenant_id, resource)

        self._apply_resource(row, resource)
        await self._save(row, resource)

        logger.info(f"Replaced user {resource.user_name} ({row.id})")
        return resource

    @atomic()
    async def patch_user(
        self,
        tenant_id: str,
        user_id: str,
        operations: Iterable[Union[PatchOperation, dict]],
    ) -> UserResponse:
        """Apply PATCH operations to a user as per RFC 7644 Section 3.5.2"""
        tenant_id = self._require_tenant(tenant_id)
        row = await self._get_row(tenant_id, user_id)
        resource = self._to_response(row)

        operations = list(operations)
        logger.debug(f"patch_user: applying {len(operations)} operation(s) to user {user_id}")
        self.interpreter.apply_all(resource, operations)

        resource.meta.last_modified = utcnow()
        await self._ensure_unique(tenant_id, resource, exclude_id=row.id)
        await self._finalize(tenant_id, resource)

        self._apply_resource(row, resource)
        await self._save(row, resource)

        logger.info(f"Patched user {resource.user_name} ({row.id})")
        return resource

    async def delete_user(self, tenant_id: str, user_id: str) -> None:
        tenant_id = self._require_tenant(tenant_id)
        row = await self._get_row(tenant_id, user_id)
        await row.delete()
        logger.info(f"Deleted user {row.user_name} ({user_id})")

    async def _ensure_unique(self, tenant_id: str, resource: UserResponse, exclude_id: Optional[str] = None) -> None:
        query = User.filter(tenant_id=tenant_id, user_name__iexact=resource.user_name)
        if exclude_id:
            query = query.exclude(id=exclude_id)
        if await query.exists():
            raise ResourceAlreadyExists("User", "userName", resource.user_name)

        if resource.external_id:
            query = User.filter(tenant_id=tenant_id, external_id=resource.external_id)
            if exclude_id:
                query = query.exclude(id=exclude_id)
            if await query.exists():
                raise ResourceAlreadyExists("User", "externalId", resource.external_id)

    async def _finalize(self, tenant_id: str, resource: UserResponse) -> None:
        resource.sync_schemas()
        populate_user_references(resource)
        if self.validate_manager_reference_exists:
            await self._validate_manager(tenant_id, resource)
        resource.meta.version = generate_etag(resource)

    async def _validate_manager(self, tenant_id: str, resource: UserResponse) -> None:
        manager = resource.enterprise_user.manager if resource.enterprise_user else None
        if manager is None or not manager.value:
            return
        if manager.value == resource.id:
            raise InvalidValue("A user cannot be their own manager")
        if not await User.filter(tenant_id=tenant_id, id=manager.value).exists():
            raise InvalidValue(f"Manager reference '{manager.value}' does not match any User")

    async def _save(self, row: User, resource: UserResponse) -> None:
        try:
            await row.save()
        except IntegrityError as e:
            logger.warning(f"Integrity error saving user {row.id}: {e}")
            if "external_id" in str(e):
                raise ResourceAlreadyExists("User", "externalId", resource.external_id)
            raise ResourceAlreadyExists("User", "userName", resource.user_name)

    @staticmethod
    def _apply_resource(row: User, resource: UserResponse) -> None:
        for field in SIMPLE_FIELDS:
            setattr(row, field, getattr(resource, field))

        row.name = resource.name.model_dump(by_alias=True, exclude_none=True) if resource.name else None
        for field in COLLECTION_FIELDS:
            setattr(row, field, [
                item.model_dump(by_alias=True, exclude_none=True)
                for item in getattr(resource, field) or []
            ])

        row.enterprise = (
            resource.enterprise_user.model_dump(by_alias=True, exclude_none=True)
            if resource.enterprise_user else None
        )
        row.last_modified = resource.meta.last_modified
        row.version = resource.meta.version

    @classmethod
    def _to_response(cls, user: User) -> UserResponse:
        values = {field: getattr(user, field) for field in SIMPLE_FIELDS}
        for field in COLLECTION_FIELDS:
            values[field] = getattr(user, field) or None

        return UserResponse(
            id=str(user.id),
            name=user.name or None,
            enterprise_user=user.enterprise or None,
            meta=Meta(
                resource_type=ResourceType.USER,
                created=user.created,
                last_modified=user.last_modified,
                location=cls._location(str(user.id)),
                version=user.version,
            ),
            **values,
        )
