from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple, Union
from tortoise.exceptions import IntegrityError
from tortoise.transactions import atomic
from multiscim.models import Group, User
from multiscim.models.user import generate_resource_id
from multiscim.schemas import (
    GroupRequest, GroupResponse, Meta, ResourceType, SCIMSchemaUri, PatchOperation
)
from multiscim.exceptions import ResourceNotFound, ResourceAlreadyExists, InvalidValue, TenantContextMissing
from multiscim.utils import (
    generate_etag, SimpleFilterTranslator, logger, PaginationParams, normalize_sort_order,
    populate_group_references
)
from multiscim.services.patch_interpreter import GroupPatchInterpreter
from multiscim.config import settings

SORT_FIELD_MAP = {
    "id": "id",
    "displayname": "display_name",
    "externalid": "external_id",
    "meta.created": "created",
    "meta.lastmodified": "last_modified",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GroupService:
    def __init__(self):
        self.interpreter = GroupPatchInterpreter()

    @staticmethod
    def _require_tenant(tenant_id: Optional[str]) -> str:
        if not tenant_id:
            raise TenantContextMissing()
        return str(tenant_id)

    @staticmethod
    def _location(group_id: str) -> str:
        return f"{settings.api_prefix}/Groups/{group_id}"

    async def _get_row(self, tenant_id: str, group_id: str) -> Group:
        group = await Group.filter(id=group_id, tenant_id=tenant_id).first()
        if not group:
            raise ResourceNotFound("Group", group_id)
        return group

    @staticmethod
    def _validate_request(group_data: GroupRequest, require_schemas: bool) -> None:
        if require_schemas or group_data.schemas is not None:
            if not group_data.schemas or SCIMSchemaUri.GROUP.value not in group_data.schemas:
                raise InvalidValue("Missing or invalid 'schemas' property.")
        if not group_data.display_name or not group_data.display_name.strip():
            raise InvalidValue("DisplayName is required")

    @atomic()
    async def create_group(self, tenant_id: str, group_data: GroupRequest) -> GroupResponse:
        tenant_id = self._require_tenant(tenant_id)
        self._validate_request(group_data, require_schemas=True)

        group_id = generate_resource_id()
        now = utcnow()
        resource = GroupResponse(
            id=group_id,
            display_name=group_data.display_name.strip(),
            external_id=group_data.external_id,
            members=group_data.members,
            meta=Meta(
                resource_type=ResourceType.GROUP,
                created=now,
                last_modified=now,
                location=self._location(group_id),
            ),
        )

        await self._ensure_unique(tenant_id, resource)
        await self._finalize(tenant_id, resource)

        row = Group(id=group_id, tenant_id=tenant_id, created=now)
        self._apply_resource(row, resource)
        await self._save(row, resource)

        logger.info(f"Created group {resource.display_name} ({group_id}) with {len(resource.members or [])} members")
        return resource

    async def get_group(self, tenant_id: str, group_id: str) -> GroupResponse:
        tenant_id = self._require_tenant(tenant_id)
        return self._to_response(await self._get_row(tenant_id, group_id))

    async def list_groups(
        self,
        tenant_id: str,
        pagination: PaginationParams,
        filter_query: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = "ascending",
    ) -> Tuple[List[GroupResponse], int]:
        tenant_id = self._require_tenant(tenant_id)
        pagination.validate_bounds()
        sort_order = normalize_sort_order(sort_order)

        query = Group.filter(tenant_id=tenant_id)

        predicate = SimpleFilterTranslator(resource_type="Group").translate(filter_query)
        if predicate is not None:
            query = query.filter(predicate)

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
    async def replace_group(self, tenant_id: str, group_id: str, group_data: GroupRequest) -> GroupResponse:
        tenant_id = self._require_tenant(tenant_id)
        row = await self._get_row(tenant_id, group_id)
        self._validate_request(group_data, require_schemas=False)

        current = self._to_response(row)
        resource = GroupResponse(
            id=row.id,
            display_name=group_data.display_name.strip(),
            external_id=group_data.external_id,
            members=group_data.members,
            meta=current.meta.model_copy(update={"last_modified": utcnow()}),
        )

        await self._ensure_unique(tenant_id, resource, exclude_id=row.id)
        await self._finalize(tenant_id, resource)

        self._apply_resource(row, resource)
        await self._save(row, resource)

        logger.info(f"Replaced group {resource.display_name} ({row.id})")
        return resource

    @atomic()
    async def patch_group(
        self,
        tenant_id: str,
        group_id: str,
        operations: Iterable[Union[PatchOperation, dict]],
    ) -> GroupResponse:
        """
        Apply PATCH operations to a group.

        Member changes are the common case: identity providers add and remove members
        one operation at a time, often addressing them with ``members[value eq "..."]``.
        """
        tenant_id = self._require_tenant(tenant_id)
        row = await self._get_row(tenant_id, group_id)
        resource = self._to_response(row)

        operations = list(operations)
        logger.debug(f"patch_group: applying {len(operations)} operation(s) to group {group_id}")
        self.interpreter.apply_all(resource, operations)

        resource.meta.last_modified = utcnow()
        await self._ensure_unique(tenant_id, resource, exclude_id=row.id)
        await self._finalize(tenant_id, resource)

        self._apply_resource(row, resource)
        await self._save(row, resource)

        logger.info(f"Patched group {resource.display_name} ({row.id}), {len(resource.members or [])} members")
        return resource

    async def delete_group(self, tenant_id: str, group_id: str) -> None:
        tenant_id = self._require_tenant(tenant_id)
        row = await self._get_row(tenant_id, group_id)
        await row.delete()
        logger.info(f"Deleted group {row.display_name} ({group_id})")

    async def _ensure_unique(self, tenant_id: str, resource: GroupResponse, exclude_id: Optional[str] = None) -> None:
        # displayName is not unique
        if not resource.external_id:
            return
        query = Group.filter(tenant_id=tenant_id, external_id=resource.external_id)
        if exclude_id:
            query = query.exclude(id=exclude_id)
        if await query.exists():
            raise ResourceAlreadyExists("Group", "externalId", resource.external_id)

    async def _finalize(self, tenant_id: str, resource: GroupResponse) -> None:
        await self._fill_member_display(tenant_id, resource)
        populate_group_references(resource)
        resource.meta.version = generate_etag(resource)

    @staticmethod
    async def _fill_member_display(tenant_id: str, resource: GroupResponse) -> None:
        """Default a member's display to the referenced user's displayName or userName."""
        missing = [member.value for member in resource.members or [] if not member.display]
        if not missing:
            return

        users = await User.filter(tenant_id=tenant_id, id__in=missing).only("id", "user_name", "display_name")
        names = {user.id: user.display_name or user.user_name for user in users}
        for member in resource.members:
            if not member.display and member.value in names:
                member.display = names[member.value]

    async def _save(self, row: Group, resource: GroupResponse) -> None:
        try:
            await row.save()
        except IntegrityError as e:
            logger.warning(f"Integrity error saving group {row.id}: {e}")
            raise ResourceAlreadyExists("Group", "externalId", resource.external_id)

    @staticmethod
    def _apply_resource(row: Group, resource: GroupResponse) -> None:
        row.display_name = resource.display_name
        row.external_id = resource.external_id
        row.members = [
            member.model_dump(by_alias=True, exclude_none=True)
            for member in resource.members or []
        ]
        row.last_modified = resource.meta.last_modified
        row.version = resource.meta.version

    @classmethod
    def _to_response(cls, group: Group) -> GroupResponse:
        return GroupResponse(
            id=str(group.id),
            display_name=group.display_name,
            external_id=group.external_id,
            members=group.members or None,
            meta=Meta(
                resource_type=ResourceType.GROUP,
                created=group.created,
                last_modified=group.last_modified,
                location=cls._location(str(group.id)),
                version=group.version,
            ),
        )
