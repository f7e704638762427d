from typing import Optional, Annotated
from fastapi import Depends, Query, Request
from multiscim.config import settings
from multiscim.utils import PaginationParams, normalize_sort_order
from multiscim.utils.tenant_context import TenantContext, get_tenant_context
from multiscim.services import UserService, GroupService


def get_pagination_params(
    start_index: Annotated[int, Query(alias="startIndex")] = 1,
    count: Annotated[int, Query()] = settings.default_page_size,
) -> PaginationParams:
    # Bounds are checked by the services so that violations surface as SCIM invalidValue
    return PaginationParams(start_index=start_index, count=count)


def _split_attribute_list(value: Optional[str]) -> Optional[list[str]]:
    if not value:
        return None
    names = [name.strip() for name in value.split(",") if name.strip()]
    return names or None


def get_attributes_params(
    attributes: Annotated[Optional[str], Query()] = None,
    excluded_attributes: Annotated[Optional[str], Query(alias="excludedAttributes")] = None,
) -> tuple[Optional[list[str]], Optional[list[str]]]:
    return _split_attribute_list(attributes), _split_attribute_list(excluded_attributes)


def get_filter_param(filter: Annotated[Optional[str], Query()] = None) -> Optional[str]:
    return filter


def get_sort_params(
    sort_by: Annotated[Optional[str], Query(alias="sortBy")] = None,
    sort_order: Annotated[Optional[str], Query(alias="sortOrder")] = None,
) -> tuple[Optional[str], str]:
    return sort_by, normalize_sort_order(sort_order)


async def get_request_id(request: Request) -> str:
    return request.headers.get("X-Request-ID", "unknown")


def get_user_service() -> UserService:
    return UserService(validate_manager_reference_exists=settings.validate_manager_reference_exists)


def get_group_service() -> GroupService:
    return GroupService()


# Type aliases for dependency injection
Pagination = Annotated[PaginationParams, Depends(get_pagination_params)]
AttributesFilter = Annotated[tuple[Optional[list[str]], Optional[list[str]]], Depends(get_attributes_params)]
FilterParam = Annotated[Optional[str], Depends(get_filter_param)]
SortParams = Annotated[tuple[Optional[str], str], Depends(get_sort_params)]
RequestId = Annotated[str, Depends(get_request_id)]
CurrentTenant = Annotated[TenantContext, Depends(get_tenant_context)]
Users = Annotated[UserService, Depends(get_user_service)]
Groups = Annotated[GroupService, Depends(get_group_service)]
