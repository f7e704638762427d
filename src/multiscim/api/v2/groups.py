from typing import Optional
from fastapi import APIRouter, Response, Header, Path, Body, status
from multiscim.schemas import GroupRequest, PatchRequest, ErrorResponse, SCIMSchemaUri
from multiscim.dependencies import (
    Pagination, FilterParam, SortParams, AttributesFilter, RequestId, CurrentTenant, Groups
)
from multiscim.exceptions import PreconditionFailed, InvalidPatch
from multiscim.utils import validate_etag, logger
from multiscim.config import settings
from .responses import resource_response, list_response

router = APIRouter(tags=["Groups"])


@router.post("/Groups", status_code=status.HTTP_201_CREATED, responses={400: {"model": ErrorResponse, "description": "Invalid request"}, 409: {"model": ErrorResponse, "description": "Group already exists"}})
async def create_group(
    tenant: CurrentTenant,
    service: Groups,
    request_id: RequestId,
    group_data: GroupRequest = Body(...),
    attributes: AttributesFilter = (None, None),
):
    logger.info(f"Creating group: {group_data.display_name} (tenant: {tenant.key}, request_id: {request_id})")

    if settings.debug:
        logger.debug(f"Group POST payload (request_id: {request_id}): {group_data.model_dump_json(indent=2, by_alias=True)}")

    group = await service.create_group(tenant.id, group_data)
    return resource_response(group, attributes, status_code=status.HTTP_201_CREATED)


@router.get("/Groups/{group_id}", responses={404: {"model": ErrorResponse, "description": "Group not found"}})
async def get_group(
    tenant: CurrentTenant,
    service: Groups,
    group_id: str = Path(..., description="Group ID"),
    attributes: AttributesFilter = (None, None),
):
    logger.info(f"Getting group: {group_id}")
    group = await service.get_group(tenant.id, group_id)
    # members are never returned on a single Group read
    return resource_response(group, attributes, omit=("members",))


@router.get("/Groups", responses={400: {"model": ErrorResponse, "description": "Invalid query"}})
async def list_groups(
    tenant: CurrentTenant,
    service: Groups,
    pagination: Pagination,
    filter_param: FilterParam,
    sort_params: SortParams,
    attributes: AttributesFilter,
):
    logger.info(f"Listing groups (filter: {filter_param}, sort: {sort_params})")

    sort_by, sort_order = sort_params
    groups, total = await service.list_groups(
        tenant.id,
        pagination,
        filter_query=filter_param,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return list_response(groups, total, pagination, attributes)


@router.put("/Groups/{group_id}", responses={404: {"model": ErrorResponse, "description": "Group not found"}, 409: {"model": ErrorResponse, "description": "Conflict"}, 412: {"model": ErrorResponse, "description": "Precondition failed"}})
async def replace_group(
    tenant: CurrentTenant,
    service: Groups,
    group_id: str = Path(..., description="Group ID"),
    group_data: GroupRequest = Body(...),
    if_match: Optional[str] = Header(None, alias="If-Match"),
    attributes: AttributesFilter = (None, None),
):
    logger.info(f"Replacing group: {group_id}")

    if if_match:
        current_group = await service.get_group(tenant.id, group_id)
        if not validate_etag(if_match, current_group.meta.version):
            raise PreconditionFailed("ETag mismatch")

    group = await service.replace_group(tenant.id, group_id, group_data)
    return resource_response(group, attributes)


@router.patch("/Groups/{group_id}", responses={400: {"model": ErrorResponse, "description": "Invalid patch"}, 404: {"model": ErrorResponse, "description": "Group not found"}, 412: {"model": ErrorResponse, "description": "Precondition failed"}})
async def patch_group(
    tenant: CurrentTenant,
    service: Groups,
    group_id: str = Path(..., description="Group ID"),
    patch_request: PatchRequest = Body(...),
    if_match: Optional[str] = Header(None, alias="If-Match"),
    attributes: AttributesFilter = (None, None),
):
    logger.info(f"Patching group: {group_id} ({len(patch_request.Operations)} operations)")

    if SCIMSchemaUri.PATCH_OP.value not in patch_request.schemas:
        raise InvalidPatch("Invalid schema for PATCH request", scim_type="invalidSyntax")

    if if_match:
        current_group = await service.get_group(tenant.id, group_id)
        if not validate_etag(if_match, current_group.meta.version):
            raise PreconditionFailed("ETag mismatch")

    if settings.debug:
        logger.debug(f"Group PATCH request payload: {patch_request.model_dump_json(indent=2)}")

    group = await service.patch_group(tenant.id, group_id, patch_request.Operations)
    return resource_response(group, attributes)


@router.delete("/Groups/{group_id}", status_code=status.HTTP_204_NO_CONTENT, responses={404: {"model": ErrorResponse, "description": "Group not found"}})
async def delete_group(
    tenant: CurrentTenant,
    service: Groups,
    group_id: str = Path(..., description="Group ID"),
) -> Response:
    logger.info(f"Deleting group: {group_id}")
    await service.delete_group(tenant.id, group_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
