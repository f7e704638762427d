from typing import Optional
from fastapi import APIRouter, Response, Header, Path, Body, status
from multiscim.schemas import UserRequest, PatchRequest, ErrorResponse, SCIMSchemaUri
from multiscim.dependencies import (
    Pagination, FilterParam, SortParams, AttributesFilter, RequestId, CurrentTenant, Users
)
from multiscim.exceptions import PreconditionFailed, InvalidPatch
from multiscim.utils import validate_etag, logger
from multiscim.config import settings
from .responses import resource_response, list_response

router = APIRouter(tags=["Users"])


@router.post("/Users", status_code=status.HTTP_201_CREATED, responses={400: {"model": ErrorResponse, "description": "Invalid request"}, 409: {"model": ErrorResponse, "description": "User already exists"}})
async def create_user(
    tenant: CurrentTenant,
    service: Users,
    request_id: RequestId,
    user_data: UserRequest = Body(...),
    attributes: AttributesFilter = (None, None),
):
    logger.info(f"Creating user: {user_data.user_name} (tenant: {tenant.key}, request_id: {request_id})")

    if settings.debug:
        logger.debug(f"User POST request payload (request_id: {request_id}): {user_data.model_dump_json(indent=2, by_alias=True)}")

    user = await service.create_user(tenant.id, user_data)
    return resource_response(user, attributes, status_code=status.HTTP_201_CREATED)


@router.get("/Users/{user_id}", responses={404: {"model": ErrorResponse, "description": "User not found"}})
async def get_user(
    tenant: CurrentTenant,
    service: Users,
    user_id: str = Path(..., description="User ID"),
    attributes: AttributesFilter = (None, None),
):
    logger.info(f"Getting user: {user_id}")
    user = await service.get_user(tenant.id, user_id)
    return resource_response(user, attributes)


@router.get("/Users", responses={400: {"model": ErrorResponse, "description": "Invalid query"}})
async def list_users(
    tenant: CurrentTenant,
    service: Users,
    pagination: Pagination,
    filter_param: FilterParam,
    sort_params: SortParams,
    attributes: AttributesFilter,
):
    logger.info(f"Listing users (filter: {filter_param}, sort: {sort_params})")

    sort_by, sort_order = sort_params
    users, total = await service.list_users(
        tenant.id,
        pagination,
        filter_query=filter_param,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return list_response(users, total, pagination, attributes)


@router.put("/Users/{user_id}", responses={404: {"model": ErrorResponse, "description": "User not found"}, 409: {"model": ErrorResponse, "description": "Conflict"}, 412: {"model": ErrorResponse, "description": "Precondition failed"}})
async def replace_user(
    tenant: CurrentTenant,
    service: Users,
    user_id: str = Path(..., description="User ID"),
    user_data: UserRequest = Body(...),
    if_match: Optional[str] = Header(None, alias="If-Match"),
    attributes: AttributesFilter = (None, None),
):
    logger.info(f"Replacing user: {user_id}")

    if settings.debug:
        logger.debug(f"User PUT request payload: {user_data.model_dump_json(indent=2, by_alias=True)}")

    if if_match:
        current_user = await service.get_user(tenant.id, user_id)
        if not validate_etag(if_match, current_user.meta.version):
            raise PreconditionFailed("ETag mismatch")

    user = await service.replace_user(tenant.id, user_id, user_data)
    return resource_response(user, attributes)


@router.patch("/Users/{user_id}", responses={400: {"model": ErrorResponse, "description": "Invalid patch"}, 404: {"model": ErrorResponse, "description": "User not found"}, 412: {"model": ErrorResponse, "description": "Precondition failed"}})
async def patch_user(
    tenant: CurrentTenant,
    service: Users,
    user_id: str = Path(..., description="User ID"),
    patch_request: PatchRequest = Body(...),
    if_match: Optional[str] = Header(None, alias="If-Match"),
    attributes: AttributesFilter = (None, None),
):
    logger.info(f"Patching user: {user_id} ({len(patch_request.Operations)} operations)")

    if SCIMSchemaUri.PATCH_OP.value not in patch_request.schemas:
        raise InvalidPatch("Invalid schema for PATCH request", scim_type="invalidSyntax")

    if if_match:
        current_user = await service.get_user(tenant.id, user_id)
        if not validate_etag(if_match, current_user.meta.version):
            raise PreconditionFailed("ETag mismatch")

    if settings.debug:
        logger.debug(f"User PATCH request payload: {patch_request.model_dump_json(indent=2)}")

    user = await service.patch_user(tenant.id, user_id, patch_request.Operations)
    return resource_response(user, attributes)


@router.delete("/Users/{user_id}", status_code=status.HTTP_204_NO_CONTENT, responses={404: {"model": ErrorResponse, "description": "User not found"}})
async def delete_user(
    tenant: CurrentTenant,
    service: Users,
    user_id: str = Path(..., description="User ID"),
) -> Response:
    logger.info(f"Deleting user: {user_id}")
    await service.delete_user(tenant.id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
