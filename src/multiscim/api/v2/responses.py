from typing import Iterable, List, Optional
from fastapi import status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from multiscim.schemas import ListResponse
from multiscim.utils import AttributeProjector, PaginationParams

SCIM_MEDIA_TYPE = "application/scim+json"


class SCIMResponse(JSONResponse):
    media_type = SCIM_MEDIA_TYPE


def resource_response(
    resource: BaseModel,
    attributes: tuple[Optional[list[str]], Optional[list[str]]] = (None, None),
    status_code: int = status.HTTP_200_OK,
    omit: Iterable[str] = (),
) -> SCIMResponse:
    """Serialize, project and wrap a single resource, advertising its version and location."""
    body = AttributeProjector.project(
        resource.model_dump(by_alias=True, mode="json"),
        attributes=attributes[0],
        excluded_attributes=attributes[1],
        omit=omit,
    )

    headers = {}
    if resource.meta.version:
        headers["ETag"] = resource.meta.version
    if status_code == status.HTTP_201_CREATED and resource.meta.location:
        headers["Location"] = resource.meta.location

    return SCIMResponse(status_code=status_code, content=body, headers=headers)


def list_response(
    resources: List[BaseModel],
    total: int,
    pagination: PaginationParams,
    attributes: tuple[Optional[list[str]], Optional[list[str]]] = (None, None),
) -> SCIMResponse:
    projected = AttributeProjector.project_many(
        [resource.model_dump(by_alias=True, mode="json") for resource in resources],
        attributes=attributes[0],
        excluded_attributes=attributes[1],
    )
    envelope = ListResponse(
        total_results=total,
        start_index=pagination.start_index,
        items_per_page=pagination.items_per_page(len(projected)),
        Resources=projected,
    )
    return SCIMResponse(content=envelope.model_dump(by_alias=True))
