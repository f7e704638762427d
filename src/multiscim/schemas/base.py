from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict
from enum import Enum


class SCIMSchemaUri(str, Enum):
    USER = "urn:ietf:params:scim:schemas:core:2.0:User"
    GROUP = "urn:ietf:params:scim:schemas:core:2.0:Group"
    ENTERPRISE_USER = "urn:ietf:params:scim:schemas:extension:enterprise:2.0:User"
    LIST_RESPONSE = "urn:ietf:params:scim:api:messages:2.0:ListResponse"
    ERROR = "urn:ietf:params:scim:api:messages:2.0:Error"
    PATCH_OP = "urn:ietf:params:scim:api:messages:2.0:PatchOp"


class ResourceType(str, Enum):
    USER = "User"
    GROUP = "Group"


class Meta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    resource_type: ResourceType = Field(..., alias="resourceType")
    created: datetime
    last_modified: datetime = Field(..., alias="lastModified")
    location: Optional[str] = None
    version: Optional[str] = None


class MultiValuedAttribute(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    value: Optional[str] = None
    display: Optional[str] = None
    type: Optional[str] = None
    primary: Optional[bool] = None


class Name(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    formatted: Optional[str] = None
    family_name: Optional[str] = Field(None, alias="familyName")
    given_name: Optional[str] = Field(None, alias="givenName")
    middle_name: Optional[str] = Field(None, alias="middleName")
    honorific_prefix: Optional[str] = Field(None, alias="honorificPrefix")
    honorific_suffix: Optional[str] = Field(None, alias="honorificSuffix")


class Address(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    formatted: Optional[str] = None
    street_address: Optional[str] = Field(None, alias="streetAddress")
    locality: Optional[str] = None
    region: Optional[str] = None
    postal_code: Optional[str] = Field(None, alias="postalCode")
    country: Optional[str] = None
    type: Optional[str] = None
    primary: Optional[bool] = None


class ListResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    schemas: List[str] = [SCIMSchemaUri.LIST_RESPONSE.value]
    total_results: int = Field(..., alias="totalResults")
    start_index: int = Field(1, alias="startIndex")
    items_per_page: int = Field(..., alias="itemsPerPage")
    Resources: List[Dict[str, Any]]


class PatchOperation(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    op: str
    path: Optional[str] = None
    value: Optional[Any] = None


class PatchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    schemas: List[str] = [SCIMSchemaUri.PATCH_OP.value]
    Operations: List[PatchOperation] = Field(..., alias="Operations")
