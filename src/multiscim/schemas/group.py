from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator
from .base import SCIMSchemaUri, Meta


class GroupMember(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    value: str
    ref: Optional[str] = Field(None, alias="$ref")
    display: Optional[str] = None
    type: Optional[str] = Field(default="User")

    @field_validator("value")
    def validate_value(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Group member value must be a non-empty resource identifier")
        return v.strip()


class GroupRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    schemas: Optional[List[str]] = None
    display_name: Optional[str] = Field(None, alias="displayName")
    external_id: Optional[str] = Field(None, alias="externalId")
    members: Optional[List[GroupMember]] = None


class GroupResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    schemas: List[str] = [SCIMSchemaUri.GROUP.value]
    id: str
    external_id: Optional[str] = Field(None, alias="externalId")
    display_name: str = Field(..., alias="displayName")
    members: Optional[List[GroupMember]] = None
    meta: Meta
