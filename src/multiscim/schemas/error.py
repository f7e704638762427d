from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict
from .base import SCIMSchemaUri


class ErrorResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    schemas: List[str] = [SCIMSchemaUri.ERROR.value]
    detail: Optional[str] = None
    status: int
    scim_type: Optional[str] = Field(None, alias="scimType")

    def to_wire(self) -> dict:
        """Serialized form with absent scimType left out."""
        return self.model_dump(by_alias=True, exclude_none=True)
