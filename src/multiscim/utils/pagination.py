from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from multiscim.config import settings
from multiscim.exceptions import InvalidValue


class PaginationParams(BaseModel):
    """1-based SCIM paging window as received on the query string."""

    start_index: int = Field(1, alias="startIndex")
    count: int = Field(settings.default_page_size)

    model_config = ConfigDict(populate_by_name=True)

    def validate_bounds(self) -> "PaginationParams":
        if self.start_index <= 0:
            raise InvalidValue("startIndex must be greater than 0")
        if self.count <= 0:
            raise InvalidValue("count must be greater than 0")
        return self

    @property
    def offset(self) -> int:
        return self.start_index - 1  # SCIM uses 1-based indexing

    @property
    def limit(self) -> int:
        return min(self.count, settings.max_page_size)

    def items_per_page(self, returned: int) -> int:
        return min(self.limit, returned)


def normalize_sort_order(sort_order: Optional[str]) -> str:
    """Validate ``sortOrder``; matching is case-insensitive and the default is ascending."""
    if sort_order is None or not sort_order.strip():
        return "ascending"
    normalized = sort_order.strip().lower()
    if normalized not in ("ascending", "descending"):
        raise InvalidValue(f"sortOrder must be 'ascending' or 'descending', got '{sort_order}'")
    return normalized
