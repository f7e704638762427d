from .logging import logger, get_logger, setup_logging, console
from .pagination import PaginationParams, normalize_sort_order
from .etag import generate_etag, validate_etag
from .filter_parser import SimpleFilterTranslator
from .scim_path_parser import parse_scim_path, SCIMPath, PathFilter
from .patch_values import PatchValue
from .references import populate_group_references, populate_user_references, user_reference
from .attribute_filter import AttributeProjector

__all__ = [
    "logger",
    "get_logger",
    "setup_logging",
    "console",
    "PaginationParams",
    "normalize_sort_order",
    "generate_etag",
    "validate_etag",
    "SimpleFilterTranslator",
    "parse_scim_path",
    "SCIMPath",
    "PathFilter",
    "PatchValue",
    "populate_group_references",
    "populate_user_references",
    "user_reference",
    "AttributeProjector",
]
