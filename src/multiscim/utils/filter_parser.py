"""
Simple SCIM filter translation for list endpoints.

Only single ``attribute eq "value"`` comparisons are translated into Tortoise ORM
predicates. Identity providers probe with richer filters; anything not recognised here
matches every resource in the tenant instead of failing the request.
"""

import re
from typing import Dict, Optional
from tortoise.expressions import Q
from multiscim.exceptions import UnsupportedFilterAttribute, RFC7643_GROUP_MEMBER_NOTE
from multiscim.utils.logging import logger

EQ_PATTERN = re.compile(r'^\s*([A-Za-z][\w.]*)\s+eq\s+"((?:[^"\\]|\\.)*)"\s*$', re.IGNORECASE)
MEMBER_TYPE_PATTERN = re.compile(r'members\s*(?:\[[^\]]*\btype\s+eq\b|\.type\s+eq\b)', re.IGNORECASE)


class SimpleFilterTranslator:
    """Translates the supported filter subset into a Tortoise ``Q``"""

    # SCIM attribute (lower-cased) -> ORM lookup, in matching priority order
    USER_LOOKUPS: Dict[str, str] = {
        "username": "user_name__iexact",
        "displayname": "display_name__iexact",
        "id": "id",
        "externalid": "external_id",
    }

    GROUP_LOOKUPS: Dict[str, str] = {
        "displayname": "display_name__iexact",
        "id": "id",
        "externalid": "external_id",
    }

    def __init__(self, resource_type: str = "User"):
        self.resource_type = resource_type
        self.lookups = self.USER_LOOKUPS if resource_type == "User" else self.GROUP_LOOKUPS

    def translate(self, filter_string: Optional[str]) -> Optional[Q]:
        """
        Translate a filter query parameter.

        Returns:
            None (no restriction) for an empty or unrecognised filter

        Raises:
            UnsupportedFilterAttribute: a Group member filter on ``type``
        """
        if not filter_string or not filter_string.strip():
            return None

        if self.resource_type == "Group" and MEMBER_TYPE_PATTERN.search(filter_string):
            raise UnsupportedFilterAttribute(
                f"Filter '{filter_string}' contains unsupported member type filtering. "
                f"Group member filtering by type is not supported in GET operations. "
                f"{RFC7643_GROUP_MEMBER_NOTE}"
            )

        match = EQ_PATTERN.match(filter_string)
        if not match:
            logger.debug(f"Unrecognised {self.resource_type} filter '{filter_string}', returning unfiltered results")
            return None

        attribute, value = match.group(1), match.group(2).replace('\\"', '"')
        lookup = self.lookups.get(attribute.lower())
        if lookup is None:
            logger.debug(f"Filter attribute '{attribute}' is not searchable on {self.resource_type}, returning unfiltered results")
            return None

        return Q(**{lookup: value})
