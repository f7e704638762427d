"""
SCIM attribute path parser (RFC 7644 Section 3.5.2).

Supported shapes:
- Simple paths: "userName", "name.givenName"
- URN-qualified paths: "urn:ietf:params:scim:schemas:extension:enterprise:2.0:User:manager"
- Value paths: "members[value eq \"user-id\"]", "roles[value eq \"admin\"].display"

Only the ``eq`` comparison is accepted inside a value path filter.
"""

import re
from typing import Optional
from dataclasses import dataclass
from multiscim.exceptions import MalformedPath, UnsupportedPath
from multiscim.schemas.base import SCIMSchemaUri

KNOWN_SCHEMA_URIS = (
    SCIMSchemaUri.ENTERPRISE_USER.value,
    SCIMSchemaUri.USER.value,
    SCIMSchemaUri.GROUP.value,
)

NAME = r"[A-Za-z$][\w$-]*"

SIMPLE_PATTERN = re.compile(rf"^({NAME})(?:\.({NAME}))?$")
FILTER_PATTERN = re.compile(
    rf'^({NAME})\[\s*({NAME})\s+(\w+)\s+("(?:[^"\\]|\\.)*"|[^\s\]]+)\s*\](?:\.({NAME}))?$'
)
URN_PATTERN = re.compile(rf"^(urn:.+):({NAME})(?:\.({NAME}))?$", re.IGNORECASE)


@dataclass(frozen=True)
class PathFilter:
    """``subAttribute op "literal"`` inside a value path"""
    attribute: str
    operator: str
    value: str


@dataclass(frozen=True)
class SCIMPath:
    """Represents a parsed SCIM path"""
    attribute: str  # Main attribute name, empty when the path is a bare schema URN
    filter: Optional[PathFilter] = None
    sub_attribute: Optional[str] = None
    schema_uri: Optional[str] = None

    @property
    def is_filtered(self) -> bool:
        return self.filter is not None

    def attribute_is(self, name: str) -> bool:
        return self.attribute.lower() == name.lower()

    def filters_on(self, name: str) -> bool:
        return self.filter is not None and self.filter.attribute.lower() == name.lower()


def _unquote(literal: str) -> str:
    if len(literal) >= 2 and literal.startswith('"') and literal.endswith('"'):
        return literal[1:-1].replace('\\"', '"').replace("\\\\", "\\")
    return literal


def _parse_relative(path: str, relative: str, schema_uri: Optional[str]) -> SCIMPath:
    filter_match = FILTER_PATTERN.match(relative)
    if filter_match:
        attribute, filter_attribute, operator, literal, sub_attribute = filter_match.groups()
        if operator.lower() != "eq":
            raise UnsupportedPath(path, f"filter operator '{operator}' is not supported, only 'eq' may be used in a value path")
        return SCIMPath(
            attribute=attribute,
            filter=PathFilter(attribute=filter_attribute, operator="eq", value=_unquote(literal)),
            sub_attribute=sub_attribute,
            schema_uri=schema_uri,
        )

    simple_match = SIMPLE_PATTERN.match(relative)
    if simple_match:
        return SCIMPath(
            attribute=simple_match.group(1),
            sub_attribute=simple_match.group(2),
            schema_uri=schema_uri,
        )

    raise MalformedPath(path)


def parse_scim_path(path: Optional[str]) -> SCIMPath:
    """
    Parse a SCIM attribute path.

    Examples:
        "userName" -> SCIMPath(attribute="userName")
        "name.givenName" -> SCIMPath(attribute="name", sub_attribute="givenName")
        "roles[value eq \"admin\"].display" -> SCIMPath(attribute="roles", filter=PathFilter("value", "eq", "admin"), sub_attribute="display")
        "urn:...:enterprise:2.0:User:manager" -> SCIMPath(attribute="manager", schema_uri="urn:...:enterprise:2.0:User")

    Raises:
        MalformedPath: the path does not match any supported shape
        UnsupportedPath: a value path filter uses an operator other than ``eq``
    """
    if path is None or not path.strip():
        raise MalformedPath(path or "", "path cannot be empty")

    path = path.strip()

    if path.lower().startswith("urn:"):
        for uri in KNOWN_SCHEMA_URIS:
            if path.lower() == uri.lower():
                return SCIMPath(attribute="", schema_uri=uri)
            if path.lower().startswith(f"{uri.lower()}:"):
                return _parse_relative(path, path[len(uri) + 1:], uri)

        urn_match = URN_PATTERN.match(path)
        if not urn_match:
            raise MalformedPath(path, "unrecognised schema URN")
        return SCIMPath(
            attribute=urn_match.group(2),
            sub_attribute=urn_match.group(3),
            schema_uri=urn_match.group(1),
        )

    return _parse_relative(path, path, None)
