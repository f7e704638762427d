"""
SCIM response shaping.

Implements the ``attributes`` / ``excludedAttributes`` query parameters of RFC 7644
Section 3.9 and strips empty values so that absent data is never serialized as
``null``, ``[]`` or ``{}``.
"""
from typing import Any, Dict, Iterable, List, Optional, Tuple
from multiscim.schemas.base import SCIMSchemaUri

AttributePath = Tuple[str, ...]

KNOWN_SCHEMA_URIS = tuple(
    uri.value.lower() for uri in (SCIMSchemaUri.ENTERPRISE_USER, SCIMSchemaUri.USER, SCIMSchemaUri.GROUP)
)


class AttributeProjector:
    """Projects SCIM resource dictionaries according to RFC 7644."""

    # Attributes that MUST always be returned per RFC 7643
    ALWAYS_RETURNED = {"schemas", "id", "meta"}

    @classmethod
    def project(
        cls,
        resource: Dict[str, Any],
        attributes: Optional[Iterable[str]] = None,
        excluded_attributes: Optional[Iterable[str]] = None,
        omit: Iterable[str] = (),
    ) -> Dict[str, Any]:
        """
        Shape a single resource.

        Args:
            resource: The resource as serialized by alias
            attributes: Attributes to keep (core attributes are always kept)
            excluded_attributes: Attributes to drop; wins over ``attributes``
            omit: Top-level attributes removed unconditionally

        Returns:
            A new dictionary; the input is not modified
        """
        shaped = cls.prune_empty(resource)

        included = cls._normalize_attribute_paths(attributes)
        excluded = cls._normalize_attribute_paths(excluded_attributes)

        if included:
            shaped = cls._select(shaped, included, top_level=True)
        if excluded:
            shaped = cls._drop(shaped, excluded, top_level=True)

        omitted = {name.lower() for name in omit}
        if omitted:
            shaped = {
                key: value for key, value in shaped.items()
                if key.lower() not in omitted or key.lower() in cls.ALWAYS_RETURNED
            }

        return shaped

    @classmethod
    def project_many(
        cls,
        resources: List[Dict[str, Any]],
        attributes: Optional[Iterable[str]] = None,
        excluded_attributes: Optional[Iterable[str]] = None,
    ) -> List[Dict[str, Any]]:
        return [cls.project(resource, attributes, excluded_attributes) for resource in resources]

    @classmethod
    def prune_empty(cls, value: Any) -> Any:
        """Recursively drop None, empty lists and empty objects."""
        if isinstance(value, dict):
            pruned = {}
            for key, item in value.items():
                item = cls.prune_empty(item)
                if item is None or item == [] or item == {}:
                    continue
                pruned[key] = item
            return pruned
        if isinstance(value, list):
            return [
                item for item in (cls.prune_empty(entry) for entry in value)
                if item is not None and item != {}
            ]
        return value

    @classmethod
    def _normalize_attribute_paths(cls, attributes: Optional[Iterable[str]]) -> List[AttributePath]:
        """
        Lower-case attribute names and split them into path segments.

        "name.givenName" -> ("name", "givenname")
        "urn:...:enterprise:2.0:User:manager.value" -> ("urn:...:enterprise:2.0:user", "manager", "value")
        """
        paths = []
        for raw in attributes or ():
            attr = raw.strip().lower()
            if not attr:
                continue

            schema_uri = None
            if attr.startswith("urn:"):
                for uri in KNOWN_SCHEMA_URIS:
                    if attr == uri:
                        schema_uri, attr = uri, ""
                        break
                    if attr.startswith(f"{uri}:"):
                        schema_uri, attr = uri, attr[len(uri) + 1:]
                        break
                else:
                    schema_uri, _, attr = attr.rpartition(":")

            segments = tuple(part for part in attr.split(".") if part)
            # Core schema prefixes address top-level attributes
            if schema_uri and schema_uri != SCIMSchemaUri.ENTERPRISE_USER.value.lower():
                if segments:
                    paths.append(segments)
                continue
            if schema_uri:
                segments = (schema_uri,) + segments
            paths.append(segments)

        return paths

    @classmethod
    def _select(cls, data: Any, paths: List[AttributePath], top_level: bool = False) -> Any:
        if isinstance(data, list):
            selected = [cls._select(item, paths) for item in data]
            return [item for item in selected if item not in (None, {})]
        if not isinstance(data, dict):
            return data

        result = {}
        for key, value in data.items():
            name = key.lower()
            if top_level and name in cls.ALWAYS_RETURNED:
                result[key] = value
                continue

            matching = [path for path in paths if path[0] == name]
            if not matching:
                continue
            if any(len(path) == 1 for path in matching):
                result[key] = value
                continue

            selected = cls._select(value, [path[1:] for path in matching])
            if selected not in (None, [], {}):
                result[key] = selected
        return result

    @classmethod
    def _drop(cls, data: Any, paths: List[AttributePath], top_level: bool = False) -> Any:
        if isinstance(data, list):
            kept = [cls._drop(item, paths) for item in data]
            return [item for item in kept if item not in (None, {})]
        if not isinstance(data, dict):
            return data

        result = {}
        for key, value in data.items():
            name = key.lower()
            if top_level and name in cls.ALWAYS_RETURNED:
                result[key] = value
                continue

            matching = [path for path in paths if path[0] == name]
            if not matching:
                result[key] = value
                continue
            if any(len(path) == 1 for path in matching):
                continue

            kept = cls._drop(value, [path[1:] for path in matching])
            if kept not in (None, [], {}):
                result[key] = kept
        return result
