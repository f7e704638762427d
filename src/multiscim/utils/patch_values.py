"""
Conversions for the untyped ``value`` of a PATCH operation.

Identity providers send the same logical value in several shapes: a JSON object, a
JSON-encoded string of that object, a single element where a list is expected, or
``"True"`` where a boolean is expected. ``PatchValue`` exposes one conversion per target
type so callers never inspect the raw payload themselves.
"""
import json
from typing import Any, Dict, List, Optional, Type, TypeVar
from pydantic import BaseModel, ValidationError
from multiscim.exceptions import InvalidValue
from multiscim.schemas.user import Manager

M = TypeVar("M", bound=BaseModel)

TRUE_STRINGS = {"true", "1", "yes"}
FALSE_STRINGS = {"false", "0", "no"}


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ()))
    return f"{location}: {error['msg']}" if location else error["msg"]


class PatchValue:
    def __init__(self, raw: Any):
        if isinstance(raw, PatchValue):
            raw = raw.raw
        self.raw = raw

    def __repr__(self) -> str:
        return f"PatchValue({self.raw!r})"

    @property
    def is_missing(self) -> bool:
        return self.raw is None

    def _decoded(self) -> Any:
        """The raw value with JSON-encoded objects and arrays expanded."""
        raw = self.raw
        if isinstance(raw, BaseModel):
            return raw.model_dump(by_alias=True, exclude_none=True)
        if isinstance(raw, str):
            text = raw.strip()
            if text[:1] in ("{", "["):
                try:
                    return json.loads(text)
                except json.JSONDecodeError:
                    return raw
        return raw

    def as_bool(self) -> Optional[bool]:
        """Permissive boolean parse. Returns None when the value has no boolean reading."""
        raw = self._decoded()
        if isinstance(raw, dict) and "value" in raw:
            return PatchValue(raw["value"]).as_bool()
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, (int, float)):
            return raw != 0
        if isinstance(raw, str):
            text = raw.strip().lower()
            if text in TRUE_STRINGS:
                return True
            if text in FALSE_STRINGS:
                return False
        return None

    def as_str(self) -> Optional[str]:
        raw = self._decoded()
        if raw is None:
            return None
        if isinstance(raw, dict) and "value" in raw:
            return PatchValue(raw["value"]).as_str()
        if isinstance(raw, bool):
            return "true" if raw else "false"
        if isinstance(raw, (str, int, float)):
            return str(raw)
        raise InvalidValue(f"Expected a string value but got {type(raw).__name__}")

    def as_mapping(self) -> Dict[str, Any]:
        raw = self._decoded()
        if isinstance(raw, dict):
            return raw
        raise InvalidValue("Expected an object value")

    def as_list(self) -> List[Any]:
        """A list of raw items. A single item becomes a one element list."""
        raw = self._decoded()
        if raw is None:
            return []
        if isinstance(raw, list):
            return [item.raw if isinstance(item, PatchValue) else item for item in raw]
        return [raw]

    def as_element(self, element_cls: Type[M]) -> M:
        """Convert to a multi-valued element, accepting a bare id string for ``value``."""
        raw = self._decoded()
        if isinstance(raw, (str, int)) and not isinstance(raw, bool) and "value" in element_cls.model_fields:
            raw = {"value": str(raw)}
        if not isinstance(raw, dict):
            raise InvalidValue(f"Expected an object for {element_cls.__name__} but got {type(raw).__name__}")
        try:
            return element_cls.model_validate(raw)
        except ValidationError as e:
            raise InvalidValue(f"Invalid {element_cls.__name__}: {_first_error(e)}")

    def as_elements(self, element_cls: Type[M]) -> List[M]:
        return [PatchValue(item).as_element(element_cls) for item in self.as_list()]

    def as_manager(self) -> Optional[Manager]:
        raw = self._decoded()
        if raw is None or raw == "":
            return None
        return self.as_element(Manager)
