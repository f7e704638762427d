"""
RFC 7644 Section 3.5.2 PATCH interpretation over in-memory SCIM resources.

The interpreters mutate a ``UserResponse`` / ``GroupResponse`` in place. They never touch
the database: the orchestrating service loads the resource once, runs every operation
and persists once, so a failing operation leaves nothing behind.
"""
from dataclasses import replace
from typing import Any, Dict, Iterable, Optional, Set, Tuple, Type, Union
from pydantic import BaseModel, ValidationError
from multiscim.exceptions import (
    InvalidPatch,
    InvalidValue,
    MalformedPath,
    SCIMException,
    UnsupportedFilterAttribute,
    UnsupportedOperation,
    UnsupportedPath,
    RFC7643_GROUP_MEMBER_NOTE,
)
from multiscim.schemas import (
    Address,
    Email,
    EnterpriseUserExtension,
    GroupMember,
    GroupResponse,
    Manager,
    MultiValuedAttribute,
    Name,
    PatchOperation,
    PhoneNumber,
    Role,
    SCIMSchemaUri,
    UserGroup,
    UserResponse,
)
from multiscim.utils.logging import get_logger
from multiscim.utils.patch_values import PatchValue
from multiscim.utils.scim_path_parser import SCIMPath, parse_scim_path

patch_logger = get_logger("multiscim.patch")

SUPPORTED_OPS = ("add", "remove", "replace")

Resource = Union[UserResponse, GroupResponse]
Collection = Tuple[str, Type[BaseModel]]


def element_field(model_cls: Type[BaseModel], name: str) -> Optional[str]:
    """Case-insensitive lookup of a model field by SCIM name or python name."""
    lowered = name.lower()
    for field_name, info in model_cls.model_fields.items():
        if lowered == field_name.lower() or (info.alias and lowered == info.alias.lower()):
            return field_name
    return None


def _literal_matches(actual: Any, literal: str) -> bool:
    if actual is None:
        return False
    if isinstance(actual, bool):
        return str(actual).lower() == literal.lower()
    return str(actual) == literal


class PatchInterpreter:
    resource_type: str = ""
    core_schema: str = ""

    READ_ONLY: Set[str] = {"id", "meta", "schemas"}
    REQUIRED: Set[str] = set()
    BOOLEAN_ATTRIBUTES: Set[str] = set()
    BOOLEAN_SUB_ATTRIBUTES: Set[str] = {"primary"}

    # lower-cased SCIM name -> model field
    SIMPLE_ATTRIBUTES: Dict[str, str] = {}
    # lower-cased SCIM name -> (model field, element model)
    COMPLEX_ATTRIBUTES: Dict[str, Collection] = {}
    COLLECTIONS: Dict[str, Collection] = {}

    def apply_all(self, resource: Resource, operations: Iterable[Union[PatchOperation, dict]]) -> Resource:
        """Apply operations in order; each one sees the effects of the previous."""
        for idx, operation in enumerate(operations):
            try:
                self.apply(resource, operation)
            except SCIMException as e:
                e.detail = f"Operation {idx + 1}: {e.detail}"
                raise
        return resource

    def apply(self, resource: Resource, operation: Union[PatchOperation, dict]) -> Resource:
        if isinstance(operation, dict):
            operation = PatchOperation.model_validate(operation)

        op = (operation.op or "").strip().lower()
        if op not in SUPPORTED_OPS:
            raise UnsupportedOperation(operation.op)

        value = PatchValue(operation.value)
        patch_logger.debug(f"{self.resource_type} patch: op={op} path={operation.path!r} value={operation.value!r}")

        if not operation.path:
            if op == "remove":
                raise InvalidPatch("'path' is required for 'remove' operations", scim_type="noTarget")
            self._apply_mapping(resource, op, value.as_mapping())
            return resource

        self._apply_path(resource, op, parse_scim_path(operation.path), value, operation.path)
        return resource

    def _apply_mapping(self, resource: Resource, op: str, mapping: Dict[str, Any]) -> None:
        """Path-less add/replace: every recognised key is applied as its own path."""
        for key, raw in mapping.items():
            if key.lower() in self.READ_ONLY:
                continue
            try:
                path = parse_scim_path(key)
            except (MalformedPath, UnsupportedPath):
                patch_logger.debug(f"Ignoring unrecognised key '{key}' in {self.resource_type} patch value")
                continue
            if not self._recognises(path):
                patch_logger.debug(f"Ignoring unknown attribute '{key}' in {self.resource_type} patch value")
                continue
            self._apply_path(resource, op, path, PatchValue(raw), key)

    def _recognises(self, path: SCIMPath) -> bool:
        if path.schema_uri:
            if path.schema_uri != self.core_schema or not path.attribute:
                return False
        name = path.attribute.lower()
        return name in self.SIMPLE_ATTRIBUTES or name in self.COLLECTIONS or name in self.COMPLEX_ATTRIBUTES

    def _apply_path(self, resource: Resource, op: str, path: SCIMPath, value: PatchValue, raw: str) -> None:
        if path.schema_uri:
            if path.schema_uri != self.core_schema:
                self._apply_extension_path(resource, op, path, value, raw)
                return
            if not path.attribute:
                raise UnsupportedPath(raw, "a schema URN alone does not identify an attribute")
            path = replace(path, schema_uri=None)

        name = path.attribute.lower()

        if name in self.COLLECTIONS:
            field, element_cls = self.COLLECTIONS[name]
            if path.is_filtered:
                self._apply_filtered(resource, op, path, field, element_cls, value, raw)
            elif path.sub_attribute:
                raise UnsupportedPath(raw, f"sub-attribute '{path.sub_attribute}' of multi-valued '{path.attribute}' requires a value filter")
            else:
                self._apply_collection(resource, op, field, element_cls, value)
            return

        if path.is_filtered:
            raise UnsupportedPath(raw, f"'{path.attribute}' is not a multi-valued attribute")

        if name in self.COMPLEX_ATTRIBUTES:
            field, model_cls = self.COMPLEX_ATTRIBUTES[name]
            self._apply_complex(resource, op, field, model_cls, path.sub_attribute, value, raw)
            return

        if name in self.SIMPLE_ATTRIBUTES:
            if path.sub_attribute:
                raise UnsupportedPath(raw, f"'{path.attribute}' has no sub-attributes")
            self._apply_simple(resource, op, self.SIMPLE_ATTRIBUTES[name], value, raw)
            return

        if name in self.READ_ONLY:
            raise InvalidPatch(f"Attribute '{path.attribute}' is read-only", scim_type="mutability")

        raise UnsupportedPath(raw, f"unknown attribute '{path.attribute}' for {self.resource_type}")

    def _apply_extension_path(self, resource: Resource, op: str, path: SCIMPath, value: PatchValue, raw: str) -> None:
        raise UnsupportedPath(raw, f"schema '{path.schema_uri}' is not supported for {self.resource_type}")

    def _check_filter(self, op: str, path: SCIMPath, raw: str) -> None:
        """Hook for resource specific restrictions on value path filters."""

    def _apply_simple(self, resource: Resource, op: str, field: str, value: PatchValue, raw: str) -> None:
        if op == "remove":
            if field in self.REQUIRED:
                raise InvalidPatch(f"Attribute '{raw}' is required and cannot be removed", scim_type="mutability")
            setattr(resource, field, type(resource).model_fields[field].default)
            return

        if field in self.BOOLEAN_ATTRIBUTES:
            parsed = value.as_bool()
            if parsed is None:
                patch_logger.warning(f"Could not interpret {value.raw!r} as a boolean for '{raw}', leaving it unchanged")
                return
            setattr(resource, field, parsed)
            return

        text = value.as_str()
        if field in self.REQUIRED and not (text and text.strip()):
            raise InvalidValue(f"Attribute '{raw}' cannot be empty")
        setattr(resource, field, text)

    def _apply_complex(
        self,
        resource: Resource,
        op: str,
        field: str,
        model_cls: Type[BaseModel],
        sub_attribute: Optional[str],
        value: PatchValue,
        raw: str,
    ) -> None:
        current = getattr(resource, field)

        if sub_attribute is None:
            if op == "remove":
                setattr(resource, field, None)
                return
            mapping = dict(value.as_mapping())
            if current is not None:
                merged = current.model_dump(by_alias=True, exclude_none=True)
                merged.update(mapping)
                mapping = merged
            setattr(resource, field, PatchValue(mapping).as_element(model_cls))
            return

        sub_field = element_field(model_cls, sub_attribute)
        if sub_field is None:
            raise UnsupportedPath(raw, f"unknown sub-attribute '{sub_attribute}'")

        if op == "remove":
            if current is not None:
                setattr(current, sub_field, None)
            return

        if current is None:
            current = model_cls()
            setattr(resource, field, current)
        setattr(current, sub_field, value.as_str())

    def _apply_collection(
        self,
        resource: Resource,
        op: str,
        field: str,
        element_cls: Type[BaseModel],
        value: PatchValue,
    ) -> None:
        if op == "remove":
            setattr(resource, field, None)
            return

        elements = value.as_elements(element_cls)
        if op == "replace":
            setattr(resource, field, elements)
            return

        current = list(getattr(resource, field) or [])
        present = {getattr(item, "value", None) for item in current} - {None}
        for element in elements:
            element_value = getattr(element, "value", None)
            if element_value is not None and element_value in present:
                patch_logger.debug(f"Skipping duplicate '{element_value}' in {field}")
                continue
            current.append(element)
            present.add(element_value)
        setattr(resource, field, current)

    def _apply_filtered(
        self,
        resource: Resource,
        op: str,
        path: SCIMPath,
        field: str,
        element_cls: Type[BaseModel],
        value: PatchValue,
        raw: str,
    ) -> None:
        self._check_filter(op, path, raw)

        filter_field = element_field(element_cls, path.filter.attribute)
        if filter_field is None:
            raise UnsupportedFilterAttribute(
                f"Filter attribute '{path.filter.attribute}' is not supported for '{path.attribute}'"
            )

        target_field = None
        if path.sub_attribute:
            target_field = element_field(element_cls, path.sub_attribute)
            if target_field is None:
                raise UnsupportedPath(raw, f"unknown sub-attribute '{path.sub_attribute}' of '{path.attribute}'")

        items = list(getattr(resource, field) or [])
        selected = [
            idx for idx, item in enumerate(items)
            if _literal_matches(getattr(item, filter_field), path.filter.value)
        ]
        if not selected:
            patch_logger.debug(f"Filter in '{raw}' matched nothing")

        if op == "remove":
            if target_field is None:
                items = [item for idx, item in enumerate(items) if idx not in selected]
            else:
                if element_cls.model_fields[target_field].is_required():
                    raise InvalidPatch(f"Sub-attribute '{path.sub_attribute}' is required and cannot be removed", scim_type="mutability")
                for idx in selected:
                    setattr(items[idx], target_field, None)
            setattr(resource, field, items)
            return

        if target_field is None:
            updates = value.as_mapping()
            for idx in selected:
                merged = items[idx].model_dump(by_alias=True, exclude_none=True)
                merged.update(updates)
                items[idx] = PatchValue(merged).as_element(element_cls)
        else:
            if target_field in self.BOOLEAN_SUB_ATTRIBUTES:
                converted = value.as_bool()
                if converted is None:
                    patch_logger.warning(f"Could not interpret {value.raw!r} as a boolean for '{raw}', leaving it unchanged")
                    return
            else:
                converted = value.as_str()
            for idx in selected:
                items[idx] = self._with_field(items[idx], target_field, converted)
            updates = {target_field: converted}

        # An add that matches nothing creates the element described by the filter
        if op == "add" and not selected:
            created = {**updates, filter_field: path.filter.value}
            items.append(PatchValue(created).as_element(element_cls))
            patch_logger.debug(f"Created {field} element from '{raw}'")

        setattr(resource, field, items)

    @staticmethod
    def _with_field(element: BaseModel, field: str, new_value: Any) -> BaseModel:
        data = element.model_dump()
        data[field] = new_value
        try:
            return type(element).model_validate(data)
        except ValidationError as e:
            raise InvalidValue(f"Invalid value for '{field}': {e.errors()[0]['msg']}")


class UserPatchInterpreter(PatchInterpreter):
    resource_type = "User"
    core_schema = SCIMSchemaUri.USER.value

    REQUIRED = {"user_name"}
    BOOLEAN_ATTRIBUTES = {"active"}

    SIMPLE_ATTRIBUTES = {
        "username": "user_name",
        "externalid": "external_id",
        "displayname": "display_name",
        "nickname": "nick_name",
        "profileurl": "profile_url",
        "title": "title",
        "usertype": "user_type",
        "preferredlanguage": "preferred_language",
        "locale": "locale",
        "timezone": "timezone",
        "active": "active",
    }

    COMPLEX_ATTRIBUTES = {
        "name": ("name", Name),
    }

    COLLECTIONS = {
        "emails": ("emails", Email),
        "phonenumbers": ("phone_numbers", PhoneNumber),
        "ims": ("ims", MultiValuedAttribute),
        "photos": ("photos", MultiValuedAttribute),
        "addresses": ("addresses", Address),
        "entitlements": ("entitlements", MultiValuedAttribute),
        "roles": ("roles", Role),
        "x509certificates": ("x509_certificates", MultiValuedAttribute),
        "groups": ("groups", UserGroup),
    }

    EXTENSION_FIELDS = {
        "employeenumber": "employee_number",
        "costcenter": "cost_center",
        "organization": "organization",
        "division": "division",
        "department": "department",
        "manager": "manager",
    }

    def _recognises(self, path: SCIMPath) -> bool:
        if path.schema_uri == SCIMSchemaUri.ENTERPRISE_USER.value:
            return not path.attribute or path.attribute.lower() in self.EXTENSION_FIELDS
        return super()._recognises(path)

    def _apply_extension_path(self, resource: UserResponse, op: str, path: SCIMPath, value: PatchValue, raw: str) -> None:
        if path.schema_uri != SCIMSchemaUri.ENTERPRISE_USER.value:
            super()._apply_extension_path(resource, op, path, value, raw)
            return
        if path.is_filtered:
            raise UnsupportedPath(raw, "enterprise extension attributes are not multi-valued")

        extension = resource.enterprise_user

        if not path.attribute:
            if op == "remove":
                resource.enterprise_user = None
            else:
                mapping = dict(value.as_mapping())
                if extension is not None:
                    merged = extension.model_dump(by_alias=True, exclude_none=True)
                    merged.update(mapping)
                    mapping = merged
                resource.enterprise_user = PatchValue(mapping).as_element(EnterpriseUserExtension)
            resource.sync_schemas()
            return

        field = self.EXTENSION_FIELDS.get(path.attribute.lower())
        if field is None:
            raise UnsupportedPath(raw, f"unknown enterprise extension attribute '{path.attribute}'")
        if path.sub_attribute and field != "manager":
            raise UnsupportedPath(raw, f"'{path.attribute}' has no sub-attributes")

        if op == "remove":
            if extension is not None:
                if path.sub_attribute and extension.manager is not None:
                    sub_field = self._manager_field(path.sub_attribute, raw)
                    setattr(extension.manager, sub_field, None)
                elif not path.sub_attribute:
                    setattr(extension, field, None)
            resource.sync_schemas()
            return

        # add and replace are equivalent for singular extension attributes
        if extension is None:
            extension = EnterpriseUserExtension()
            resource.enterprise_user = extension

        if field == "manager":
            if path.sub_attribute:
                manager = extension.manager or Manager()
                setattr(manager, self._manager_field(path.sub_attribute, raw), value.as_str())
                extension.manager = manager
            else:
                extension.manager = value.as_manager()
        else:
            setattr(extension, field, value.as_str())

        resource.sync_schemas()

    @staticmethod
    def _manager_field(sub_attribute: str, raw: str) -> str:
        sub_field = element_field(Manager, sub_attribute)
        if sub_field is None:
            raise UnsupportedPath(raw, f"unknown manager sub-attribute '{sub_attribute}'")
        return sub_field


class GroupPatchInterpreter(PatchInterpreter):
    resource_type = "Group"
    core_schema = SCIMSchemaUri.GROUP.value

    REQUIRED = {"display_name"}

    SIMPLE_ATTRIBUTES = {
        "displayname": "display_name",
        "externalid": "external_id",
    }

    COLLECTIONS = {
        "members": ("members", GroupMember),
    }

    def _check_filter(self, op: str, path: SCIMPath, raw: str) -> None:
        if not path.attribute_is("members"):
            return
        if path.filters_on("type"):
            raise UnsupportedFilterAttribute(
                f"{raw} for Group is not supported by the SCIM protocol. {RFC7643_GROUP_MEMBER_NOTE}"
            )
        if op == "add":
            raise UnsupportedPath(
                raw,
                "'add' cannot target a filtered member selection. Add members through the 'members' path, "
                "or use 'replace' with a value filter to change an existing member"
            )
