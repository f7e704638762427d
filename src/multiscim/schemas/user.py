from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from email_validator import validate_email, EmailNotValidError
from .base import (
    MultiValuedAttribute,
    Name,
    Address,
    SCIMSchemaUri,
    Meta
)

ENTERPRISE_URI = SCIMSchemaUri.ENTERPRISE_USER.value

# OneLogin sends this instead of the RFC 7643 enterprise extension URN
ONELOGIN_ENTERPRISE_KEY = "urn:scim:schemas:extension:enterprise:2.0"


class Email(MultiValuedAttribute):
    type: Optional[str] = "work"

    @field_validator("value")
    def validate_email_format(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        try:
            validate_email(v, check_deliverability=False)
        except EmailNotValidError as e:
            raise ValueError(f"Invalid email address '{v}': {e}")
        return v.lower()


class PhoneNumber(MultiValuedAttribute):
    type: Optional[str] = "work"


class Role(MultiValuedAttribute):
    pass


class UserGroup(BaseModel):
    """Group membership as seen from the User."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    value: str
    ref: Optional[str] = Field(None, alias="$ref")
    display: Optional[str] = None
    type: Optional[str] = Field(default="direct")


class Manager(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    value: Optional[str] = None
    ref: Optional[str] = Field(None, alias="$ref")
    display_name: Optional[str] = Field(None, alias="displayName")


class EnterpriseUserExtension(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    employee_number: Optional[str] = Field(None, alias="employeeNumber")
    cost_center: Optional[str] = Field(None, alias="costCenter")
    organization: Optional[str] = None
    division: Optional[str] = None
    department: Optional[str] = None
    manager: Optional[Manager] = None

    @field_validator("manager", mode="before")
    def normalize_manager(cls, v):
        """Entra ID sends the manager as a bare id string instead of the complex object."""
        if isinstance(v, str):
            return Manager(value=v) if v else None
        return v

    def is_empty(self) -> bool:
        return not any(
            value is not None for value in (
                self.employee_number,
                self.cost_center,
                self.organization,
                self.division,
                self.department,
                self.manager,
            )
        )


class UserAttributes(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    external_id: Optional[str] = Field(None, alias="externalId")
    name: Optional[Name] = None
    display_name: Optional[str] = Field(None, alias="displayName")
    nick_name: Optional[str] = Field(None, alias="nickName")
    profile_url: Optional[str] = Field(None, alias="profileUrl")
    title: Optional[str] = None
    user_type: Optional[str] = Field(None, alias="userType")
    preferred_language: Optional[str] = Field(None, alias="preferredLanguage")
    locale: Optional[str] = None
    timezone: Optional[str] = None
    active: bool = True

    emails: Optional[List[Email]] = None
    phone_numbers: Optional[List[PhoneNumber]] = Field(None, alias="phoneNumbers")
    ims: Optional[List[MultiValuedAttribute]] = None
    photos: Optional[List[MultiValuedAttribute]] = None
    addresses: Optional[List[Address]] = None
    entitlements: Optional[List[MultiValuedAttribute]] = None
    roles: Optional[List[Role]] = None
    x509_certificates: Optional[List[MultiValuedAttribute]] = Field(None, alias="x509Certificates")
    groups: Optional[List[UserGroup]] = None

    enterprise_user: Optional[EnterpriseUserExtension] = Field(None, alias=ENTERPRISE_URI)


class UserRequest(UserAttributes):
    schemas: Optional[List[str]] = None
    user_name: Optional[str] = Field(None, alias="userName")

    @model_validator(mode="before")
    def clean_empty_attributes(cls, values):
        """Remove empty objects from multi-valued attribute lists"""
        if not isinstance(values, dict):
            return values

        if ONELOGIN_ENTERPRISE_KEY in values and ENTERPRISE_URI not in values:
            values[ENTERPRISE_URI] = values.pop(ONELOGIN_ENTERPRISE_KEY)

        for field in ["emails", "phoneNumbers", "ims", "photos", "entitlements", "roles", "x509Certificates"]:
            if isinstance(values.get(field), list):
                values[field] = [
                    item for item in values[field]
                    if isinstance(item, dict) and item.get("value")
                ] or None

        if isinstance(values.get("addresses"), list):
            values["addresses"] = [
                item for item in values["addresses"]
                if isinstance(item, dict) and any(
                    item.get(field) for field in
                    ["formatted", "streetAddress", "locality", "region",
                     "postalCode", "country", "type", "primary"]
                )
            ] or None

        return values

    @model_validator(mode="after")
    def ensure_single_primary(self) -> "UserRequest":
        for attribute in ("emails", "phone_numbers", "addresses"):
            items = getattr(self, attribute) or []
            if sum(1 for item in items if item.primary) > 1:
                raise ValueError(f"Only one of {attribute} can be marked as primary")
        return self


class UserResponse(UserAttributes):
    schemas: List[str] = [SCIMSchemaUri.USER.value]
    id: str
    user_name: str = Field(..., alias="userName")
    meta: Meta

    @field_validator("user_name")
    def validate_username(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("userName cannot be empty")
        return v.strip()

    @model_validator(mode="after")
    def set_default_schemas(self) -> "UserResponse":
        return self.sync_schemas()

    def sync_schemas(self) -> "UserResponse":
        """Advertise the enterprise schema only while the extension carries data."""
        if self.enterprise_user is not None and self.enterprise_user.is_empty():
            self.enterprise_user = None

        schemas = [SCIMSchemaUri.USER.value]
        if self.enterprise_user is not None:
            schemas.append(ENTERPRISE_URI)
        self.schemas = schemas
        return self
