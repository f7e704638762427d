from .base import (
    ListResponse,
    Meta,
    MultiValuedAttribute,
    Name,
    Address,
    PatchOperation,
    PatchRequest,
    ResourceType,
    SCIMSchemaUri,
)
from .user import (
    UserAttributes,
    UserRequest,
    UserResponse,
    Email,
    PhoneNumber,
    Role,
    EnterpriseUserExtension,
    Manager,
    UserGroup,
)
from .group import (
    GroupRequest,
    GroupResponse,
    GroupMember,
)
from .error import ErrorResponse

__all__ = [
    # Base
    "ListResponse",
    "Meta",
    "MultiValuedAttribute",
    "Name",
    "Address",
    "PatchOperation",
    "PatchRequest",
    "ResourceType",
    "SCIMSchemaUri",
    # User
    "UserAttributes",
    "UserRequest",
    "UserResponse",
    "Email",
    "PhoneNumber",
    "Role",
    "EnterpriseUserExtension",
    "Manager",
    "UserGroup",
    # Group
    "GroupRequest",
    "GroupResponse",
    "GroupMember",
    # Error
    "ErrorResponse",
]
