from typing import Optional
from fastapi import HTTPException
from multiscim.schemas.error import ErrorResponse


RFC7643_GROUP_MEMBER_NOTE = (
    "Per RFC 7643 Section 4.2, Group members only support the 'value', 'display' and '$ref' "
    "sub-attributes."
)


class SCIMException(HTTPException):
    def __init__(
        self,
        status_code: int,
        detail: Optional[str] = None,
        scim_type: Optional[str] = None,
    ):
        self.scim_type = scim_type
        super().__init__(
            status_code=status_code,
            detail=detail,
        )

    def to_error_response(self) -> ErrorResponse:
        return ErrorResponse(
            status=self.status_code,
            detail=self.detail,
            scim_type=self.scim_type
        )


class ResourceNotFound(SCIMException):
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            status_code=404,
            detail=f"{resource_type} with id '{resource_id}' not found",
        )


class ResourceAlreadyExists(SCIMException):
    def __init__(self, resource_type: str, attribute: str, value: str):
        super().__init__(
            status_code=409,
            detail=f"{resource_type} with {attribute} '{value}' already exists",
            scim_type="uniqueness"
        )


class InvalidValue(SCIMException):
    def __init__(self, detail: str):
        super().__init__(
            status_code=400,
            detail=detail,
            scim_type="invalidValue"
        )


class InvalidSyntax(SCIMException):
    def __init__(self, detail: str):
        super().__init__(
            status_code=400,
            detail=detail,
            scim_type="invalidSyntax"
        )


class InvalidFilter(SCIMException):
    def __init__(self, filter_expression: str, reason: str):
        super().__init__(
            status_code=400,
            detail=f"Invalid filter expression '{filter_expression}': {reason}",
            scim_type="invalidFilter"
        )


class UnsupportedFilterAttribute(SCIMException):
    """A filter addresses a sub-attribute this server does not expose."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=400,
            detail=detail,
            scim_type="invalidFilter"
        )


class InvalidPatch(SCIMException):
    def __init__(self, detail: str, scim_type: str = "invalidPath"):
        super().__init__(
            status_code=400,
            detail=detail,
            scim_type=scim_type
        )


class MalformedPath(InvalidPatch):
    def __init__(self, path: str, reason: Optional[str] = None):
        detail = f"Invalid attribute path '{path}'"
        if reason:
            detail = f"{detail}: {reason}"
        super().__init__(detail)


class UnsupportedPath(InvalidPatch):
    def __init__(self, path: str, reason: str):
        super().__init__(f"Path '{path}' is not supported: {reason}")


class UnsupportedOperation(InvalidPatch):
    def __init__(self, op: Optional[str]):
        super().__init__(
            f"Unsupported patch operation '{op}'. Supported operations are 'add', 'remove' and 'replace'",
            scim_type="invalidSyntax"
        )


class TenantContextMissing(SCIMException):
    def __init__(self, detail: str = "Missing tenant identifier"):
        super().__init__(
            status_code=400,
            detail=detail,
        )


class Unauthorized(SCIMException):
    def __init__(self, detail: str = "Invalid or missing authentication credentials"):
        super().__init__(
            status_code=401,
            detail=detail,
        )


class Forbidden(SCIMException):
    def __init__(self, detail: str = "Insufficient permissions"):
        super().__init__(
            status_code=403,
            detail=detail,
        )


class PreconditionFailed(SCIMException):
    def __init__(self, detail: str = "Resource version mismatch"):
        super().__init__(
            status_code=412,
            detail=detail,
        )
