from typing import TYPE_CHECKING
from tortoise import fields
from tortoise.models import Model

if TYPE_CHECKING:
    from .tenant import Tenant


def default_scopes() -> list:
    return ["scim:read", "scim:write"]


class APIToken(Model):
    id = fields.UUIDField(pk=True)
    name = fields.CharField(max_length=255)
    token_hash = fields.CharField(max_length=64, unique=True)
    description = fields.TextField(null=True)
    scopes = fields.JSONField(default=default_scopes)
    active = fields.BooleanField(default=True)
    expires_at = fields.DatetimeField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    last_used_at = fields.DatetimeField(null=True)
    created_by = fields.CharField(max_length=255, null=True)

    # The tenant every request made with this token is scoped to
    tenant: fields.ForeignKeyRelation["Tenant"] = fields.ForeignKeyField(
        "models.Tenant", related_name="api_tokens", on_delete=fields.CASCADE
    )

    class Meta:
        table = "api_tokens"
