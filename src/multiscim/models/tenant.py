from tortoise import fields
from tortoise.models import Model


class Tenant(Model):
    id = fields.UUIDField(pk=True)
    tenant_key = fields.CharField(max_length=255, unique=True)
    display_name = fields.CharField(max_length=255)
    description = fields.TextField(null=True)
    active = fields.BooleanField(default=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    modified_at = fields.DatetimeField(auto_now=True)

    # Relationships
    users: fields.ReverseRelation["User"]
    groups: fields.ReverseRelation["Group"]
    api_tokens: fields.ReverseRelation["APIToken"]

    class Meta:
        table = "tenants"
        ordering = ["tenant_key"]

    def __str__(self):
        return f"{self.display_name} ({self.tenant_key})"
