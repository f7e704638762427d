from typing import TYPE_CHECKING
from uuid import uuid4
from tortoise import fields
from tortoise.models import Model

if TYPE_CHECKING:
    from .tenant import Tenant


def generate_resource_id() -> str:
    return str(uuid4())


class User(Model):
    id = fields.CharField(max_length=36, pk=True, default=generate_resource_id)
    tenant: fields.ForeignKeyRelation["Tenant"] = fields.ForeignKeyField(
        "models.Tenant", related_name="users", on_delete=fields.CASCADE
    )
    user_name = fields.CharField(max_length=255)
    external_id = fields.CharField(max_length=255, null=True)

    # Core attributes
    display_name = fields.CharField(max_length=255, null=True)
    nick_name = fields.CharField(max_length=255, null=True)
    profile_url = fields.TextField(null=True)
    title = fields.CharField(max_length=255, null=True)
    user_type = fields.CharField(max_length=255, null=True)
    preferred_language = fields.CharField(max_length=50, null=True)
    locale = fields.CharField(max_length=50, null=True)
    timezone = fields.CharField(max_length=100, null=True)
    active = fields.BooleanField(default=True)

    # Complex and multi-valued attributes, embedded in the row
    name = fields.JSONField(null=True)
    emails = fields.JSONField(default=list)
    phone_numbers = fields.JSONField(default=list)
    ims = fields.JSONField(default=list)
    photos = fields.JSONField(default=list)
    addresses = fields.JSONField(default=list)
    entitlements = fields.JSONField(default=list)
    roles = fields.JSONField(default=list)
    x509_certificates = fields.JSONField(default=list)
    groups = fields.JSONField(default=list)

    # Enterprise User Extension
    enterprise = fields.JSONField(null=True)

    # Metadata
    created = fields.DatetimeField()
    last_modified = fields.DatetimeField()
    version = fields.CharField(max_length=255, null=True)

    class Meta:
        table = "users"
        unique_together = [("tenant", "user_name"), ("tenant", "external_id")]
        ordering = ["created"]

    def __str__(self):
        return self.user_name
