from typing import TYPE_CHECKING
from tortoise import fields
from tortoise.models import Model
from .user import generate_resource_id

if TYPE_CHECKING:
    from .tenant import Tenant


class Group(Model):
    id = fields.CharField(max_length=36, pk=True, default=generate_resource_id)
    tenant: fields.ForeignKeyRelation["Tenant"] = fields.ForeignKeyField(
        "models.Tenant", related_name="groups", on_delete=fields.CASCADE
    )
    display_name = fields.CharField(max_length=255)
    external_id = fields.CharField(max_length=255, null=True)

    # Members are owned by the group: [{value, display, $ref, type}]
    members = fields.JSONField(default=list)

    # Metadata
    created = fields.DatetimeField()
    last_modified = fields.DatetimeField()
    version = fields.CharField(max_length=255, null=True)

    class Meta:
        table = "groups"
        unique_together = [("tenant", "external_id")]
        ordering = ["created"]

    def __str__(self):
        return self.display_name
