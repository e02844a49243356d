import uuid
from tortoise import fields, models

class Company(models.Model):
    """
    A tenant. Owns memberships, licenses and videos.
    At most one of its licenses is active at a time (enforced in services.licensing).
    """
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    name = fields.CharField(max_length=256)
    slug = fields.CharField(max_length=256, unique=True, index=True)
    description = fields.TextField(null=True)
    is_active = fields.BooleanField(default=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "companies"
