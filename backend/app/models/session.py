import uuid
from tortoise import fields, models

class Session(models.Model):
    """
    Server-side login session referenced by the signed session cookie.

    company/role are null while the session is only authenticated and are
    bound by select-company. Deleting the row logs the session out.
    """
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    user = fields.ForeignKeyField("models.User", related_name="sessions", on_delete=fields.CASCADE)
    company = fields.ForeignKeyField(
        "models.Company", related_name="sessions", null=True, on_delete=fields.CASCADE
    )
    role = fields.CharField(max_length=16, null=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    expires_at = fields.DatetimeField(index=True)

    class Meta:
        table = "sessions"
