import uuid
from tortoise import fields, models

ROLES = ("owner", "admin", "manager", "member", "viewer")

class Membership(models.Model):
    """
    Join between User and Company carrying the user's role in that company.
    Removing a member only flips is_active; the row is reused on re-adding.
    """
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    user = fields.ForeignKeyField("models.User", related_name="memberships", on_delete=fields.CASCADE)
    company = fields.ForeignKeyField("models.Company", related_name="memberships", on_delete=fields.CASCADE)
    role = fields.CharField(max_length=16, default="member")  # one of ROLES
    permissions = fields.JSONField(default=dict)  # Extra per-company grants on top of the role
    is_active = fields.BooleanField(default=True)
    joined_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "user_companies"
        unique_together = (("user", "company"),)
