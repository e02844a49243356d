import uuid
from typing import Optional
from tortoise import fields, models

class License(models.Model):
    """
    Token-bound grant of seats and storage to a company.
    - token_hash: sha256(plain text token), unique (plain text not stored)
    - token_prefix / token_last4: display only, e.g. LIC-****-****-GH78
    - company: null until redeemed (or pre-assigned at issue time); SET NULL on company delete
    - is_used: flips false -> true exactly once, never back
    - is_active: the company's current license; at most one per company
    - expires_at: in the past means the license is inert whatever is_active says
    """
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    token_hash = fields.CharField(max_length=64, unique=True, index=True)
    token_prefix = fields.CharField(max_length=8, null=True)
    token_last4 = fields.CharField(max_length=4, null=True)

    company: Optional[fields.ForeignKeyNullableRelation["Company"]] = fields.ForeignKeyField(
        "models.Company", related_name="licenses", null=True, on_delete=fields.SET_NULL
    )
    company_name = fields.CharField(max_length=256, null=True)  # Pre-filled name for signup

    expires_at = fields.DatetimeField()
    is_active = fields.BooleanField(default=False)
    is_used = fields.BooleanField(default=False)
    used_at = fields.DatetimeField(null=True)

    max_users = fields.IntField(default=1)
    max_storage_bytes = fields.BigIntField(default=524288000)  # 500MB

    created_by = fields.ForeignKeyField(
        "models.User", related_name="issued_licenses", on_delete=fields.RESTRICT
    )
    notes = fields.TextField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "licenses"

    @property
    def token_preview(self) -> Optional[str]:
        if self.token_prefix and self.token_last4:
            return f"{self.token_prefix}-****-****-{self.token_last4}"
        return None
