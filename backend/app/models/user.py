"""
Database model for users.
Represents a user account, its credentials, and the global super-admin flag.
"""
import uuid
from tortoise import fields, models

class User(models.Model):
    """
    User database model.

    Relationships:
    - Has many Memberships (user_companies), i.e. belongs to many Companies
    - Has many uploaded Videos (RESTRICT: a user with uploads cannot be deleted)
    - Has many issued Licenses (RESTRICT, via created_by)

    Security:
    - Password is stored as an argon2 hash
    - Email is unique and stored lowercase
    - Super admins manage licenses and bypass company membership checks
    """
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    email = fields.CharField(max_length=256, unique=True, index=True)  # Login identifier
    password_hash = fields.CharField(max_length=255)
    name = fields.CharField(max_length=256)
    is_super_admin = fields.BooleanField(default=False)
    is_active = fields.BooleanField(default=True)  # Inactive users cannot log in
    last_login_at = fields.DatetimeField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        """Tortoise ORM metadata configuration."""
        table = "users"
