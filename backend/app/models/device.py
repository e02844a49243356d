import uuid
from tortoise import fields, models

class Device(models.Model):
    """
    Global registry entry for a physical player or browser.
    uid is the device's own stable identifier; re-registering the same uid
    refreshes the row instead of adding one.
    """
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    uid = fields.CharField(max_length=255, unique=True, index=True)
    name = fields.CharField(max_length=128, null=True)  # Friendly name, generated when not given
    device_info = fields.JSONField(default=dict)  # Opaque client data (resolution, OS, browser...)
    last_seen = fields.DatetimeField(index=True)
    is_active = fields.BooleanField(default=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "devices"
