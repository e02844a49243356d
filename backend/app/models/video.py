import uuid
from tortoise import fields, models

class Video(models.Model):
    """
    An uploaded video file. Deleting only sets is_active=False; active rows
    count toward the company's license storage quota.
    """
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    company = fields.ForeignKeyField("models.Company", related_name="videos", on_delete=fields.CASCADE)
    uploaded_by = fields.ForeignKeyField("models.User", related_name="videos", on_delete=fields.RESTRICT)
    file_name = fields.CharField(max_length=255)  # Display name, unique per company (active or not)
    original_file_name = fields.CharField(max_length=255)
    file_path = fields.CharField(max_length=1024)  # Relative to VIDEO_STORAGE_DIR
    file_size = fields.BigIntField()
    mime_type = fields.CharField(max_length=128)
    metadata = fields.JSONField(default=dict)
    is_active = fields.BooleanField(default=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "videos"
        unique_together = (("company", "file_name"),)
