"""
Pydantic schemas for video endpoints.
"""
import uuid

from pydantic import BaseModel, Field

class VideoRenameIn(BaseModel):
    displayName: str = Field(min_length=1, max_length=255)

class BulkDeleteIn(BaseModel):
    videoIds: list[uuid.UUID] = Field(min_length=1, max_length=100)
