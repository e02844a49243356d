"""
Pydantic schemas for device registry endpoints.
"""
from typing import Any, Optional
from pydantic import BaseModel, Field

class RegisterDeviceIn(BaseModel):
    uid: str = Field(min_length=1, max_length=255)  # Stable device identifier (serial, generated browser id...)
    deviceInfo: Optional[dict[str, Any]] = None  # Opaque client data, replaces the stored value when sent
    name: Optional[str] = Field(default=None, max_length=128)

class RenameDeviceIn(BaseModel):
    name: str = Field(min_length=1, max_length=128)
