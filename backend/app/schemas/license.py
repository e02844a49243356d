"""
Pydantic schemas for super-admin license management endpoints.
"""
from __future__ import annotations
import uuid
from pydantic import BaseModel, Field, constr
from typing import List, Optional

class IssueLicenseIn(BaseModel):
    """
    Request model for issuing license tokens.
    Plain text tokens are returned once in the response and never stored.
    """
    count: int = Field(default=1, ge=1, le=200, description="Number of licenses to issue, maximum 200")
    companyId: Optional[uuid.UUID] = Field(default=None, description="Pre-assign to an existing company")
    companyName: Optional[constr(strip_whitespace=True, max_length=256)] = None  # Pre-filled signup name
    maxUsers: int = Field(default=1, ge=1, le=100000)
    maxStorageBytes: Optional[int] = Field(default=None, ge=1)
    expireDays: int = Field(default=365, ge=1, le=3650, description="Days until expiration")
    notes: Optional[str] = None

class IssuedLicenseItem(BaseModel):
    id: str
    token: str  # Plain text, only returned at issue time
    companyId: Optional[str] = None
    maxUsers: int
    maxStorageBytes: int
    expiresAt: str

class IssueLicenseOut(BaseModel):
    licenses: List[IssuedLicenseItem]

class LicenseListOut(BaseModel):
    items: list[dict]
    offset: int
    limit: int
    total: int
