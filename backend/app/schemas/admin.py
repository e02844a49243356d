"""
Pydantic schemas for super-admin user and company management endpoints.
"""
from pydantic import BaseModel, Field
from typing import Optional, List

class AdminUserBase(BaseModel):
    """
    User information returned in admin API responses.
    """
    id: str
    email: str
    name: str
    isSuperAdmin: bool
    isActive: bool
    lastLoginAt: Optional[str] = None
    createdAt: Optional[str] = None

class AdminUserListOut(BaseModel):
    items: List[AdminUserBase]
    offset: int
    limit: int
    total: int

class AdminUserDetailOut(BaseModel):
    user: AdminUserBase
    companies: List[dict] = []

class AdminUserUpdateIn(BaseModel):
    """
    All fields are optional - only provided fields will be updated.
    """
    name: Optional[str] = Field(default=None, min_length=1, max_length=256)
    email: Optional[str] = None
    isActive: Optional[bool] = None
    isSuperAdmin: Optional[bool] = None  # Cannot demote yourself or the last super admin

class AdminResetPasswordIn(BaseModel):
    newPassword: str = Field(min_length=8)

class AdminCompanyListOut(BaseModel):
    items: List[dict]
    offset: int
    limit: int
    total: int

class AdminCompanyUpdateIn(BaseModel):
    isActive: bool
