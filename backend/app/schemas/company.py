"""
Pydantic schemas for company member management endpoints.
"""
from typing import Any, Literal, Optional
from pydantic import BaseModel, Field

# Roles that can be granted through the member endpoints
MemberRole = Literal["owner", "admin", "manager", "member", "viewer"]

class AddMemberIn(BaseModel):
    """Add an already registered user by email."""
    email: str
    role: MemberRole = "member"

class CreateMemberIn(BaseModel):
    """Create a new user account directly inside the current company."""
    email: str = Field(min_length=3, max_length=256)
    name: str = Field(min_length=1, max_length=256)
    password: str = Field(min_length=8)
    role: MemberRole = "member"

class UpdateRoleIn(BaseModel):
    role: MemberRole

class UpdatePermissionsIn(BaseModel):
    """Replaces the member's permissions object as a whole."""
    permissions: dict[str, Any]

class ApplyLicenseIn(BaseModel):
    token: str

class CompanyUpdateIn(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=256)
    description: Optional[str] = None
