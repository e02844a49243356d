"""
Pydantic schemas for authentication endpoints.
Defines request models for license signup, login, company selection and password change.
"""
import uuid
from pydantic import BaseModel, Field

class LicenseSignupIn(BaseModel):
    """
    Request model for license-based registration.
    Consumes the token and creates the owner account plus the company.
    """
    token: str  # Plain text license token
    name: str = Field(min_length=1, max_length=256)
    email: str = Field(min_length=3, max_length=256)
    password: str = Field(min_length=8)
    companyName: str | None = Field(default=None, max_length=256)  # Falls back to the license's pre-filled name
    companyDescription: str | None = None

class LoginRequest(BaseModel):
    """
    Request model for user login endpoint.
    """
    email: str
    password: str  # Plain text, verified against the argon2 hash server-side

class SelectCompanyIn(BaseModel):
    companyId: uuid.UUID

class ChangePasswordIn(BaseModel):
    currentPassword: str
    newPassword: str = Field(min_length=8)
