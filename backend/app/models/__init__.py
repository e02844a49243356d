"""
Database models module initialization.
Exports all database models for convenient imports throughout the application.

Models exported:
- User: account and credentials
- Company: tenant
- Membership: User <-> Company with role
- License: seat/storage grant redeemed by token
- Video: uploaded file counted against storage quota
- Device: global device registry
- Session: server-side state behind the session cookie
"""
from .user import User
from .company import Company
from .membership import Membership, ROLES
from .license import License
from .video import Video
from .device import Device
from .session import Session
