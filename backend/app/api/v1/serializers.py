# app/api/v1/serializers.py
"""
Model -> dict helpers shared by the routers.
Keys are camelCase to match the request schemas.
"""
from typing import Optional

from app.models import Company, Device, License, User, Video


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def user_to_dict(u: User) -> dict:
    return {
        "id": str(u.id),
        "email": u.email,
        "name": u.name,
        "isSuperAdmin": u.is_super_admin,
        "isActive": u.is_active,
        "lastLoginAt": _iso(u.last_login_at),
        "createdAt": _iso(u.created_at),
    }


def company_to_dict(c: Company, role: Optional[str] = None) -> dict:
    data = {
        "id": str(c.id),
        "name": c.name,
        "slug": c.slug,
        "description": c.description,
        "isActive": c.is_active,
        "createdAt": _iso(c.created_at),
    }
    if role is not None:
        data["role"] = role
    return data


def license_to_dict(lic: License) -> dict:
    """
    License info for API responses. The plain text token is never part of it,
    only the masked preview.
    """
    return {
        "id": str(lic.id),
        "tokenPreview": lic.token_preview,
        "companyId": str(lic.company_id) if lic.company_id else None,
        "companyName": lic.company_name,
        "maxUsers": lic.max_users,
        "maxStorageBytes": lic.max_storage_bytes,
        "isActive": lic.is_active,
        "isUsed": lic.is_used,
        "usedAt": _iso(lic.used_at),
        "expiresAt": _iso(lic.expires_at),
        "createdById": str(lic.created_by_id) if lic.created_by_id else None,
        "notes": lic.notes,
        "createdAt": _iso(lic.created_at),
    }


def video_to_dict(v: Video) -> dict:
    return {
        "id": str(v.id),
        "companyId": str(v.company_id),
        "uploadedById": str(v.uploaded_by_id),
        "displayName": v.file_name,
        "originalFileName": v.original_file_name,
        "fileSize": v.file_size,
        "mimeType": v.mime_type,
        "metadata": v.metadata or {},
        "createdAt": _iso(v.created_at),
    }


def device_to_dict(d: Device) -> dict:
    return {
        "id": str(d.id),
        "uid": d.uid,
        "name": d.name,
        "deviceInfo": d.device_info or {},
        "lastSeen": _iso(d.last_seen),
        "isActive": d.is_active,
        "createdAt": _iso(d.created_at),
    }
