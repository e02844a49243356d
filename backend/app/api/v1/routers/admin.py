# app/api/v1/routers/admin.py
from __future__ import annotations

import datetime as dt
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from tortoise.exceptions import IntegrityError
from tortoise.expressions import Q

from app.api.v1.deps import require_super_admin
from app.api.v1.serializers import (
    company_to_dict,
    device_to_dict,
    license_to_dict,
    user_to_dict,
    video_to_dict,
)
from app.core.clock import utc_now
from app.core.errors import BadRequest, Conflict, NotFound
from app.core.security import hash_password
from app.models import License, Session, User, Video
from app.schemas.admin import (
    AdminCompanyListOut,
    AdminCompanyUpdateIn,
    AdminResetPasswordIn,
    AdminUserDetailOut,
    AdminUserListOut,
    AdminUserUpdateIn,
)
from app.schemas.device import RenameDeviceIn
from app.schemas.license import IssuedLicenseItem, IssueLicenseIn, IssueLicenseOut, LicenseListOut
from app.services import companies, devices, licensing, videos

router = APIRouter(prefix="/admin", tags=["admin"])


# ==============================================================================
# I. User Management Interface
#     Prefix: /api/v1/admin/users
# ==============================================================================
async def _get_user(user_id) -> User:
    u = await User.get_or_none(id=user_id)
    if not u:
        raise NotFound("User not found", code="USER_NOT_FOUND")
    return u


async def _count_super_admins(active_only: bool = True) -> int:
    """
    Count super admins. Used to prevent demoting, deactivating or deleting
    the last one.
    """
    qs = User.filter(is_super_admin=True)
    if active_only:
        qs = qs.filter(is_active=True)
    return await qs.count()


@router.get(
    "/users",
    response_model=AdminUserListOut,
    dependencies=[Depends(require_super_admin)],
)
async def list_users(
    q: str | None = Query(default=None, description="Fuzzy search by name/email"),
    offset: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
):
    """
    Get paginated list of all users (super admin only).
    Results are ordered by creation date (newest first).
    """
    qs = User.all().order_by("-created_at")
    if q:
        qs = qs.filter(Q(name__icontains=q) | Q(email__icontains=q))

    total = await qs.count()
    rows = await qs.offset(offset).limit(limit)
    return {"items": [user_to_dict(u) for u in rows], "offset": offset, "limit": limit, "total": total}


@router.get(
    "/users/{user_id}",
    response_model=AdminUserDetailOut,
    dependencies=[Depends(require_super_admin)],
)
async def get_user_detail(user_id: uuid.UUID):
    """User details plus every membership (active or not) with its company."""
    u = await _get_user(user_id)
    memberships = await companies.user_companies(u)
    return {
        "user": user_to_dict(u),
        "companies": [
            {"company": company_to_dict(m.company), "role": m.role, "isActive": m.is_active}
            for m in memberships
        ],
    }


@router.patch(
    "/users/{user_id}",
    response_model=AdminUserDetailOut,
)
async def update_user(
    user_id: uuid.UUID,
    body: AdminUserUpdateIn,
    current_admin: User = Depends(require_super_admin),
):
    """
    Update a user's name, email, active flag or super admin flag.

    Only provided fields are updated. Deactivating a user ends all of their
    sessions.

    Raises:
        NotFound (404): USER_NOT_FOUND
        Conflict (409): EMAIL_EXISTS
        BadRequest (400): CANNOT_DEMOTE_SELF, CANNOT_DEACTIVATE_SELF, LAST_SUPER_ADMIN
    """
    u = await _get_user(user_id)
    is_self = u.id == current_admin.id

    # 1) Name
    if body.name is not None:
        u.name = body.name.strip()

    # 2) Email (uniqueness check)
    if body.email is not None:
        email = body.email.strip().lower()
        if email != u.email:
            if await User.filter(email=email).exclude(id=u.id).exists():
                raise Conflict("Email already registered", code="EMAIL_EXISTS")
            u.email = email

    # 3) Super admin flag (cannot demote self; cannot demote the last one)
    if body.isSuperAdmin is not None and body.isSuperAdmin != u.is_super_admin:
        if not body.isSuperAdmin:
            if is_self:
                raise BadRequest("Cannot demote yourself", code="CANNOT_DEMOTE_SELF")
            if u.is_active and await _count_super_admins() <= 1:
                raise BadRequest("Cannot demote the last super admin", code="LAST_SUPER_ADMIN")
        u.is_super_admin = body.isSuperAdmin

    # 4) Active flag
    deactivated = False
    if body.isActive is not None and body.isActive != u.is_active:
        if not body.isActive:
            if is_self:
                raise BadRequest("Cannot deactivate yourself", code="CANNOT_DEACTIVATE_SELF")
            if u.is_super_admin and await _count_super_admins() <= 1:
                raise BadRequest("Cannot deactivate the last super admin", code="LAST_SUPER_ADMIN")
            deactivated = True
        u.is_active = body.isActive

    try:
        await u.save()
    except IntegrityError as e:
        raise Conflict("Email already registered", code="EMAIL_EXISTS") from e
    if deactivated:
        await Session.filter(user_id=u.id).delete()

    memberships = await companies.user_companies(u)
    return {
        "user": user_to_dict(u),
        "companies": [
            {"company": company_to_dict(m.company), "role": m.role, "isActive": m.is_active}
            for m in memberships
        ],
    }


@router.post(
    "/users/{user_id}/reset-password",
    dependencies=[Depends(require_super_admin)],
)
async def reset_user_password(user_id: uuid.UUID, body: AdminResetPasswordIn):
    """
    Set a new password without knowing the current one.
    All sessions of the user are ended.
    """
    u = await _get_user(user_id)
    u.password_hash = hash_password(body.newPassword)
    await u.save(update_fields=["password_hash"])
    await Session.filter(user_id=u.id).delete()
    return {"success": True, "data": {"ok": True}}


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: uuid.UUID,
    current_admin: User = Depends(require_super_admin),
):
    """
    Permanently delete a user account.

    Memberships and sessions go with the user. Users who uploaded videos or
    issued licenses cannot be deleted (deactivate them instead).

    Raises:
        NotFound (404): USER_NOT_FOUND
        BadRequest (400): CANNOT_DELETE_SELF, LAST_SUPER_ADMIN
        Conflict (409): USER_HAS_DEPENDENCIES
    """
    u = await _get_user(user_id)
    if u.id == current_admin.id:
        raise BadRequest("Cannot delete yourself", code="CANNOT_DELETE_SELF")
    if u.is_super_admin and u.is_active and await _count_super_admins() <= 1:
        raise BadRequest("Cannot delete the last super admin", code="LAST_SUPER_ADMIN")

    restricted = Conflict(
        "User still owns uploaded videos or issued licenses. Deactivate the user instead.",
        code="USER_HAS_DEPENDENCIES",
    )
    if await Video.filter(uploaded_by_id=u.id).exists() or await License.filter(created_by_id=u.id).exists():
        raise restricted
    try:
        await u.delete()
    except IntegrityError as e:
        raise restricted from e
    return {"success": True, "data": {"ok": True}}


# ==============================================================================
# II. Company Management
#     Prefix: /api/v1/admin/companies
# ==============================================================================
async def _company_summary(company) -> dict:
    lic = await licensing.get_active_license(company.id)
    data = company_to_dict(company)
    data["activeUsers"] = await licensing.count_active_members(company.id)
    data["license"] = license_to_dict(lic) if lic else None
    return data


@router.get(
    "/companies",
    response_model=AdminCompanyListOut,
    dependencies=[Depends(require_super_admin)],
)
async def list_companies(
    q: Optional[str] = Query(default=None, description="Fuzzy search by name/slug"),
    is_active: Optional[bool] = Query(default=None),
    offset: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
):
    rows, total = await companies.list_companies(q, is_active, offset, limit)
    items = [await _company_summary(c) for c in rows]
    return {"items": items, "offset": offset, "limit": limit, "total": total}


@router.get(
    "/companies/{company_id}",
    dependencies=[Depends(require_super_admin)],
)
async def get_company_detail(company_id: uuid.UUID):
    """Company with its members (including removed ones), licenses and storage usage."""
    company = await companies.get_company(company_id)
    members = await companies.list_members(company.id, include_inactive=True)
    licenses = await companies.company_licenses(company.id)
    return {"success": True, "data": {
        "company": await _company_summary(company),
        "members": [
            {"user": user_to_dict(m.user), "role": m.role, "permissions": m.permissions or {}, "isActive": m.is_active} for m in members
        ],
        "licenses": [license_to_dict(lic) for lic in licenses],
        "storage": await licensing.storage_usage(company.id),
    }}


@router.patch(
    "/companies/{company_id}",
    dependencies=[Depends(require_super_admin)],
)
async def update_company(company_id: uuid.UUID, body: AdminCompanyUpdateIn):
    """Activate or deactivate a company. Deactivation blocks its members on their next request."""
    company = await companies.set_company_active(company_id, body.isActive)
    return {"success": True, "data": {"company": company_to_dict(company)}}


# ==============================================================================
# III. License Management (issue, list, detail, activate, deactivate, delete)
#     Prefix: /api/v1/admin/licenses
#     Note: plain text tokens are only returned once, by the issue call
# ==============================================================================
@router.post(
    "/licenses",
    response_model=IssueLicenseOut,
    status_code=status.HTTP_201_CREATED,
)
async def issue_licenses(
    body: IssueLicenseIn,
    current_admin: User = Depends(require_super_admin),
):
    """
    Issue one or more license tokens (super admin only).

    Each license stores sha256(token) plus a prefix/last4 preview; the
    plain text tokens exist only in this response. The batch is all or
    nothing: if one license fails, none is stored.

    Args:
        body: count, optional companyId (pre-assign), companyName (pre-filled
            signup name), maxUsers, maxStorageBytes, expireDays, notes

    Returns:
        IssueLicenseOut: the issued licenses with their plain text tokens
    """
    expires_at = utc_now() + dt.timedelta(days=body.expireDays)
    issued = await licensing.issue_licenses(
        current_admin,
        body.count,
        company_id=body.companyId,
        max_users=body.maxUsers,
        max_storage_bytes=body.maxStorageBytes,
        expires_at=expires_at,
        company_name=body.companyName,
        notes=body.notes,
    )
    items = [
        IssuedLicenseItem(
            id=str(lic.id),
            token=plain,
            companyId=str(lic.company_id) if lic.company_id else None,
            maxUsers=lic.max_users,
            maxStorageBytes=lic.max_storage_bytes,
            expiresAt=lic.expires_at.isoformat(),
        )
        for lic, plain in issued
    ]
    return {"licenses": items}


@router.get(
    "/licenses",
    response_model=LicenseListOut,
    dependencies=[Depends(require_super_admin)],
)
async def list_licenses(
    is_used: Optional[bool] = Query(default=None),
    is_active: Optional[bool] = Query(default=None),
    company_id: Optional[uuid.UUID] = Query(default=None),
    offset: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=200),
):
    """
    Paginated license list, newest first. Tokens appear as previews
    ("LIC-****-****-GH78") only.
    """
    qs = License.all().order_by("-created_at")
    if is_used is not None:
        qs = qs.filter(is_used=is_used)
    if is_active is not None:
        qs = qs.filter(is_active=is_active)
    if company_id is not None:
        qs = qs.filter(company_id=company_id)

    total = await qs.count()
    rows = await qs.offset(offset).limit(limit)
    now = utc_now()
    items = []
    for r in rows:
        item = license_to_dict(r)
        item["isExpired"] = licensing.is_expired(r, now)
        items.append(item)
    return {"items": items, "offset": offset, "limit": limit, "total": total}


@router.get(
    "/licenses/{license_id}",
    dependencies=[Depends(require_super_admin)],
)
async def get_license_detail(license_id: uuid.UUID):
    r = await License.get_or_none(id=license_id)
    if not r:
        raise NotFound("License not found", code="LICENSE_NOT_FOUND")
    data = license_to_dict(r)
    data["isExpired"] = licensing.is_expired(r)
    return {"success": True, "data": data}


@router.post(
    "/licenses/{license_id}/activate",
    dependencies=[Depends(require_super_admin)],
)
async def activate_license(license_id: uuid.UUID):
    """
    Make an assigned license the company's active one. The company's
    previously active license is deactivated in the same transaction.
    """
    lic = await licensing.activate_license(license_id)
    return {"success": True, "data": license_to_dict(lic)}


@router.post(
    "/licenses/{license_id}/deactivate",
    dependencies=[Depends(require_super_admin)],
)
async def deactivate_license(license_id: uuid.UUID):
    lic = await licensing.deactivate_license(license_id)
    return {"success": True, "data": license_to_dict(lic)}


@router.delete(
    "/licenses/{license_id}",
    dependencies=[Depends(require_super_admin)],
)
async def delete_license(license_id: uuid.UUID):
    """Delete an unused license. Used licenses are history and can only be deactivated."""
    await licensing.delete_license(license_id)
    return {"success": True, "data": {"ok": True}}


# ==============================================================================
# IV. Video Management (across companies)
#     Prefix: /api/v1/admin/videos
# ==============================================================================
@router.get(
    "/videos",
    dependencies=[Depends(require_super_admin)],
)
async def list_videos(
    company_id: Optional[uuid.UUID] = Query(default=None),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    """Active videos of every company, newest first, with company and uploader."""
    rows, total = await videos.list_all_videos(company_id, offset, limit)
    items = []
    for v in rows:
        item = video_to_dict(v)
        item["company"] = {"id": str(v.company.id), "name": v.company.name, "slug": v.company.slug}
        item["uploader"] = {"id": str(v.uploaded_by.id), "email": v.uploaded_by.email, "name": v.uploaded_by.name}
        items.append(item)
    return {"items": items, "offset": offset, "limit": limit, "total": total}


@router.delete(
    "/videos/{video_id}",
    dependencies=[Depends(require_super_admin)],
)
async def delete_video(video_id: uuid.UUID):
    """Delete a video of any company. Its bytes stop counting against that company's quota."""
    video = await videos.get_video(video_id)
    file_removed = await videos.delete_video(video)
    return {"success": True, "data": {"ok": True, "fileRemoved": file_removed}}


# ==============================================================================
# V. Device Registry
#     Prefix: /api/v1/admin/devices
# ==============================================================================
@router.get(
    "/devices",
    dependencies=[Depends(require_super_admin)],
)
async def list_devices(
    is_active: Optional[bool] = Query(default=None),
    q: Optional[str] = Query(default=None, description="Fuzzy search by uid/name"),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    rows, total = await devices.list_devices(is_active, q, offset, limit)
    return {"items": [device_to_dict(d) for d in rows], "offset": offset, "limit": limit, "total": total}


@router.patch(
    "/devices/{device_id}",
    dependencies=[Depends(require_super_admin)],
)
async def rename_device(device_id: uuid.UUID, body: RenameDeviceIn):
    device = await devices.rename(device_id, body.name)
    return {"success": True, "data": device_to_dict(device)}


@router.post(
    "/devices/{device_id}/deactivate",
    dependencies=[Depends(require_super_admin)],
)
async def deactivate_device(device_id: uuid.UUID):
    device = await devices.deactivate(device_id)
    return {"success": True, "data": device_to_dict(device)}
