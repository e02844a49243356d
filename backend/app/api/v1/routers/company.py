# app/api/v1/routers/company.py
"""
Routes for the currently selected company: profile, members and license.
Every route resolves the company from the session, never from the request.
"""
import uuid

from fastapi import APIRouter, Depends, status

from app.api.v1.deps import get_company_scope, require_role
from app.api.v1.serializers import company_to_dict, license_to_dict, user_to_dict
from app.core.errors import BadRequest, NotFound
from app.models.membership import Membership
from app.models.user import User
from app.schemas.company import (
    AddMemberIn,
    ApplyLicenseIn,
    CompanyUpdateIn,
    CreateMemberIn,
    UpdatePermissionsIn,
    UpdateRoleIn,
)
from app.services import companies, licensing
from app.services.sessions import CompanyScope

router = APIRouter(prefix="/company", tags=["company"])

MANAGE_ROLES = ("owner", "admin")


def _member_to_dict(m: Membership) -> dict:
    return {
        "user": user_to_dict(m.user),
        "role": m.role,
        "permissions": m.permissions or {},
        "isActive": m.is_active,
        "joinedAt": m.joined_at.isoformat() if m.joined_at else None,
    }


@router.get("/info")
async def company_info(scope: CompanyScope = Depends(get_company_scope)):
    """
    Get the selected company with the caller's role and license usage.

    Returns:
        dict: Response containing:
            - success: bool (always True)
            - data: dict with company, role, license (active license or None),
              activeUsers and storage (see /videos/storage)
    """
    company_id = scope.company.id
    lic = await licensing.get_active_license(company_id)
    return {"success": True, "data": {
        "company": company_to_dict(scope.company),
        "role": scope.role,
        "license": license_to_dict(lic) if lic else None,
        "activeUsers": await licensing.count_active_members(company_id),
        "storage": await licensing.storage_usage(company_id),
    }}


@router.patch("/info")
async def update_company_info(body: CompanyUpdateIn, scope: CompanyScope = Depends(require_role(*MANAGE_ROLES))):
    company = await companies.update_company(scope.company, body.name, body.description)
    return {"success": True, "data": {"company": company_to_dict(company)}}


@router.get("/members")
async def list_members(scope: CompanyScope = Depends(get_company_scope)):
    rows = await companies.list_members(scope.company.id)
    return {"success": True, "data": {"items": [_member_to_dict(m) for m in rows]}}


@router.post("/members", status_code=status.HTTP_201_CREATED)
async def add_member(body: AddMemberIn, scope: CompanyScope = Depends(require_role(*MANAGE_ROLES))):
    """
    Add an existing user to the company.

    Takes a seat under the active license's maxUsers; the count and the
    insert happen under the company lock.

    Error codes:
        - USER_NOT_FOUND (404)
        - ALREADY_MEMBER (409)
        - USER_QUOTA_EXCEEDED / NO_ACTIVE_LICENSE (403)
    """
    companies.check_role_grant(scope.role, body.role)
    user = await User.get_or_none(email=body.email.strip().lower())
    if not user:
        raise NotFound("No user with this email", code="USER_NOT_FOUND")
    membership = await licensing.add_member(scope.company.id, user, body.role)
    membership.user = user
    return {"success": True, "data": _member_to_dict(membership)}


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(body: CreateMemberIn, scope: CompanyScope = Depends(require_role(*MANAGE_ROLES))):
    """
    Create a new account directly inside the company (same seat check as /members).

    Error codes:
        - EMAIL_EXISTS (409)
        - USER_QUOTA_EXCEEDED / NO_ACTIVE_LICENSE (403)
    """
    companies.check_role_grant(scope.role, body.role)
    user, membership = await licensing.create_member(
        scope.company.id,
        email=body.email,
        name=body.name,
        password=body.password,
        role=body.role,
    )
    membership.user = user
    return {"success": True, "data": _member_to_dict(membership)}


@router.patch("/members/{user_id}/role")
async def update_member_role(
    user_id: uuid.UUID,
    body: UpdateRoleIn,
    scope: CompanyScope = Depends(require_role(*MANAGE_ROLES)),
):
    membership = await companies.change_role(scope.company.id, user_id, body.role, scope.role)
    return {"success": True, "data": _member_to_dict(membership)}


@router.patch("/members/{user_id}/permissions")
async def update_member_permissions(
    user_id: uuid.UUID,
    body: UpdatePermissionsIn,
    scope: CompanyScope = Depends(require_role(*MANAGE_ROLES)),
):
    """
    Replace a member's extra permissions. The role still decides access;
    permissions are stored for the client to refine its UI.

    Error codes:
        - MEMBER_NOT_FOUND (404)
        - ROLE_FORBIDDEN (403): only owners edit another owner
    """
    membership = await companies.update_permissions(scope.company.id, user_id, body.permissions, scope.role)
    return {"success": True, "data": _member_to_dict(membership)}


@router.delete("/members/{user_id}")
async def remove_member(user_id: uuid.UUID, scope: CompanyScope = Depends(require_role(*MANAGE_ROLES))):
    """
    Remove a member (the membership is deactivated, the account stays).

    Error codes:
        - MEMBER_NOT_FOUND (404)
        - CANNOT_REMOVE_SELF (400)
        - LAST_OWNER (403): the company must keep at least one owner
    """
    if user_id == scope.user.id:
        raise BadRequest("You cannot remove yourself from the company", code="CANNOT_REMOVE_SELF")
    await companies.remove_member(scope.company.id, user_id, scope.role)
    return {"success": True, "data": {"ok": True}}


@router.get("/license")
async def company_license(scope: CompanyScope = Depends(require_role(*MANAGE_ROLES))):
    """Active license plus every license the company ever had (token previews only)."""
    active = await licensing.get_active_license(scope.company.id)
    history = await companies.company_licenses(scope.company.id)
    return {"success": True, "data": {
        "active": license_to_dict(active) if active else None,
        "items": [license_to_dict(lic) for lic in history],
    }}


@router.post("/license")
async def apply_license(body: ApplyLicenseIn, scope: CompanyScope = Depends(require_role("owner"))):
    """
    Apply a new license token to the company (renewal or upgrade).

    The new license becomes the active one and the previous one is
    deactivated in the same transaction.

    Error codes:
        - LICENSE_NOT_FOUND (404), LICENSE_ALREADY_USED (409), LICENSE_EXPIRED (410)
        - LICENSE_ASSIGNED (403): token pre-assigned to another company
    """
    lic = await licensing.apply_token(scope.company.id, body.token)
    return {"success": True, "data": {"license": license_to_dict(lic)}}
