"""
Company profile and member management.

Adding members goes through services.licensing (seat quota). Role changes
and removals happen here, under the company lock, so two owners demoting
each other at the same time cannot leave the company without an owner.
"""
import logging
from typing import Optional

from tortoise.expressions import Q
from tortoise.transactions import in_transaction

from app.core.errors import BadRequest, Forbidden, NotFound
from app.models import Company, License, Membership, User
from app.models.membership import ROLES
from app.services import licensing

logger = logging.getLogger("uvicorn.error")


async def get_company(company_id) -> Company:
    company = await Company.get_or_none(id=company_id)
    if not company:
        raise NotFound("Company not found", code="COMPANY_NOT_FOUND")
    return company


async def update_company(company: Company, name: Optional[str] = None, description: Optional[str] = None) -> Company:
    fields = []
    if name is not None and name.strip() and name.strip() != company.name:
        company.name = name.strip()
        fields.append("name")
    if description is not None and description != company.description:
        company.description = description or None
        fields.append("description")
    if fields:
        await company.save(update_fields=fields)
    return company


async def list_members(company_id, include_inactive: bool = False) -> list[Membership]:
    qs = Membership.filter(company_id=company_id)
    if not include_inactive:
        qs = qs.filter(is_active=True)
    return await qs.prefetch_related("user").order_by("joined_at")


async def _get_membership(connection, company_id, user_id) -> Membership:
    membership = await (
        Membership.filter(company_id=company_id, user_id=user_id, is_active=True)
        .using_db(connection)
        .prefetch_related("user")
        .first()
    )
    if not membership:
        raise NotFound("Member not found", code="MEMBER_NOT_FOUND")
    return membership


async def _other_owners(connection, company_id, user_id) -> int:
    return await (
        Membership.filter(company_id=company_id, role="owner", is_active=True)
        .exclude(user_id=user_id)
        .using_db(connection)
        .count()
    )


def check_role_grant(actor_role: str, target_role: str) -> None:
    """
    Only owners (and super admins) may hand out or take away the owner role.

    Raises:
        BadRequest: Unknown role
        Forbidden: Non-owner touching the owner role
    """
    if target_role not in ROLES:
        raise BadRequest(f"Invalid role. Must be one of: {', '.join(ROLES)}", code="INVALID_ROLE")
    if target_role == "owner" and actor_role not in ("owner", "superadmin"):
        raise Forbidden("Only owners can grant the owner role", code="ROLE_FORBIDDEN")


async def change_role(company_id, user_id, role: str, actor_role: str) -> Membership:
    """
    Raises:
        NotFound: No active membership for user_id
        Forbidden: Non-owner touching an owner, or demoting the last owner
    """
    check_role_grant(actor_role, role)
    async with in_transaction() as conn:
        await licensing.lock_company(conn, company_id)
        membership = await _get_membership(conn, company_id, user_id)
        if membership.role == "owner" and role != "owner":
            if actor_role not in ("owner", "superadmin"):
                raise Forbidden("Only owners can change another owner's role", code="ROLE_FORBIDDEN")
            if not await _other_owners(conn, company_id, user_id):
                raise Forbidden("Cannot remove the last owner of the company", code="LAST_OWNER")
        membership.role = role
        await membership.save(using_db=conn, update_fields=["role"])

    logger.info("[company] %s role in %s set to %s", user_id, company_id, role)
    return membership


async def update_permissions(company_id, user_id, permissions: dict, actor_role: str) -> Membership:
    """
    Replace a member's permissions object.

    Raises:
        NotFound: No active membership for user_id
        Forbidden: Non-owner editing an owner
    """
    async with in_transaction() as conn:
        membership = await _get_membership(conn, company_id, user_id)
        if membership.role == "owner" and actor_role not in ("owner", "superadmin"):
            raise Forbidden("Only owners can change another owner's permissions", code="ROLE_FORBIDDEN")
        membership.permissions = permissions
        await membership.save(using_db=conn, update_fields=["permissions"])

    logger.info("[company] %s permissions in %s updated", user_id, company_id)
    return membership


async def remove_member(company_id, user_id, actor_role: str) -> None:
    """
    Deactivate a membership. The seat is free again immediately; active
    sessions of that user lose access on their next company-scoped request.

    Raises:
        NotFound: No active membership for user_id
        Forbidden: Removing an owner without being one, or the last owner
    """
    async with in_transaction() as conn:
        await licensing.lock_company(conn, company_id)
        membership = await _get_membership(conn, company_id, user_id)
        if membership.role == "owner":
            if actor_role not in ("owner", "superadmin"):
                raise Forbidden("Only owners can remove an owner", code="ROLE_FORBIDDEN")
            if not await _other_owners(conn, company_id, user_id):
                raise Forbidden("Cannot remove the last owner of the company", code="LAST_OWNER")
        membership.is_active = False
        await membership.save(using_db=conn, update_fields=["is_active"])

    logger.info("[company] %s removed from %s", user_id, company_id)


async def company_licenses(company_id) -> list[License]:
    return await License.filter(company_id=company_id).order_by("-created_at")


# ==============================================================================
# Super-admin company management
# ==============================================================================
async def list_companies(
    q: Optional[str] = None,
    is_active: Optional[bool] = None,
    offset: int = 0,
    limit: int = 20,
) -> tuple[list[Company], int]:
    qs = Company.all().order_by("-created_at")
    if q:
        qs = qs.filter(Q(name__icontains=q) | Q(slug__icontains=q))
    if is_active is not None:
        qs = qs.filter(is_active=is_active)
    total = await qs.count()
    rows = await qs.offset(offset).limit(limit)
    return rows, total


async def set_company_active(company_id, is_active: bool) -> Company:
    """
    Deactivating a company blocks every company-scoped request for it right
    away; its data, licenses and memberships are kept.
    """
    company = await get_company(company_id)
    company.is_active = is_active
    await company.save(update_fields=["is_active"])
    logger.info("[company] %s %s", company.id, "activated" if is_active else "deactivated")
    return company


async def user_companies(user: User) -> list[Membership]:
    return await Membership.filter(user_id=user.id).prefetch_related("company").order_by("joined_at")
