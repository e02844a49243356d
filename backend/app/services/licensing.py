"""
License / quota authority.

A company's quotas come from its single active license: ``is_active=True``
and not expired. A company without one fails every quota check closed.

Everything that checks a limit and then writes (token redemption, adding a
member, storing a video) runs inside one ``in_transaction()`` block with the
company row locked via ``select_for_update()``, so concurrent requests for
the same company are serialized by the database. Single-use of a token is
enforced with a conditional ``UPDATE ... WHERE is_used = false``: only one
caller can ever see a non-zero row count.
"""
import datetime as dt
import logging
import re
from typing import Optional

from tortoise.backends.base.client import BaseDBAsyncClient
from tortoise.exceptions import IntegrityError
from tortoise.functions import Sum
from tortoise.transactions import in_transaction

from app.config import settings
from app.core.clock import utc_now
from app.core.errors import (
    AlreadyUsed,
    BadRequest,
    Conflict,
    Expired,
    Forbidden,
    NotFound,
    QuotaExceeded,
    StorageQuotaExceeded,
)
from app.core.security import (
    generate_license_token,
    hash_password,
    normalize_license_token,
    sha256_hex,
)
from app.models import Company, License, Membership, User, Video

logger = logging.getLogger("uvicorn.error")


def is_expired(lic: License, now: Optional[dt.datetime] = None) -> bool:
    return lic.expires_at < (now or utc_now())


def _slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "company"


async def _unique_slug(name: str, connection: BaseDBAsyncClient) -> str:
    base = _slugify(name)
    slug = base
    counter = 1
    while await Company.filter(slug=slug).using_db(connection).exists():
        slug = f"{base}-{counter}"
        counter += 1
    return slug


async def lock_company(connection: BaseDBAsyncClient, company_id) -> Company:
    """
    Lock the company row for the rest of the transaction.
    The company row is the mutex for its memberships, licenses and storage.
    """
    company = await Company.filter(id=company_id).using_db(connection).select_for_update().first()
    if not company:
        raise NotFound("Company not found", code="COMPANY_NOT_FOUND")
    return company


# ==============================================================================
# Token lookup / redemption
# ==============================================================================
async def _find_license_by_token(
    token: str,
    connection: Optional[BaseDBAsyncClient] = None,
    for_update: bool = False,
) -> Optional[License]:
    plain = normalize_license_token(token)
    if not plain:
        raise BadRequest("License token required", code="LICENSE_TOKEN_REQUIRED")
    qs = License.filter(token_hash=sha256_hex(plain)).using_db(connection)
    if for_update:
        qs = qs.select_for_update()
    return await qs.first()


def _ensure_redeemable(lic: Optional[License]) -> License:
    if lic is None:
        raise NotFound("License token not found", code="LICENSE_NOT_FOUND")
    if lic.is_used:
        raise AlreadyUsed()
    if is_expired(lic):
        raise Expired()
    return lic


async def _claim(connection: BaseDBAsyncClient, lic: License, now: dt.datetime) -> None:
    claimed = await License.filter(id=lic.id, is_used=False).using_db(connection).update(
        is_used=True, used_at=now
    )
    if not claimed:
        raise AlreadyUsed()


async def _activate_within(connection: BaseDBAsyncClient, license_id, company_id) -> None:
    # Caller holds the company lock
    await (
        License.filter(company_id=company_id, is_active=True)
        .exclude(id=license_id)
        .using_db(connection)
        .update(is_active=False)
    )
    await License.filter(id=license_id).using_db(connection).update(
        company_id=company_id, is_active=True
    )


async def check_license_token(token: str) -> License:
    """
    Validate a token without consuming it (signup page preview).

    Raises:
        NotFound / AlreadyUsed / Expired
    """
    return _ensure_redeemable(await _find_license_by_token(token))


async def redeem_token(
    token: str,
    *,
    email: str,
    password: str,
    name: str,
    company_name: Optional[str] = None,
    company_description: Optional[str] = None,
) -> tuple[User, Company, Membership]:
    """
    Register a new owner and company by consuming a license token.

    The token claim, the user, the company, the owner membership and the
    license activation commit together or not at all.

    Raises:
        NotFound: Unknown token
        AlreadyUsed: Token consumed already (including by a concurrent call)
        Expired: Token past its expires_at
        Forbidden: Token pre-assigned to an existing company
        Conflict: Email already registered
        BadRequest: No company name given and none pre-filled on the license
    """
    email = email.strip().lower()
    password_hash = hash_password(password)
    now = utc_now()

    try:
        async with in_transaction() as conn:
            lic = _ensure_redeemable(await _find_license_by_token(token, conn, for_update=True))
            if lic.company_id:
                raise Forbidden(
                    "This license is assigned to an existing company",
                    code="LICENSE_ASSIGNED",
                )
            final_name = (company_name or "").strip() or (lic.company_name or "").strip()
            if not final_name:
                raise BadRequest("Company name is required", code="COMPANY_NAME_REQUIRED")
            if await User.filter(email=email).using_db(conn).exists():
                raise Conflict("User with this email already exists", code="EMAIL_EXISTS")

            await _claim(conn, lic, now)

            user = await User.create(
                email=email,
                password_hash=password_hash,
                name=name.strip(),
                using_db=conn,
            )
            company = await Company.create(
                name=final_name,
                slug=await _unique_slug(final_name, conn),
                description=company_description or None,
                using_db=conn,
            )
            membership = await Membership.create(
                user=user, company=company, role="owner", using_db=conn
            )
            await _activate_within(conn, lic.id, company.id)
    except IntegrityError as e:
        raise Conflict("User or company already exists", code="CONFLICT") from e

    logger.info("[license] %s redeemed for company %s (%s)", lic.id, company.name, company.id)
    return user, company, membership


async def apply_token(company_id, token: str) -> License:
    """
    Consume a token for an existing company (renewal / upgrade).
    The new license becomes the active one; the previous one is deactivated.

    Raises:
        NotFound / AlreadyUsed / Expired
        Forbidden: Token pre-assigned to a different company
    """
    now = utc_now()
    async with in_transaction() as conn:
        await lock_company(conn, company_id)
        lic = _ensure_redeemable(await _find_license_by_token(token, conn, for_update=True))
        if lic.company_id and str(lic.company_id) != str(company_id):
            raise Forbidden(
                "This license is assigned to another company",
                code="LICENSE_ASSIGNED",
            )
        await _claim(conn, lic, now)
        await _activate_within(conn, lic.id, company_id)
        lic = await License.get(id=lic.id, using_db=conn)

    logger.info("[license] %s applied to company %s", lic.id, company_id)
    return lic


# ==============================================================================
# Active license / quotas
# ==============================================================================
async def get_active_license(
    company_id,
    connection: Optional[BaseDBAsyncClient] = None,
) -> Optional[License]:
    """
    Return the company's active, unexpired license, or None.
    An expired license is inert even while is_active is still set.
    """
    lic = await License.filter(company_id=company_id, is_active=True).using_db(connection).first()
    if lic is None or is_expired(lic):
        return None
    return lic


async def count_active_members(company_id, connection: Optional[BaseDBAsyncClient] = None) -> int:
    return await Membership.filter(
        company_id=company_id, is_active=True, user__is_active=True
    ).using_db(connection).count()


async def storage_used(company_id, connection: Optional[BaseDBAsyncClient] = None) -> int:
    row = await (
        Video.filter(company_id=company_id, is_active=True)
        .using_db(connection)
        .annotate(total=Sum("file_size"))
        .first()
        .values("total")
    )
    return int((row or {}).get("total") or 0)


async def check_user_quota(company_id, connection: Optional[BaseDBAsyncClient] = None) -> bool:
    """True iff one more active member fits under the active license's max_users."""
    lic = await get_active_license(company_id, connection)
    if lic is None:
        return False
    return await count_active_members(company_id, connection) < lic.max_users


async def check_storage_quota(
    company_id,
    incoming_bytes: int,
    connection: Optional[BaseDBAsyncClient] = None,
) -> bool:
    """True iff used bytes + incoming_bytes stays within the active license's max_storage_bytes."""
    lic = await get_active_license(company_id, connection)
    if lic is None:
        return False
    return await storage_used(company_id, connection) + incoming_bytes <= lic.max_storage_bytes


async def _require_active_license(connection: Optional[BaseDBAsyncClient], company_id) -> License:
    lic = await get_active_license(company_id, connection)
    if lic is None:
        raise QuotaExceeded(
            "No active license for this company. Please contact your administrator.",
            code="NO_ACTIVE_LICENSE",
        )
    return lic


async def claim_seat(connection: BaseDBAsyncClient, company_id) -> None:
    """
    Raise QuotaExceeded unless one more member fits. Caller holds the company
    lock and inserts the membership in the same transaction.
    """
    lic = await _require_active_license(connection, company_id)
    used = await count_active_members(company_id, connection)
    if used >= lic.max_users:
        logger.warning("[license] user quota reached for company %s (%s/%s)", company_id, used, lic.max_users)
        raise QuotaExceeded(
            f"User limit reached ({used}/{lic.max_users}). Upgrade the license to add more users.",
            code="USER_QUOTA_EXCEEDED",
            maxUsers=lic.max_users,
            activeUsers=used,
        )


async def reserve_storage(connection: Optional[BaseDBAsyncClient], company_id, incoming_bytes: int) -> None:
    """
    Raise StorageQuotaExceeded unless incoming_bytes fits. Caller holds the
    company lock and inserts the video in the same transaction.
    """
    lic = await _require_active_license(connection, company_id)
    used = await storage_used(company_id, connection)
    if used + incoming_bytes > lic.max_storage_bytes:
        logger.warning(
            "[license] storage quota reached for company %s (%s + %s > %s)",
            company_id, used, incoming_bytes, lic.max_storage_bytes,
        )
        raise StorageQuotaExceeded(
            currentUsage=used,
            fileSize=incoming_bytes,
            limit=lic.max_storage_bytes,
            availableSpace=max(lic.max_storage_bytes - used, 0),
        )


async def storage_usage(company_id) -> dict:
    lic = await get_active_license(company_id)
    used = await storage_used(company_id)
    count = await Video.filter(company_id=company_id, is_active=True).count()
    limit = lic.max_storage_bytes if lic else 0
    return {
        "currentUsage": used,
        "limit": limit,
        "availableSpace": max(limit - used, 0),
        "usagePercentage": round(used / limit * 100, 2) if limit else 100.0,
        "videoCount": count,
        "hasActiveLicense": lic is not None,
    }


# ==============================================================================
# Memberships under quota
# ==============================================================================
async def add_member(company_id, user: User, role: str = "member") -> Membership:
    """
    Add an existing user to a company, re-activating an old membership if any.

    Raises:
        Conflict: Already an active member
        QuotaExceeded: No seat left, or no active license
    """
    async with in_transaction() as conn:
        await lock_company(conn, company_id)
        existing = await Membership.filter(user_id=user.id, company_id=company_id).using_db(conn).first()
        if existing and existing.is_active:
            raise Conflict("User is already a member of this company", code="ALREADY_MEMBER")
        await claim_seat(conn, company_id)
        if existing:
            existing.is_active = True
            existing.role = role
            existing.joined_at = utc_now()
            await existing.save(using_db=conn, update_fields=["is_active", "role", "joined_at"])
            return existing
        return await Membership.create(user=user, company_id=company_id, role=role, using_db=conn)


async def create_member(
    company_id,
    *,
    email: str,
    name: str,
    password: str,
    role: str = "member",
) -> tuple[User, Membership]:
    """
    Create a brand-new user directly inside a company.

    Raises:
        Conflict: Email already registered
        QuotaExceeded: No seat left, or no active license
    """
    email = email.strip().lower()
    password_hash = hash_password(password)
    try:
        async with in_transaction() as conn:
            await lock_company(conn, company_id)
            if await User.filter(email=email).using_db(conn).exists():
                raise Conflict("User with this email already exists", code="EMAIL_EXISTS")
            await claim_seat(conn, company_id)
            user = await User.create(email=email, name=name.strip(), password_hash=password_hash, using_db=conn)
            membership = await Membership.create(user=user, company_id=company_id, role=role, using_db=conn)
    except IntegrityError as e:
        raise Conflict("User with this email already exists", code="EMAIL_EXISTS") from e
    return user, membership


# ==============================================================================
# Super-admin license management
# ==============================================================================
async def issue_license(
    created_by: User,
    *,
    company_id=None,
    max_users: int = 1,
    max_storage_bytes: Optional[int] = None,
    expires_at: Optional[dt.datetime] = None,
    company_name: Optional[str] = None,
    notes: Optional[str] = None,
    connection: Optional[BaseDBAsyncClient] = None,
) -> tuple[License, str]:
    """
    Create an unused license with a fresh random token.

    Returns:
        (license, plaintext token). The plaintext is not stored anywhere and
        cannot be recovered later.

    Raises:
        Forbidden: created_by is not a super admin
        NotFound: company_id given but unknown
        Conflict: Could not find a free token after several attempts
    """
    if not created_by.is_super_admin:
        raise Forbidden("Super admin access required", code="FORBIDDEN_SUPER_ADMIN_ONLY")
    if company_id is not None and not await Company.filter(id=company_id).using_db(connection).exists():
        raise NotFound("Company not found", code="COMPANY_NOT_FOUND")

    expires_at = expires_at or utc_now() + dt.timedelta(days=settings.default_license_days)
    prefix = settings.license_token_prefix

    for _ in range(10):  # Try at most 10 times to avoid extreme duplicates
        plain = generate_license_token(prefix)
        token_hash = sha256_hex(plain)
        if await License.filter(token_hash=token_hash).using_db(connection).exists():
            continue
        parts = plain.split("-")
        try:
            lic = await License.create(
                token_hash=token_hash,
                token_prefix=parts[0],
                token_last4=parts[-1],
                company_id=company_id,
                company_name=company_name,
                expires_at=expires_at,
                max_users=max_users,
                max_storage_bytes=max_storage_bytes or settings.default_max_storage_bytes,
                created_by=created_by,
                notes=notes,
                using_db=connection,
            )
        except IntegrityError as e:
            raise Conflict("Could not generate a unique license token", code="KEY_GENERATION_COLLISION") from e
        logger.info("[license] %s issued by %s (company=%s)", lic.id, created_by.email, company_id)
        return lic, plain
    raise Conflict("Could not generate a unique license token", code="KEY_GENERATION_COLLISION")


async def issue_licenses(created_by: User, count: int, **fields) -> list[tuple[License, str]]:
    """
    Issue a batch of licenses in one transaction: either every license of
    the batch is stored (and its token returned) or none is.
    """
    async with in_transaction() as conn:
        return [
            await issue_license(created_by, connection=conn, **fields)
            for _ in range(count)
        ]


async def activate_license(license_id) -> License:
    """
    Make an assigned license its company's active license, deactivating the
    previous one in the same transaction. Activation consumes the token.

    Raises:
        NotFound / Expired
        BadRequest: License not assigned to a company
    """
    now = utc_now()
    async with in_transaction() as conn:
        lic = await License.filter(id=license_id).using_db(conn).first()
        if not lic:
            raise NotFound("License not found", code="LICENSE_NOT_FOUND")
        if not lic.company_id:
            raise BadRequest("License is not assigned to a company", code="LICENSE_UNASSIGNED")
        if is_expired(lic, now):
            raise Expired()
        await lock_company(conn, lic.company_id)
        if not lic.is_used:
            await License.filter(id=lic.id, is_used=False).using_db(conn).update(is_used=True, used_at=now)
        await _activate_within(conn, lic.id, lic.company_id)
        lic = await License.get(id=lic.id, using_db=conn)

    logger.info("[license] %s activated for company %s", lic.id, lic.company_id)
    return lic


async def deactivate_license(license_id) -> License:
    lic = await License.get_or_none(id=license_id)
    if not lic:
        raise NotFound("License not found", code="LICENSE_NOT_FOUND")
    lic.is_active = False
    await lic.save(update_fields=["is_active"])
    logger.info("[license] %s deactivated", lic.id)
    return lic


async def delete_license(license_id) -> None:
    lic = await License.get_or_none(id=license_id)
    if not lic:
        raise NotFound("License not found", code="LICENSE_NOT_FOUND")
    if lic.is_used:
        raise Conflict("A used license cannot be deleted; deactivate it instead", code="LICENSE_IN_USE")
    await lic.delete()
