"""
Multi-tenant session authority.

A session moves through three states, all held server-side in the
``sessions`` table:

    Anonymous -> Authenticated(user) -> CompanySelected(user, company, role)

The cookie only references the row (see core.security). Every scoped request
re-derives user, company and role from the database, so client-side cached
data (names, roles) is never trusted for authorization.

Super admin policy: super admins list every active company and may select
any of them. Where they hold no membership the role is ``superadmin``, which
satisfies every role requirement.
"""
import datetime as dt
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

import jwt

from app.config import settings
from app.core.clock import utc_now
from app.core.errors import AuthRequired, Forbidden, InvalidCredentials, NoCompanySelected
from app.core.security import (
    DUMMY_PASSWORD_HASH,
    create_session_token,
    decode_session_token,
    verify_password,
)
from app.models import Company, Membership, Session, User

logger = logging.getLogger("uvicorn.error")

SUPERADMIN_ROLE = "superadmin"


@dataclass
class CompanyScope:
    """Result of require_company_scope: who is acting, for which company, as what."""
    session: Session
    user: User
    company: Company
    role: str


async def start_session(
    user: User,
    company: Optional[Company] = None,
    role: Optional[str] = None,
) -> tuple[Session, str]:
    """
    Create a session row and the signed cookie value that references it.
    """
    expires_at = utc_now() + dt.timedelta(minutes=settings.session_expire_minutes)
    session = await Session.create(user=user, company=company, role=role, expires_at=expires_at)
    token = create_session_token(str(session.id), expires_at)
    logger.info("[session] started %s for user %s", session.id, user.id)
    return session, token


async def login(email: str, password: str) -> tuple[Session, str, User]:
    """
    Verify credentials and open an Authenticated session.

    Raises:
        InvalidCredentials: Unknown email or wrong password (indistinguishable)
        Forbidden: Correct password but the account is deactivated
    """
    user = await User.get_or_none(email=(email or "").strip().lower())
    if user is None:
        verify_password(password, DUMMY_PASSWORD_HASH)
        raise InvalidCredentials()
    if not verify_password(password, user.password_hash):
        raise InvalidCredentials()
    if not user.is_active:
        raise Forbidden(
            "Your account has been deactivated. Please contact support.",
            code="ACCOUNT_INACTIVE",
        )

    user.last_login_at = utc_now()
    await user.save(update_fields=["last_login_at"])
    session, token = await start_session(user)
    return session, token, user


async def load_session(token: str) -> Session:
    """
    Resolve a cookie value to a live session with its user loaded.

    Raises:
        AuthRequired: Bad signature, unknown or expired session, inactive user
    """
    try:
        sid = uuid.UUID(decode_session_token(token))
    except (jwt.PyJWTError, ValueError):
        raise AuthRequired("Invalid session", code="AUTH_INVALID_SESSION")

    session = await Session.filter(id=sid).prefetch_related("user").first()
    if session is None:
        raise AuthRequired("Session not found", code="AUTH_INVALID_SESSION")
    if session.expires_at <= utc_now():
        await session.delete()
        raise AuthRequired("Session expired", code="AUTH_SESSION_EXPIRED")
    if not session.user.is_active:
        await session.delete()
        raise AuthRequired("User not found or inactive", code="AUTH_USER_INACTIVE")
    return session


async def list_companies(user: User) -> list[tuple[Company, str]]:
    """
    Companies the user may select, with the role they would act as.
    """
    memberships = await (
        Membership.filter(user_id=user.id, is_active=True, company__is_active=True)
        .prefetch_related("company")
        .order_by("joined_at")
    )
    result = [(m.company, m.role) for m in memberships]
    if user.is_super_admin:
        member_of = [c.id for c, _ in result]
        others = await Company.filter(is_active=True).exclude(id__in=member_of).order_by("name")
        result.extend((c, SUPERADMIN_ROLE) for c in others)
    return result


async def resolve_role(user: User, company_id) -> tuple[Company, str]:
    """
    Raises:
        Forbidden: No active membership in an active company (and not a super admin)
    """
    membership = await (
        Membership.filter(user_id=user.id, company_id=company_id, is_active=True, company__is_active=True)
        .prefetch_related("company")
        .first()
    )
    if membership:
        return membership.company, membership.role
    if user.is_super_admin:
        company = await Company.get_or_none(id=company_id, is_active=True)
        if company:
            return company, SUPERADMIN_ROLE
    raise Forbidden("You do not have access to this company", code="COMPANY_FORBIDDEN")


async def select_company(session: Session, company_id) -> CompanyScope:
    """
    Bind a company and the resolved role into the session. Calling it again
    switches company.
    """
    company, role = await resolve_role(session.user, company_id)
    session.company_id = company.id
    session.role = role
    await session.save(update_fields=["company_id", "role"])
    logger.info("[session] %s selected company %s as %s", session.id, company.id, role)
    return CompanyScope(session=session, user=session.user, company=company, role=role)


async def _clear_company(session: Session) -> None:
    session.company_id = None
    session.role = None
    await session.save(update_fields=["company_id", "role"])


async def require_company_scope(session: Session) -> CompanyScope:
    """
    Gate for every company-scoped operation.

    Raises:
        NoCompanySelected: Session is only authenticated
        Forbidden: Company or membership deactivated since selection; the
            binding is cleared so the client has to select again
    """
    if not session.company_id:
        raise NoCompanySelected()

    user = session.user
    company = await Company.get_or_none(id=session.company_id)
    if company is None or not company.is_active:
        await _clear_company(session)
        raise Forbidden("Company not found or inactive", code="COMPANY_INACTIVE")

    membership = await Membership.filter(user_id=user.id, company_id=company.id, is_active=True).first()
    if membership:
        role = membership.role
    elif user.is_super_admin:
        role = SUPERADMIN_ROLE
    else:
        await _clear_company(session)
        raise Forbidden("Access to this company has been revoked", code="MEMBERSHIP_REVOKED")

    if role != session.role:
        session.role = role
        await session.save(update_fields=["role"])
    return CompanyScope(session=session, user=user, company=company, role=role)


def has_role(scope: CompanyScope, *roles: str) -> bool:
    return scope.role == SUPERADMIN_ROLE or scope.role in roles


async def logout(token: str) -> bool:
    """
    Delete the session a cookie value points to.
    Malformed, expired or unknown values are fine; returns whether a row went away.
    """
    try:
        sid = uuid.UUID(decode_session_token(token))
    except (jwt.PyJWTError, ValueError):
        return False
    return bool(await Session.filter(id=sid).delete())


async def end_other_sessions(user: User, keep_session_id) -> int:
    """Log the user out everywhere except the given session (after a password change)."""
    return await Session.filter(user_id=user.id).exclude(id=keep_session_id).delete()


async def purge_expired_sessions() -> int:
    expired = await Session.filter(expires_at__lt=utc_now()).delete()
    if expired:
        logger.info("[session] purged %s expired sessions", expired)
    return expired
