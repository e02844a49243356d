from fastapi import Depends, Request
from app.config import settings
from app.core.errors import AuthRequired, Forbidden
from app.models.session import Session
from app.models.user import User
from app.services import sessions
from app.services.sessions import CompanyScope

async def get_current_session(request: Request) -> Session:
    """
    FastAPI dependency resolving the session cookie to a live server-side session.

    Only the HttpOnly cookie is accepted; the session reference is never
    handed to client-side script, so there is no Authorization header path.

    Raises:
        AuthRequired (401): No cookie, bad signature, expired or unknown session,
            inactive user
    """
    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        raise AuthRequired()
    return await sessions.load_session(token)

async def get_current_user(session: Session = Depends(get_current_session)) -> User:
    """
    FastAPI dependency to get the current authenticated user.

    Usage:
        @router.get("/protected")
        async def protected_route(user: User = Depends(get_current_user)):
            return {"user_id": str(user.id)}
    """
    return session.user

async def get_company_scope(session: Session = Depends(get_current_session)) -> CompanyScope:
    """
    FastAPI dependency for company-scoped routes.

    Raises:
        AuthRequired (401): Not logged in
        NoCompanySelected (409): Logged in but no company selected yet
        Forbidden (403): Membership or company deactivated since selection
    """
    return await sessions.require_company_scope(session)

def require_role(*roles: str):
    """
    Build a dependency that only lets the given company roles through.
    Super admins acting with the ``superadmin`` role always pass.

    Usage:
        @router.post("/members", dependencies=[Depends(require_role("owner", "admin"))])
    """
    async def _dependency(scope: CompanyScope = Depends(get_company_scope)) -> CompanyScope:
        if not sessions.has_role(scope, *roles):
            raise Forbidden(
                f"Access denied. Required roles: {', '.join(roles)}",
                code="ROLE_FORBIDDEN",
            )
        return scope

    return _dependency

async def require_super_admin(current: User = Depends(get_current_user)) -> User:
    """
    FastAPI dependency to ensure the current user is a super admin.

    Raises:
        Forbidden (403): If user is not a super admin (FORBIDDEN_SUPER_ADMIN_ONLY)
        AuthRequired (401): If user is not authenticated
    """
    if not current.is_super_admin:
        raise Forbidden("Super admin access required", code="FORBIDDEN_SUPER_ADMIN_ONLY")
    return current
