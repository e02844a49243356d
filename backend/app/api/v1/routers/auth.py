# app/api/v1/routers/auth.py
from fastapi import APIRouter, Depends, Request, Response, status
from app.api.v1.deps import get_current_session, get_current_user
from app.api.v1.serializers import company_to_dict, user_to_dict
from app.config import settings
from app.core.errors import BadRequest
from app.core.security import hash_password, verify_password
from app.models.session import Session
from app.models.user import User
from app.schemas.auth import ChangePasswordIn, LicenseSignupIn, LoginRequest, SelectCompanyIn
from app.services import licensing, sessions

router = APIRouter(prefix="/auth", tags=["auth"])


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.session_expire_minutes * 60,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )


@router.get("/license/{token}")
async def preview_license(token: str):
    """
    Check a license token before signing up with it.

    Does not consume the token. Only returns what the signup form needs;
    the token itself is never echoed back.

    Returns:
        dict: Response containing:
            - success: bool (always True)
            - data: dict with companyName (pre-filled, may be None), maxUsers,
              maxStorageBytes, expiresAt, assigned (pre-assigned to an existing company)

    Error codes:
        - LICENSE_NOT_FOUND (404), LICENSE_ALREADY_USED (409), LICENSE_EXPIRED (410)
    """
    lic = await licensing.check_license_token(token)
    return {"success": True, "data": {
        "valid": True,
        "companyName": lic.company_name,
        "maxUsers": lic.max_users,
        "maxStorageBytes": lic.max_storage_bytes,
        "expiresAt": lic.expires_at.isoformat(),
        "assigned": lic.company_id is not None,
    }}


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(body: LicenseSignupIn, response: Response):
    """
    Register a new company owner with a license token.

    Consumes the token, creates the user, the company and the owner
    membership in one transaction, then logs the new owner in with the
    company already selected. The session is only ever set as an HttpOnly
    cookie; no token appears in the response body.

    Args:
        body: Request body containing token, name, email, password and an
            optional companyName / companyDescription
        response: FastAPI Response object (for setting cookies)

    Returns:
        dict: success plus user, company and role ("owner")

    Error codes:
        - LICENSE_NOT_FOUND, LICENSE_ALREADY_USED, LICENSE_EXPIRED
        - LICENSE_ASSIGNED: token belongs to an existing company (apply it from there)
        - EMAIL_EXISTS: Email already registered
        - COMPANY_NAME_REQUIRED
    """
    user, company, membership = await licensing.redeem_token(
        body.token,
        email=body.email,
        password=body.password,
        name=body.name,
        company_name=body.companyName,
        company_description=body.companyDescription,
    )
    _, token = await sessions.start_session(user, company, membership.role)
    _set_session_cookie(response, token)
    return {"success": True, "data": {
        "user": user_to_dict(user),
        "company": company_to_dict(company),
        "role": membership.role,
    }}


@router.post("/login")
async def login(payload: LoginRequest, response: Response):
    """
    Authenticate with email and password.

    Opens a server-side session (no company selected yet) and sets its
    reference as an HttpOnly cookie. The response lists the companies the
    user can select next; a user with no companies still logs in.

    Raises:
        InvalidCredentials (401): unknown email or wrong password
        Forbidden (403, ACCOUNT_INACTIVE): correct password, deactivated account
    """
    _, token, user = await sessions.login(payload.email, payload.password)
    _set_session_cookie(response, token)
    companies = await sessions.list_companies(user)
    return {"success": True, "data": {
        "user": user_to_dict(user),
        "companies": [company_to_dict(c, role) for c, role in companies],
    }}


@router.get("/companies")
async def my_companies(user: User = Depends(get_current_user)):
    companies = await sessions.list_companies(user)
    return {"success": True, "data": {"items": [company_to_dict(c, role) for c, role in companies]}}


@router.post("/select-company")
async def select_company(body: SelectCompanyIn, session: Session = Depends(get_current_session)):
    """
    Bind a company to the current session (or switch to another one).

    The role is resolved from the membership at this point and re-checked
    on every company-scoped request afterwards.

    Error codes:
        - COMPANY_FORBIDDEN (403): no active membership in an active company
    """
    scope = await sessions.select_company(session, body.companyId)
    return {"success": True, "data": {"company": company_to_dict(scope.company), "role": scope.role}}


@router.get("/me")
async def me(session: Session = Depends(get_current_session)):
    """
    Current user plus the session's company binding (companyId/role are None
    until a company is selected).
    """
    return {"success": True, "data": {
        "user": user_to_dict(session.user),
        "companyId": str(session.company_id) if session.company_id else None,
        "role": session.role,
    }}


@router.post("/change-password")
async def change_password(body: ChangePasswordIn, session: Session = Depends(get_current_session)):
    """
    Change the current user's password.

    The current password must be given. Every other session of the user is
    ended; the one making the request stays logged in.

    Error codes:
        - INVALID_CURRENT_PASSWORD (400)
    """
    user = session.user
    if not verify_password(body.currentPassword, user.password_hash):
        raise BadRequest("Current password is incorrect", code="INVALID_CURRENT_PASSWORD")
    user.password_hash = hash_password(body.newPassword)
    await user.save(update_fields=["password_hash"])
    await sessions.end_other_sessions(user, session.id)
    return {"success": True, "data": {"ok": True}}


@router.post("/logout")
async def logout(request: Request, response: Response):
    """
    Log out: delete the server-side session and clear the cookie.

    Always succeeds, with or without a (valid) cookie. A copy of the old
    cookie value is useless afterwards because the session row is gone.
    """
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        await sessions.logout(token)
    response.delete_cookie(settings.session_cookie_name)
    return {"success": True}
