# app/core/errors.py
"""
Domain error taxonomy.

Every error here is recoverable at the request boundary: the handler
registered in app.main turns it into a JSON body shaped like FastAPI's
HTTPException detail, i.e. {"detail": {"code": ..., "message": ...}}.
Raising one inside an ``in_transaction()`` block rolls the transaction back.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse


class AppError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "BAD_REQUEST"
    message: str = "Bad request"

    def __init__(self, message: str | None = None, code: str | None = None, **extra):
        self.message = message or self.message
        self.code = code or self.code
        self.extra = extra
        super().__init__(self.message)

    def to_detail(self) -> dict:
        detail = {"code": self.code, "message": self.message}
        detail.update(self.extra)
        return detail


class BadRequest(AppError):
    pass


class AuthRequired(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "AUTH_REQUIRED"
    message = "Authentication required"


class InvalidCredentials(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "AUTH_INVALID_CREDENTIALS"
    message = "Incorrect email or password"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    message = "Access denied"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    message = "Not found"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"
    message = "Resource already exists"


class AlreadyUsed(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "LICENSE_ALREADY_USED"
    message = "This license token has already been used"


class NoCompanySelected(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "NO_COMPANY_SELECTED"
    message = "Select a company first"


class Expired(AppError):
    status_code = status.HTTP_410_GONE
    code = "LICENSE_EXPIRED"
    message = "This license has expired"


class QuotaExceeded(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "QUOTA_EXCEEDED"
    message = "License quota exceeded"


class StorageQuotaExceeded(QuotaExceeded):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    code = "STORAGE_QUOTA_EXCEEDED"
    message = "Company storage limit exceeded"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})
