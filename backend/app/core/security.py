# app/core/security.py
"""
Security module for authentication and authorization.
Handles password hashing, session cookie signing, and license token generation.
"""
import datetime as dt
import hashlib
import secrets
import string
import jwt  # PyJWT
from passlib.context import CryptContext

from app.config import settings

# Password hashing context
# Argon2 is a modern, secure password hashing algorithm
pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
)

# Session cookie signing
SESSION_ALG = "HS256"

TOKEN_ALPHABET = string.ascii_uppercase + string.digits


def hash_password(plain: str) -> str:
    """
    Hash a plain text password using Argon2.

    Args:
        plain: Plain text password to hash

    Returns:
        Hashed password string (safe to store in database)
    """
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    """
    Verify a plain text password against a hashed password.

    Returns False (instead of raising) for malformed or unknown hashes.
    """
    try:
        return pwd_context.verify(plain, hashed)
    except (ValueError, TypeError):
        return False


# A valid hash used to burn comparable time when the email is unknown
DUMMY_PASSWORD_HASH = hash_password("not-a-real-password")


def create_session_token(session_id: str, expires_at: dt.datetime | None = None) -> str:
    """
    Sign a session reference for the session cookie.

    The payload holds the server-side session id only; user, company and role
    live in the session row, so nothing the client holds can grant access by
    itself and logout takes effect immediately.

    Args:
        session_id: Primary key of the Session row (UUID string)
        expires_at: Expiration timestamp; defaults to now + settings.session_expire_minutes

    Returns:
        Encoded token string
    """
    now = dt.datetime.now(dt.timezone.utc)
    payload = {
        "sid": session_id,
        "iat": now,
        "exp": expires_at or now + dt.timedelta(minutes=settings.session_expire_minutes),
    }
    return jwt.encode(payload, settings.session_secret, algorithm=SESSION_ALG)


def decode_session_token(token: str) -> str:
    """
    Validate a session cookie value and return the session id it references.

    Raises:
        jwt.ExpiredSignatureError: If token has expired
        jwt.InvalidTokenError: If token is invalid, malformed, or has no sid
    """
    payload = jwt.decode(token, settings.session_secret, algorithms=[SESSION_ALG])
    sid = payload.get("sid")
    if not sid:
        raise jwt.InvalidTokenError("missing sid")
    return sid


def generate_license_token(prefix: str = "LIC") -> str:
    """
    Generate a plaintext license token like LIC-AB12-CD34-EF56-GH78.
    Only returned to the issuer once; the database stores sha256(token).
    """
    parts = ["".join(secrets.choice(TOKEN_ALPHABET) for _ in range(4)) for __ in range(4)]
    return f"{prefix}-{parts[0]}-{parts[1]}-{parts[2]}-{parts[3]}"


def normalize_license_token(raw: str) -> str:
    return (raw or "").strip().upper()


def sha256_hex(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()
