# app/core/bootstrap.py
"""
Bootstrap module for application initialization.
Creates the first super admin on startup so licenses can be issued at all.
"""
import os
import logging
from app.models.user import User
from app.core.security import hash_password

logger = logging.getLogger("uvicorn.error")

async def ensure_default_admin() -> User | None:
    """
    If no active super admin exists, create one from environment variables.
    Only takes effect under the following conditions:
      - Currently no active user with is_super_admin=True
      - And ADMIN_PASSWORD is set (to avoid using default weak password)
    Environment variables:
      ADMIN_EMAIL    (default: "admin@example.com")
      ADMIN_NAME     (default: "Super Admin")
      ADMIN_PASSWORD (required, otherwise won't create)

    If ADMIN_EMAIL already belongs to a regular account, that account is
    promoted instead of creating a second one.
    """
    if await User.filter(is_super_admin=True, is_active=True).exists():
        return None

    admin_password = os.getenv("ADMIN_PASSWORD")
    if not admin_password:
        logger.warning("[bootstrap] No super admin present, but ADMIN_PASSWORD not set -> skip creating one.")
        return None

    admin_email = os.getenv("ADMIN_EMAIL", "admin@example.com").strip().lower()
    admin_name = os.getenv("ADMIN_NAME", "Super Admin")

    existing = await User.get_or_none(email=admin_email)
    if existing:
        existing.is_super_admin = True
        existing.is_active = True
        await existing.save(update_fields=["is_super_admin", "is_active"])
        logger.warning("[bootstrap] Promoted existing user to super admin -> email=%s id=%s", existing.email, existing.id)
        return existing

    u = await User.create(
        email=admin_email,
        name=admin_name,
        password_hash=hash_password(admin_password),  # Hash password before storing
        is_super_admin=True,
    )
    logger.warning("[bootstrap] Created default super admin -> email=%s id=%s", u.email, u.id)
    return u
