import pytest

from app.core.bootstrap import ensure_default_admin
from app.core.security import verify_password
from app.models import User

pytestmark = pytest.mark.asyncio


async def test_skips_without_admin_password(db, monkeypatch):
    monkeypatch.delenv("ADMIN_PASSWORD", raising=False)
    assert await ensure_default_admin() is None
    assert await User.all().count() == 0


async def test_creates_super_admin_once(db, monkeypatch):
    monkeypatch.setenv("ADMIN_PASSWORD", "BootPass!23")
    monkeypatch.setenv("ADMIN_EMAIL", "Root@Example.com")

    admin = await ensure_default_admin()
    assert admin.email == "root@example.com"
    assert admin.is_super_admin is True
    assert verify_password("BootPass!23", admin.password_hash)

    assert await ensure_default_admin() is None
    assert await User.filter(is_super_admin=True).count() == 1


async def test_promotes_existing_user(db, monkeypatch, create_user):
    user, _ = await create_user(email="boss@example.com")
    monkeypatch.setenv("ADMIN_PASSWORD", "BootPass!23")
    monkeypatch.setenv("ADMIN_EMAIL", "boss@example.com")

    admin = await ensure_default_admin()
    assert admin.id == user.id
    assert (await User.get(id=user.id)).is_super_admin is True
