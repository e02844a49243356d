import datetime as dt
import os
import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from tortoise import Tortoise

from app.config import settings
from app.core import db as db_module
from app.core.clock import utc_now
from app.core.security import hash_password
from app.main import app
from app.models import Company, License, Membership, User
from app.services import licensing


TEST_DB_URL = "sqlite://:memory:?cache=shared"
os.environ["DATABASE_URL"] = TEST_DB_URL
db_module.DB_URL = TEST_DB_URL
db_module.TORTOISE_ORM["connections"]["default"] = TEST_DB_URL


async def _init_test_db() -> None:
    """
    Initialize a clean in-memory SQLite database for every test.
    Ensures tables are recreated from scratch.
    """
    if Tortoise._inited:
        await Tortoise.close_connections()
    await Tortoise.init(config=db_module.TORTOISE_ORM)
    await Tortoise.generate_schemas()


@pytest.fixture(autouse=True)
def video_storage(tmp_path, monkeypatch):
    """Keep uploaded files inside the test's temporary directory."""
    storage = tmp_path / "videos"
    storage.mkdir()
    monkeypatch.setattr(settings, "video_storage_dir", str(storage))
    return storage


@pytest_asyncio.fixture
async def db():
    """
    Fresh database for service-level tests that don't need the HTTP client.
    """
    await _init_test_db()
    yield
    await Tortoise.close_connections()


@pytest_asyncio.fixture
async def client():
    """
    Provide an HTTPX AsyncClient bound to the FastAPI app with a fresh DB.
    """
    await _init_test_db()
    # Use ASGITransport without lifespan parameter (not supported in all httpx versions)
    try:
        transport = ASGITransport(app=app, lifespan="off")
    except TypeError:
        # Fallback for httpx versions that don't support lifespan parameter
        transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        yield async_client
    await Tortoise.close_connections()


@pytest_asyncio.fixture
async def create_user():
    """
    Factory fixture to create users directly via ORM.
    """

    async def _create_user(
        password: str = "UserPass!23",
        email: str | None = None,
        is_super_admin: bool = False,
        is_active: bool = True,
    ) -> tuple[User, str]:
        user = await User.create(
            email=email or f"user_{uuid.uuid4().hex[:8]}@example.com",
            name="Test User",
            password_hash=hash_password(password),
            is_super_admin=is_super_admin,
            is_active=is_active,
        )
        return user, password

    return _create_user


@pytest_asyncio.fixture
async def create_admin(create_user):
    """
    Factory fixture to create super admins for privileged endpoints.
    """

    async def _create_admin(password: str = "AdminPass!23") -> tuple[User, str]:
        return await create_user(password=password, is_super_admin=True)

    return _create_admin


@pytest_asyncio.fixture
async def issue_token(create_admin):
    """
    Factory fixture issuing a license token through the licensing service.
    Returns (license, plain token).
    """
    issuer: dict = {}

    async def _issue(
        max_users: int = 5,
        max_storage_bytes: int = 500 * 1024 * 1024,
        expires_in: dt.timedelta = dt.timedelta(days=30),
        company_id=None,
        company_name: str | None = None,
    ) -> tuple[License, str]:
        if "admin" not in issuer:
            issuer["admin"], _ = await create_admin()
        return await licensing.issue_license(
            issuer["admin"],
            company_id=company_id,
            max_users=max_users,
            max_storage_bytes=max_storage_bytes,
            expires_at=utc_now() + expires_in,
            company_name=company_name,
        )

    return _issue


@pytest_asyncio.fixture
async def create_company(issue_token):
    """
    Factory fixture creating a company with an active license, without
    any members. Pass licensed=False for a company with no license at all.
    """

    async def _create_company(
        name: str | None = None,
        max_users: int = 5,
        max_storage_bytes: int = 500 * 1024 * 1024,
        licensed: bool = True,
    ) -> Company:
        name = name or f"Company {uuid.uuid4().hex[:6]}"
        company = await Company.create(name=name, slug=f"company-{uuid.uuid4().hex[:8]}")
        if licensed:
            lic, _ = await issue_token(
                max_users=max_users,
                max_storage_bytes=max_storage_bytes,
                company_id=company.id,
            )
            await licensing.activate_license(lic.id)
        return company

    return _create_company


@pytest_asyncio.fixture
async def add_membership():
    async def _add(user: User, company: Company, role: str = "member") -> Membership:
        return await Membership.create(user=user, company=company, role=role)

    return _add


@pytest_asyncio.fixture
async def login_as(client):
    """
    Log in through the API (session cookie lands in the client's jar) and,
    when a company is given, select it.
    """

    async def _login(user: User, password: str, company: Company | None = None) -> dict:
        client.cookies.clear()
        resp = await client.post(
            "/api/v1/auth/login",
            json={"email": user.email, "password": password},
        )
        assert resp.status_code == 200, resp.text
        if company is not None:
            sel = await client.post(
                "/api/v1/auth/select-company",
                json={"companyId": str(company.id)},
            )
            assert sel.status_code == 200, sel.text
        return resp.json()["data"]

    return _login
