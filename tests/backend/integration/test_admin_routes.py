import pytest

from app.models import License, Session, User, Video
from app.services import licensing


pytestmark = pytest.mark.asyncio


async def test_admin_routes_require_super_admin(client, create_user, login_as):
    assert (await client.get("/api/v1/admin/users")).status_code == 401

    user, password = await create_user()
    await login_as(user, password)
    resp = await client.get("/api/v1/admin/users")
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "FORBIDDEN_SUPER_ADMIN_ONLY"


async def test_admin_user_management_flow(client, create_admin, create_user, login_as):
    admin, admin_password = await create_admin()
    member, _ = await create_user(email="member1@example.com")
    await login_as(admin, admin_password)

    list_resp = await client.get("/api/v1/admin/users", params={"q": "member1", "offset": 0, "limit": 20})
    assert list_resp.status_code == 200
    assert [item["email"] for item in list_resp.json()["items"]] == ["member1@example.com"]

    detail_resp = await client.get(f"/api/v1/admin/users/{member.id}")
    assert detail_resp.status_code == 200
    assert detail_resp.json()["user"]["email"] == "member1@example.com"

    update_resp = await client.patch(
        f"/api/v1/admin/users/{member.id}",
        json={"email": "Member1+Updated@example.com", "name": "Renamed"},
    )
    assert update_resp.status_code == 200
    assert update_resp.json()["user"]["email"] == "member1+updated@example.com"
    assert update_resp.json()["user"]["name"] == "Renamed"

    reset_resp = await client.post(
        f"/api/v1/admin/users/{member.id}/reset-password",
        json={"newPassword": "Member#999"},
    )
    assert reset_resp.status_code == 200
    assert reset_resp.json()["data"]["ok"] is True

    client.cookies.clear()
    login_with_new_pwd = await client.post(
        "/api/v1/auth/login",
        json={"email": "member1+updated@example.com", "password": "Member#999"},
    )
    assert login_with_new_pwd.status_code == 200


async def test_cannot_remove_last_super_admin(client, create_admin, login_as):
    admin, admin_password = await create_admin()
    await login_as(admin, admin_password)

    demote = await client.patch(f"/api/v1/admin/users/{admin.id}", json={"isSuperAdmin": False})
    assert demote.status_code == 400
    assert demote.json()["detail"]["code"] == "CANNOT_DEMOTE_SELF"

    deactivate = await client.patch(f"/api/v1/admin/users/{admin.id}", json={"isActive": False})
    assert deactivate.status_code == 400

    delete = await client.delete(f"/api/v1/admin/users/{admin.id}")
    assert delete.status_code == 400
    assert delete.json()["detail"]["code"] == "CANNOT_DELETE_SELF"


async def test_deactivating_user_ends_sessions(client, create_admin, create_user, login_as):
    admin, admin_password = await create_admin()
    user, password = await create_user()
    await login_as(user, password)
    assert await Session.filter(user_id=user.id).count() == 1

    await login_as(admin, admin_password)
    resp = await client.patch(f"/api/v1/admin/users/{user.id}", json={"isActive": False})
    assert resp.status_code == 200
    assert resp.json()["user"]["isActive"] is False
    assert await Session.filter(user_id=user.id).count() == 0


async def test_delete_user_restricted_by_issued_licenses(client, create_admin, login_as):
    admin, admin_password = await create_admin()
    issuer, _ = await create_admin()
    await login_as(issuer, "AdminPass!23")
    issued = await client.post("/api/v1/admin/licenses", json={"count": 1})
    assert issued.status_code == 201

    await login_as(admin, admin_password)
    resp = await client.delete(f"/api/v1/admin/users/{issuer.id}")
    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "USER_HAS_DEPENDENCIES"


async def test_delete_user_restricted_by_uploaded_videos(
    client, create_admin, create_user, create_company, add_membership, login_as
):
    admin, admin_password = await create_admin()
    uploader, _ = await create_user()
    company = await create_company()
    await add_membership(uploader, company, "member")
    await Video.create(
        company=company,
        uploaded_by=uploader,
        file_name="intro",
        original_file_name="intro.mp4",
        file_path=f"{company.id}/intro.mp4",
        file_size=1024,
        mime_type="video/mp4",
    )
    await login_as(admin, admin_password)

    resp = await client.delete(f"/api/v1/admin/users/{uploader.id}")
    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "USER_HAS_DEPENDENCIES"
    assert await User.filter(id=uploader.id).exists()

    # Without uploads or issued licenses the account can go
    plain, _ = await create_user()
    assert (await client.delete(f"/api/v1/admin/users/{plain.id}")).status_code == 200
    assert not await User.filter(id=plain.id).exists()


async def test_license_management(client, create_admin, create_company, login_as):
    admin, admin_password = await create_admin()
    company = await create_company(max_users=1)
    await login_as(admin, admin_password)

    # Issue two licenses in one go, plain text only in this response
    issue_resp = await client.post(
        "/api/v1/admin/licenses",
        json={"count": 2, "maxUsers": 10, "maxStorageBytes": 1024, "expireDays": 30, "companyName": "Gamma"},
    )
    assert issue_resp.status_code == 201, issue_resp.text
    issued = issue_resp.json()["licenses"]
    assert len(issued) == 2
    assert all(item["token"].startswith("LIC-") for item in issued)

    listing = await client.get("/api/v1/admin/licenses", params={"is_used": False})
    assert listing.status_code == 200
    body = listing.json()
    assert body["total"] == 2
    for item in body["items"]:
        assert "token" not in item
        assert item["tokenPreview"].startswith("LIC-****-****-")
        assert item["isExpired"] is False
    assert issued[0]["token"] not in listing.text

    detail = await client.get(f"/api/v1/admin/licenses/{issued[0]['id']}")
    assert detail.status_code == 200
    assert detail.json()["data"]["companyName"] == "Gamma"

    # Unassigned license cannot be activated
    unassigned = await client.post(f"/api/v1/admin/licenses/{issued[0]['id']}/activate")
    assert unassigned.status_code == 400

    deleted = await client.delete(f"/api/v1/admin/licenses/{issued[1]['id']}")
    assert deleted.status_code == 200
    assert not await License.filter(id=issued[1]["id"]).exists()

    # Pre-assigned license replaces the company's current one
    assigned = await client.post(
        "/api/v1/admin/licenses",
        json={"companyId": str(company.id), "maxUsers": 99},
    )
    new_id = assigned.json()["licenses"][0]["id"]
    activated = await client.post(f"/api/v1/admin/licenses/{new_id}/activate")
    assert activated.status_code == 200
    assert activated.json()["data"]["isActive"] is True
    active = await License.filter(company_id=company.id, is_active=True)
    assert [str(lic.id) for lic in active] == [new_id]

    used_delete = await client.delete(f"/api/v1/admin/licenses/{new_id}")
    assert used_delete.status_code == 409

    deactivated = await client.post(f"/api/v1/admin/licenses/{new_id}/deactivate")
    assert deactivated.json()["data"]["isActive"] is False

    by_company = await client.get("/api/v1/admin/licenses", params={"company_id": str(company.id)})
    assert by_company.json()["total"] == 2


async def test_company_management(client, create_admin, create_user, create_company, add_membership, login_as):
    admin, admin_password = await create_admin()
    member, member_pw = await create_user()
    company = await create_company(name="Delta")
    await add_membership(member, company, "owner")

    await login_as(admin, admin_password)
    listing = await client.get("/api/v1/admin/companies", params={"q": "delta"})
    assert listing.status_code == 200
    item = listing.json()["items"][0]
    assert item["name"] == "Delta"
    assert item["activeUsers"] == 1
    assert item["license"]["isActive"] is True

    detail = await client.get(f"/api/v1/admin/companies/{company.id}")
    assert detail.status_code == 200
    assert detail.json()["data"]["members"][0]["role"] == "owner"

    toggled = await client.patch(f"/api/v1/admin/companies/{company.id}", json={"isActive": False})
    assert toggled.json()["data"]["company"]["isActive"] is False

    # Member logs in and no longer sees the company
    data = await login_as(member, member_pw)
    assert data["companies"] == []


async def test_super_admin_can_enter_any_company(client, create_admin, create_company, login_as):
    admin, admin_password = await create_admin()
    company = await create_company()
    data = await login_as(admin, admin_password, company)
    assert str(company.id) in [c["id"] for c in data["companies"]]

    info = await client.get("/api/v1/company/info")
    assert info.status_code == 200
    assert info.json()["data"]["role"] == "superadmin"


async def test_device_administration(client, create_admin, login_as):
    admin, admin_password = await create_admin()
    reg = await client.post("/api/v1/devices/register", json={"uid": "panel-7"})
    device_id = reg.json()["data"]["device"]["id"]

    await login_as(admin, admin_password)
    listing = await client.get("/api/v1/admin/devices", params={"q": "panel"})
    assert listing.json()["total"] == 1

    renamed = await client.patch(f"/api/v1/admin/devices/{device_id}", json={"name": "Front Desk"})
    assert renamed.json()["data"]["name"] == "Front Desk"

    deactivated = await client.post(f"/api/v1/admin/devices/{device_id}/deactivate")
    assert deactivated.json()["data"]["isActive"] is False
    inactive = await client.get("/api/v1/admin/devices", params={"is_active": False})
    assert inactive.json()["total"] == 1


async def test_video_administration(client, create_admin, create_user, create_company, login_as):
    admin, admin_password = await create_admin()
    uploader, _ = await create_user()
    first = await create_company(name="Epsilon")
    second = await create_company(name="Zeta")
    created = []
    for company, size in ((first, 300), (second, 700)):
        created.append(await Video.create(
            company=company,
            uploaded_by=uploader,
            file_name=f"clip-{company.name}",
            original_file_name="clip.mp4",
            file_path=f"{company.id}/clip.mp4",
            file_size=size,
            mime_type="video/mp4",
        ))
    await login_as(admin, admin_password)

    listing = await client.get("/api/v1/admin/videos")
    assert listing.status_code == 200
    assert listing.json()["total"] == 2
    assert {item["company"]["name"] for item in listing.json()["items"]} == {"Epsilon", "Zeta"}
    assert listing.json()["items"][0]["uploader"]["email"] == uploader.email

    filtered = await client.get("/api/v1/admin/videos", params={"company_id": str(second.id)})
    assert [item["id"] for item in filtered.json()["items"]] == [str(created[1].id)]

    deleted = await client.delete(f"/api/v1/admin/videos/{created[1].id}")
    assert deleted.status_code == 200
    assert (await Video.get(id=created[1].id)).is_active is False
    assert await licensing.storage_used(second.id) == 0
    assert (await client.delete(f"/api/v1/admin/videos/{created[1].id}")).status_code == 404


async def test_video_administration_requires_super_admin(client, create_user, login_as):
    user, password = await create_user()
    await login_as(user, password)
    assert (await client.get("/api/v1/admin/videos")).status_code == 403
