"""
Unit tests for services.devices (global device registry).
"""
import asyncio

import pytest

from app.core.errors import BadRequest, NotFound
from app.models import Device
from app.services import devices

pytestmark = pytest.mark.asyncio


async def test_first_registration_creates_active_device(db):
    device, created = await devices.register_or_touch("screen-001", {"os": "tizen"})
    assert created is True
    assert device.is_active is True
    assert device.device_info == {"os": "tizen"}
    adjective, noun = device.name.split(" ")
    assert adjective in devices.ADJECTIVES
    assert noun in devices.NOUNS


async def test_registering_twice_keeps_one_row_and_advances_last_seen(db):
    first, created = await devices.register_or_touch("screen-002", {"v": 1})
    assert created is True
    await asyncio.sleep(0.01)

    second, created = await devices.register_or_touch("screen-002", {"v": 2})
    assert created is False
    assert second.id == first.id
    assert second.last_seen > first.last_seen
    assert second.device_info == {"v": 2}
    assert second.name == first.name
    assert await Device.filter(uid="screen-002").count() == 1


async def test_touch_without_info_keeps_stored_info(db):
    await devices.register_or_touch("screen-003", {"resolution": "1920x1080"})
    device, _ = await devices.register_or_touch("screen-003")
    assert device.device_info == {"resolution": "1920x1080"}


async def test_concurrent_registration_creates_single_row(db):
    results = await asyncio.gather(*[devices.register_or_touch("screen-004", {"n": i}) for i in range(5)])
    assert sum(1 for _, created in results if created) == 1
    assert await Device.filter(uid="screen-004").count() == 1


async def test_reregistering_reactivates(db):
    device, _ = await devices.register_or_touch("screen-005", name="Lobby")
    await devices.deactivate(device.id)
    assert (await Device.get(id=device.id)).is_active is False

    device, created = await devices.register_or_touch("screen-005")
    assert created is False
    assert device.is_active is True
    assert device.name == "Lobby"


async def test_blank_uid_rejected(db):
    with pytest.raises(BadRequest):
        await devices.register_or_touch("   ")


async def test_rename_and_list(db):
    a, _ = await devices.register_or_touch("screen-a")
    b, _ = await devices.register_or_touch("screen-b")
    await devices.rename(a.id, "  Reception  ")
    await devices.deactivate(b.id)

    rows, total = await devices.list_devices(is_active=True)
    assert total == 1
    assert rows[0].name == "Reception"

    rows, total = await devices.list_devices(q="recep")
    assert [d.uid for d in rows] == ["screen-a"]

    _, total = await devices.list_devices()
    assert total == 2


async def test_unknown_device(db):
    with pytest.raises(NotFound):
        await devices.deactivate("00000000-0000-0000-0000-000000000000")
