"""
Global device registry.

Devices are keyed by their own ``uid``. Registration is an upsert: an
``UPDATE ... WHERE uid = ?`` first, an ``INSERT`` only when nothing matched,
and a unique violation from a concurrent insert of the same uid turns into
the update path. There is no read-then-insert window.
"""
import logging
import random
from typing import Optional

from tortoise.exceptions import IntegrityError
from tortoise.expressions import Q
from tortoise.transactions import in_transaction

from app.core.clock import utc_now
from app.core.errors import BadRequest, Conflict, NotFound
from app.models import Device

logger = logging.getLogger("uvicorn.error")

ADJECTIVES = [
    "Blue", "Red", "Green", "Gold", "Silver", "Swift", "Bright", "Smart",
    "Cool", "Fast", "Bold", "Calm", "Warm", "Clear", "Fresh", "Quick",
]

NOUNS = [
    "Screen", "Display", "Panel", "Monitor", "Viewer", "Board", "Sign",
    "Kiosk", "Terminal", "Device", "Player", "Unit", "Station", "Hub",
]


def generate_device_name() -> str:
    """Random friendly name such as "Swift Display"."""
    return f"{random.choice(ADJECTIVES)} {random.choice(NOUNS)}"


async def _touch(uid: str, device_info: Optional[dict], name: Optional[str]) -> int:
    values = {"last_seen": utc_now(), "is_active": True}
    if device_info is not None:
        values["device_info"] = device_info
    if name:
        values["name"] = name
    return await Device.filter(uid=uid).update(**values)


async def register_or_touch(
    uid: str,
    device_info: Optional[dict] = None,
    name: Optional[str] = None,
) -> tuple[Device, bool]:
    """
    Register a device or refresh an existing one.

    Existing devices get last_seen bumped, device_info replaced (kept when
    None) and are re-activated. New devices start active with a generated
    name unless one is given.

    Returns:
        (device, created)
    """
    uid = (uid or "").strip()
    if not uid:
        raise BadRequest("Device uid is required", code="DEVICE_UID_REQUIRED")

    for _ in range(2):
        if await _touch(uid, device_info, name):
            return await Device.get(uid=uid), False
        try:
            async with in_transaction() as conn:
                device = await Device.create(
                    uid=uid,
                    name=name or generate_device_name(),
                    device_info=device_info or {},
                    last_seen=utc_now(),
                    is_active=True,
                    using_db=conn,
                )
        except IntegrityError:
            # Lost the insert race for this uid; the row exists now
            continue
        logger.info("[devices] registered %s as %r", uid, device.name)
        return device, True
    raise Conflict("Device registration conflict, please retry", code="DEVICE_CONFLICT")


async def get_device(device_id) -> Device:
    device = await Device.get_or_none(id=device_id)
    if not device:
        raise NotFound("Device not found", code="DEVICE_NOT_FOUND")
    return device


async def deactivate(device_id) -> Device:
    """Mark a device inactive; the row and its history stay."""
    device = await get_device(device_id)
    device.is_active = False
    await device.save(update_fields=["is_active"])
    logger.info("[devices] deactivated %s", device.uid)
    return device


async def rename(device_id, name: str) -> Device:
    device = await get_device(device_id)
    device.name = name.strip()
    await device.save(update_fields=["name"])
    return device


async def list_devices(
    is_active: Optional[bool] = None,
    q: Optional[str] = None,
    offset: int = 0,
    limit: int = 50,
) -> tuple[list[Device], int]:
    qs = Device.all().order_by("-last_seen")
    if is_active is not None:
        qs = qs.filter(is_active=is_active)
    if q:
        qs = qs.filter(Q(uid__icontains=q) | Q(name__icontains=q))
    total = await qs.count()
    rows = await qs.offset(offset).limit(limit)
    return rows, total
