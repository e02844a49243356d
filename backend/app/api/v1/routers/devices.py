# app/api/v1/routers/devices.py
from fastapi import APIRouter, Response, status

from app.api.v1.serializers import device_to_dict
from app.schemas.device import RegisterDeviceIn
from app.services import devices

router = APIRouter(prefix="/devices", tags=["devices"])


@router.post("/register")
async def register_device(body: RegisterDeviceIn, response: Response):
    """
    Register a device or report that it is still alive.

    Public endpoint: devices are global and keyed by their own uid. Calling
    it again with the same uid never creates a second row; it bumps
    lastSeen, re-activates the device and replaces deviceInfo when given.

    Returns:
        201 with created=True for a new device, 200 with created=False otherwise
    """
    device, created = await devices.register_or_touch(body.uid, body.deviceInfo, body.name)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return {"success": True, "data": {"device": device_to_dict(device), "created": created}}
