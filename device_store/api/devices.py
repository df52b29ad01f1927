from fastapi import APIRouter, Depends, Path, status

from device_store.dependencies.auth_dependencies import get_current_user_id
from device_store.dependencies.service_dependencies import get_device_registry
from device_store.schemas.device import UserDevicesDocument
from device_store.services.device_registry import DeviceRegistry

router = APIRouter(prefix="/api/devices", tags=["devices"])

@router.get("/me", response_model=UserDevicesDocument)
async def list_my_devices(
    user_id: str = Depends(get_current_user_id),
    registry: DeviceRegistry = Depends(get_device_registry),
):
    """
    Returns the devices registered for push notifications by the authenticated user.
    """
    document = await registry.get_document(user_id)
    return document or UserDevicesDocument(user_id=user_id)

@router.delete("/me/{device_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_my_device(
    device_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    registry: DeviceRegistry = Depends(get_device_registry),
):
    """
    Unregisters one of the authenticated user's devices. Unknown devices are ignored.
    """
    await registry.delete(user_id, device_id)
