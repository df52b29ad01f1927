import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


class DeviceType(str, Enum):
    WEB = "web"
    ANDROID = "android"
    IOS = "ios"
    DESKTOP = "desktop"


class DeviceDescriptor(BaseModel):
    """Description of the local device, rebuilt from the host on every use."""
    device_id: str = Field(..., alias="deviceId", min_length=1)
    name: str
    os: str
    type: str

    class Config:
        populate_by_name = True
        frozen = True


class DeviceRegistration(DeviceDescriptor):
    """One entry of a user's device list. Unique per device_id within a document."""
    fcm_token: str = Field(..., alias="fcmToken", min_length=1)

    class Config:
        populate_by_name = True
        frozen = True
        extra = "allow"

    @classmethod
    def from_descriptor(cls, descriptor: DeviceDescriptor, token: str) -> "DeviceRegistration":
        return cls(**descriptor.model_dump(), fcm_token=token)


class UserDevicesDocument(BaseModel):
    """
    The per-user document. Field names are the stored layout and must not change.
    Unknown top-level fields written by other collaborators are kept.
    """
    user_id: str = Field(..., alias="userId")
    devices: List[DeviceRegistration] = Field(default_factory=list)

    class Config:
        populate_by_name = True
        extra = "allow"

    @field_validator("devices", mode="before")
    @classmethod
    def _devices_as_list(cls, value: Any) -> Any:
        # Older clients stored devices as a map keyed by deviceId
        if isinstance(value, dict):
            value = list(value.values())
        if value is None:
            return []
        if not isinstance(value, list):
            return value

        devices = []
        for entry in value:
            try:
                devices.append(DeviceRegistration.model_validate(entry))
            except ValidationError:
                # Entries written by other clients may lack fields this package needs
                logger.warning(f"Skipping incomplete device entry: {entry!r}")
        return devices

    @classmethod
    def from_data(cls, user_id: str, data: Optional[Dict[str, Any]]) -> "UserDevicesDocument":
        """Parses stored data, forcing userId to the document key."""
        if not data:
            return cls(user_id=user_id)
        return cls.model_validate({**data, "userId": user_id})

