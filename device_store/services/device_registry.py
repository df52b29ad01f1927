from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from device_store.core.exceptions import TransactionFailedException
from device_store.core.log_config import logger
from device_store.database.document_store import DocumentSnapshot, DocumentStore
from device_store.schemas.device import DeviceDescriptor, DeviceRegistration, UserDevicesDocument


USER_ID_FIELD = "userId"
DEVICES_FIELD = "devices"
DEVICE_ID_FIELD = "deviceId"


def _device_entries(data: Optional[Dict[str, Any]]) -> List[Any]:
    devices = (data or {}).get(DEVICES_FIELD)
    if devices is None:
        return []
    # Older clients stored devices as a map keyed by deviceId
    if isinstance(devices, dict):
        return list(devices.values())
    if isinstance(devices, list):
        return list(devices)
    raise ValueError(f"'{DEVICES_FIELD}' must be a list, got {type(devices).__name__}")


def _is_entry_for(entry: Any, device_id: str) -> bool:
    return isinstance(entry, dict) and entry.get(DEVICE_ID_FIELD) == device_id


def apply_upsert(snapshot: DocumentSnapshot, user_id: str, registration: DeviceRegistration) -> Dict[str, Any]:
    """
    Returns the document body with `registration` inserted or updated in place.

    Only the entry for this device is touched. It keeps its position and any extra
    fields it carries, and duplicates of it are dropped. Entries of other devices
    are carried through as stored. A missing document is created.
    """
    stored = registration.model_dump(by_alias=True)

    devices: List[Any] = []
    replaced = False
    for entry in _device_entries(snapshot.data):
        if not _is_entry_for(entry, registration.device_id):
            devices.append(entry)
        elif not replaced:
            devices.append({**entry, **stored})
            replaced = True
    if not replaced:
        devices.append(stored)

    return {**(snapshot.data or {}), USER_ID_FIELD: user_id, DEVICES_FIELD: devices}


def apply_delete(snapshot: DocumentSnapshot, user_id: str, device_id: str) -> Optional[Dict[str, Any]]:
    """Returns the document body without `device_id`, or None if there is no document."""
    if not snapshot.exists:
        return None

    devices = [entry for entry in _device_entries(snapshot.data) if not _is_entry_for(entry, device_id)]
    return {**snapshot.data, USER_ID_FIELD: user_id, DEVICES_FIELD: devices}



class DeviceRegistry:
    """Insert, update and removal of one device entry inside a user's document."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def upsert(
        self,
        user_id: str,
        device_id: str,
        descriptor: DeviceDescriptor,
        token: str,
    ) -> UserDevicesDocument:
        """
        Registers `token` for the device in the user's document.

        Args:
            user_id: Owner of the document
            device_id: Identity of the entry to insert or update
            descriptor: Fresh description of the device
            token: Current push token

        Returns:
            The document as committed

        Raises:
            TransactionFailedException: If the store could not commit the change
        """
        registration = DeviceRegistration.from_descriptor(
            descriptor.model_copy(update={"device_id": device_id}), token
        )
        snapshot = await self._transact(
            user_id, lambda current: apply_upsert(current, user_id, registration)
        )
        logger.info(f"Registered device {device_id} for user {user_id}")
        return UserDevicesDocument.from_data(user_id, snapshot.data)

    async def delete(self, user_id: str, device_id: str) -> None:
        """
        Removes the device from the user's document. The document itself is kept
        even when its device list ends up empty.

        Raises:
            TransactionFailedException: If the store could not commit the change
        """
        snapshot = await self._transact(
            user_id, lambda current: apply_delete(current, user_id, device_id)
        )
        if snapshot.exists:
            logger.info(f"Removed device {device_id} for user {user_id}")

    async def get_document(self, user_id: str) -> Optional[UserDevicesDocument]:
        snapshot = await self.store.get(user_id)
        if not snapshot.exists:
            return None
        try:
            return UserDevicesDocument.from_data(user_id, snapshot.data)
        except ValidationError as e:
            raise TransactionFailedException(
                f"Stored devices document for user {user_id} is malformed",
                details={"user_id": user_id},
            ) from e

    async def list_devices(self, user_id: str) -> List[DeviceRegistration]:
        """All registrations for the user, for fan-out by a backend."""
        document = await self.get_document(user_id)
        return list(document.devices) if document else []

    async def _transact(self, user_id: str, fn) -> DocumentSnapshot:
        try:
            return await self.store.run_transaction(user_id, fn)
        except ValueError as e:
            raise TransactionFailedException(
                f"Stored devices document for user {user_id} is malformed",
                details={"user_id": user_id},
            ) from e
