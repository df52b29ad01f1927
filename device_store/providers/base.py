"""Interfaces of the collaborators the registration engine consumes but does not own."""
from typing import Callable, Optional, Protocol

IdentityCallback = Callable[[Optional[str]], None]
TokenCallback = Callable[[str], None]


class ListenerHandle(Protocol):
    def remove(self) -> None: ...


class IdentityProvider(Protocol):
    def current_identity(self) -> Optional[str]:
        """Signed-in user id, or None."""
        ...

    def on_identity_changed(self, callback: IdentityCallback) -> ListenerHandle: ...


class PushService(Protocol):
    async def current_token(self) -> str:
        """Raises TokenFetchFailedException when no token can be issued."""
        ...

    def on_token_refresh(self, callback: TokenCallback) -> ListenerHandle: ...


class PermissionHost(Protocol):
    async def request_notification_permission(self) -> bool: ...


class DeviceMetadataSource(Protocol):
    def device_id(self) -> str: ...

    def device_name(self) -> str: ...

    def os_string(self) -> str: ...
