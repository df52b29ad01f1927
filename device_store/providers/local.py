import logging
import platform
import socket
import uuid
from typing import Callable, Generic, List, Optional, TypeVar

from device_store.core.config import settings
from device_store.core.exceptions import TokenFetchFailedException
from device_store.core.security import user_id_from_token

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Namespace for ids derived from the host's hardware node
DEVICE_NAMESPACE = uuid.UUID("6f1c5a52-4d0e-4d59-9a55-5b3c2f7e8a10")


class Listener(Generic[T]):
    """Handle returned by a signal registration. remove() is idempotent."""

    def __init__(self, signal: "Signal[T]", callback: Callable[[T], None]):
        self._signal = signal
        self.callback = callback

    def remove(self) -> None:
        self._signal._discard(self)


class Signal(Generic[T]):
    """Synchronous fan-out of values to registered callbacks, in registration order."""

    def __init__(self):
        self._listeners: List[Listener[T]] = []

    def connect(self, callback: Callable[[T], None]) -> Listener[T]:
        listener = Listener(self, callback)
        self._listeners.append(listener)
        return listener

    def emit(self, value: T) -> None:
        for listener in list(self._listeners):
            listener.callback(value)

    def _discard(self, listener: Listener[T]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def __len__(self):
        return len(self._listeners)


class LocalIdentityProvider:
    """Identity source driven by the embedding application."""

    def __init__(self, user_id: Optional[str] = None):
        self._user_id = user_id
        self.changes: Signal[Optional[str]] = Signal()

    def current_identity(self) -> Optional[str]:
        return self._user_id

    def on_identity_changed(self, callback: Callable[[Optional[str]], None]) -> Listener:
        return self.changes.connect(callback)

    def sign_in(self, user_id: str) -> None:
        self._set(user_id)

    def sign_in_with_token(self, access_token: str) -> str:
        """Signs in the user named by a verified access token and returns its id."""
        user_id = user_id_from_token(access_token)
        self._set(user_id)
        return user_id

    def sign_out(self) -> None:
        self._set(None)

    def _set(self, user_id: Optional[str]) -> None:
        if user_id == self._user_id:
            return
        self._user_id = user_id
        self.changes.emit(user_id)


class LocalPushService:
    """Push token source driven by the embedding application."""

    def __init__(self, token: Optional[str] = None, fail_fetch: bool = False):
        self._token = token
        self.fail_fetch = fail_fetch
        self.refreshes: Signal[str] = Signal()

    async def current_token(self) -> str:
        if self.fail_fetch or self._token is None:
            raise TokenFetchFailedException()
        return self._token

    def on_token_refresh(self, callback: Callable[[str], None]) -> Listener:
        return self.refreshes.connect(callback)

    def rotate(self, token: str) -> None:
        """Issues a new token and notifies listeners."""
        self._token = token
        self.deliver(token)

    def deliver(self, token: str) -> None:
        """Notifies listeners of `token` without changing the issued one (re-delivery)."""
        self.refreshes.emit(token)


class StaticPermissionHost:
    """Answers every permission prompt with a fixed decision."""

    def __init__(self, granted: bool = True):
        self.granted = granted
        self.requests = 0

    async def request_notification_permission(self) -> bool:
        self.requests += 1
        return self.granted


class HostDeviceInfo:
    """Describes the machine this process runs on."""

    def __init__(self, device_id: Optional[str] = settings.device_id, device_name: Optional[str] = settings.device_name):
        self._device_id = device_id or str(uuid.uuid5(DEVICE_NAMESPACE, f"{uuid.getnode():012x}"))
        self._device_name = device_name

    def device_id(self) -> str:
        return self._device_id

    def device_name(self) -> str:
        return self._device_name or socket.gethostname()

    def os_string(self) -> str:
        return f"{platform.system()} {platform.release()}".strip()
