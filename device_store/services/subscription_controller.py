import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Set

from device_store.core.config import settings
from device_store.core.exceptions import PermissionDeniedException, TokenFetchFailedException, TransactionFailedException
from device_store.core.log_config import logger
from device_store.providers.base import (
    DeviceMetadataSource,
    IdentityProvider,
    ListenerHandle,
    PermissionHost,
    PushService,
)
from device_store.schemas.device import DeviceDescriptor, DeviceType
from device_store.services.device_registry import DeviceRegistry


@dataclass
class SubscriptionState:
    subscribed: bool = False
    current_user: Optional[str] = None
    current_token: Optional[str] = None


def describe_device(source: DeviceMetadataSource, device_type: DeviceType) -> DeviceDescriptor:
    return DeviceDescriptor(
        device_id=source.device_id(),
        name=source.device_name(),
        os=source.os_string(),
        type=device_type.value,
    )


class SubscriptionController:
    """
    Keeps this device's registration in the signed-in user's document in step with
    identity changes and push token rotation.

    Signal handlers only touch `state` synchronously and then schedule registry
    mutations on a serial chain, so writes reach the store in the order the
    signals arrived. Handlers must be invoked on the event loop thread.
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        identity_provider: IdentityProvider,
        push_service: PushService,
        permission_host: PermissionHost,
        device_info: DeviceMetadataSource,
        device_type: DeviceType = settings.device_type,
    ):
        self.registry = registry
        self.identity_provider = identity_provider
        self.push_service = push_service
        self.permission_host = permission_host
        self.device_info = device_info
        self.device_type = device_type

        self.state = SubscriptionState()
        self._identity_listener: Optional[ListenerHandle] = None
        self._token_listener: Optional[ListenerHandle] = None
        self._tail: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def subscribed(self) -> bool:
        return self.state.subscribed

    async def subscribe(self) -> None:
        """
        Starts keeping the registration up to date. Does nothing if already subscribed.

        Raises:
            PermissionDeniedException: If notification permission was not granted
        """
        if self.state.subscribed:
            return

        granted = await self.permission_host.request_notification_permission()
        if not granted:
            raise PermissionDeniedException()

        # A concurrent subscribe() may have finished while the prompt was open
        if self.state.subscribed:
            return

        self.state.subscribed = True
        self.state.current_user = self.identity_provider.current_identity()

        self._spawn(self._fetch_initial_token())
        self._identity_listener = self.identity_provider.on_identity_changed(self._on_identity_changed)
        self._token_listener = self.push_service.on_token_refresh(self.handle_token_refresh)
        logger.info(f"Subscribed device {self.device_info.device_id()} (user: {self.state.current_user})")

    def unsubscribe(self) -> None:
        """Stops listening and forgets the cached user and token. Writes in flight still complete."""
        if self._identity_listener is not None:
            self._identity_listener.remove()
            self._identity_listener = None
        if self._token_listener is not None:
            self._token_listener.remove()
            self._token_listener = None

        self.state.current_token = None
        self.state.current_user = None
        self.state.subscribed = False

    async def sign_out(self) -> None:
        """
        Removes this device from the cached user's document. Must be called before
        the identity provider drops the user.

        Raises:
            TransactionFailedException: If the removal could not be committed
        """
        user_id = self.state.current_user
        token = self.state.current_token
        self.state.current_user = None

        if user_id is None or token is None:
            return

        device_id = self.device_info.device_id()
        await self._schedule(lambda: self.registry.delete(user_id, device_id))

    def handle_token_refresh(self, token: str) -> None:
        """Entry point for push token deliveries."""
        if not self.state.subscribed:
            return
        if not token:
            logger.warning("Ignoring empty push token")
            return

        if token != self.state.current_token and self.state.current_user is not None:
            self._schedule_upsert(self.state.current_user, token)

        self.state.current_token = token

    async def wait_idle(self) -> None:
        """Waits until every scheduled background operation has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _on_identity_changed(self, user_id: Optional[str]) -> None:
        if not self.state.subscribed:
            return

        if user_id is not None and self.state.current_user is None:
            self.state.current_user = user_id
            if self.state.current_token is not None:
                self._schedule_upsert(user_id, self.state.current_token)
        elif user_id is None and self.state.current_user is not None:
            logger.warning(
                f"User {self.state.current_user} signed out without sign_out(); "
                f"device {self.device_info.device_id()} stays registered"
            )
            self.state.current_user = None
        elif user_id is not None and user_id != self.state.current_user:
            logger.warning(f"Ignoring switch from user {self.state.current_user} to {user_id} without sign_out()")

    async def _fetch_initial_token(self) -> None:
        try:
            token = await self.push_service.current_token()
        except TokenFetchFailedException as e:
            logger.warning(f"Could not fetch push token: {e.message}")
            return

        if not self.state.subscribed:
            return
        # A delivery arrived while the fetch was pending and is at least as fresh
        if self.state.current_token is not None:
            return

        self.state.current_token = token
        if self.state.current_user is not None:
            self._schedule_upsert(self.state.current_user, token)

    def _schedule_upsert(self, user_id: str, token: str) -> None:
        descriptor = describe_device(self.device_info, self.device_type)

        async def upsert():
            try:
                await self.registry.upsert(user_id, descriptor.device_id, descriptor, token)
            except TransactionFailedException as e:
                logger.error(f"Failed to register device {descriptor.device_id} for user {user_id}: {e.message}")

        self._schedule(upsert)

    def _schedule(self, mutation: Callable[[], Awaitable[None]]) -> asyncio.Task:
        """Runs `mutation` after every previously scheduled one has finished."""
        previous = self._tail

        async def run():
            if previous is not None:
                await asyncio.wait([previous])
            await mutation()

        task = self._spawn(run())
        self._tail = task
        return task

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
