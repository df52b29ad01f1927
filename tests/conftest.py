import os

os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from device_store.core.security import create_access_token
from device_store.core.exceptions import TransactionFailedException
from device_store.database.document_store import DocumentSnapshot, SqlDocumentStore
from device_store.database.session import initialize_db
from device_store.providers.local import HostDeviceInfo, LocalIdentityProvider, LocalPushService, StaticPermissionHost
from device_store.schemas.device import DeviceDescriptor, DeviceType
from device_store.services.device_registry import DeviceRegistry
from device_store.services.subscription_controller import SubscriptionController

DATABASE_URL = "sqlite+aiosqlite:///:memory:"
COLLECTION = "user-devices"

@pytest.fixture
async def session_factory():
    engine = create_async_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await initialize_db(engine)
    yield async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    await engine.dispose()

@pytest.fixture
def store(session_factory):
    return SqlDocumentStore(session_factory, collection=COLLECTION, max_attempts=5)

@pytest.fixture
def registry(store):
    return DeviceRegistry(store)

@pytest.fixture
def descriptor():
    return DeviceDescriptor(device_id="d1", name="Test Laptop", os="Linux 6.1", type=DeviceType.DESKTOP.value)

@pytest.fixture
def identity():
    return LocalIdentityProvider()

@pytest.fixture
def push():
    return LocalPushService(token="tok-A")

@pytest.fixture
def permission_host():
    return StaticPermissionHost(granted=True)

@pytest.fixture
def device_info():
    return HostDeviceInfo(device_id="d1", device_name="Test Laptop")

@pytest.fixture
async def controller(registry, identity, push, permission_host, device_info):
    controller = SubscriptionController(
        registry, identity, push, permission_host, device_info, device_type=DeviceType.DESKTOP
    )
    yield controller
    controller.unsubscribe()
    await controller.wait_idle()

@pytest.fixture
def test_token():
    return create_access_token({"user_id": "u1"})

class FailingStore:
    """Store whose reads find nothing and whose transactions always fail."""

    def __init__(self):
        self.transactions = 0

    async def get(self, key):
        return DocumentSnapshot(key=key, exists=False)

    async def run_transaction(self, key, fn):
        self.transactions += 1
        raise TransactionFailedException("store unavailable")

@pytest.fixture
def failing_store():
    return FailingStore()
