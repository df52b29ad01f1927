import pytest
from httpx import AsyncClient, ASGITransport

from device_store.core.security import create_access_token
from device_store.database.session import get_session_factory
from device_store.dependencies.service_dependencies import get_device_registry
from device_store.main import app
from device_store.services.device_registry import DeviceRegistry

@pytest.fixture(autouse=True)
def override_session_factory(session_factory):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    yield
    app.dependency_overrides.clear()

@pytest.fixture
async def async_test_client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

@pytest.fixture
def auth_headers(test_token):
    return {"Authorization": f"Bearer {test_token}"}

@pytest.mark.asyncio
async def test_list_devices_empty(async_test_client, auth_headers):
    response = await async_test_client.get("/api/devices/me", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"userId": "u1", "devices": []}

@pytest.mark.asyncio
async def test_list_devices_after_registration(async_test_client, auth_headers, registry, descriptor):
    await registry.upsert("u1", "d1", descriptor, "tok-A")
    await registry.upsert("u2", "d1", descriptor, "tok-other-user")

    response = await async_test_client.get("/api/devices/me", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {
        "userId": "u1",
        "devices": [
            {"deviceId": "d1", "fcmToken": "tok-A", "name": "Test Laptop", "os": "Linux 6.1", "type": "desktop"}
        ],
    }

@pytest.mark.asyncio
async def test_remove_device(async_test_client, auth_headers, registry, descriptor):
    await registry.upsert("u1", "d1", descriptor, "tok-A")

    response = await async_test_client.delete("/api/devices/me/d1", headers=auth_headers)
    assert response.status_code == 204
    assert await registry.list_devices("u1") == []

    response = await async_test_client.delete("/api/devices/me/d1", headers=auth_headers)
    assert response.status_code == 204

@pytest.mark.asyncio
async def test_invalid_token_rejected(async_test_client):
    response = await async_test_client.get(
        "/api/devices/me",
        headers={"Authorization": "Bearer invalid_token"}
    )
    assert response.status_code == 401
    assert "message" in response.json()

@pytest.mark.asyncio
async def test_token_without_user_rejected(async_test_client):
    token = create_access_token({"sub": "someone"})
    response = await async_test_client.get(
        "/api/devices/me",
        headers={"Authorization": f"Bearer {token}"}
    )
    assert response.status_code == 401

@pytest.mark.asyncio
async def test_missing_token_rejected(async_test_client):
    response = await async_test_client.get("/api/devices/me")
    assert response.status_code in (401, 403)

@pytest.mark.asyncio
async def test_store_failure_maps_to_503(async_test_client, auth_headers, failing_store):
    app.dependency_overrides[get_device_registry] = lambda: DeviceRegistry(failing_store)

    response = await async_test_client.delete("/api/devices/me/d1", headers=auth_headers)

    assert response.status_code == 503
    assert response.json()["error"] == "TRANSACTION_FAILED"
