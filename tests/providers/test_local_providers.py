import pytest

from device_store.core.exceptions import InvalidTokenException, TokenFetchFailedException
from device_store.core.security import create_access_token
from device_store.providers.local import HostDeviceInfo, LocalIdentityProvider, LocalPushService, Signal


def test_signal_handles_remove_once():
    signal = Signal()
    received = []
    first = signal.connect(received.append)
    signal.connect(lambda value: received.append(value * 10))

    signal.emit(1)
    first.remove()
    first.remove()
    signal.emit(2)

    assert received == [1, 10, 20]
    assert len(signal) == 1

def test_identity_provider_emits_only_changes():
    provider = LocalIdentityProvider()
    seen = []
    provider.on_identity_changed(seen.append)

    provider.sign_in("u1")
    provider.sign_in("u1")
    provider.sign_out()
    provider.sign_out()

    assert seen == ["u1", None]
    assert provider.current_identity() is None

def test_sign_in_with_token():
    provider = LocalIdentityProvider()

    user_id = provider.sign_in_with_token(create_access_token({"user_id": "u7"}))

    assert user_id == "u7"
    assert provider.current_identity() == "u7"

def test_sign_in_with_bad_token_keeps_identity():
    provider = LocalIdentityProvider("u1")

    with pytest.raises(InvalidTokenException):
        provider.sign_in_with_token("not-a-jwt")

    assert provider.current_identity() == "u1"

@pytest.mark.asyncio
async def test_push_service_token_fetch():
    push = LocalPushService()
    with pytest.raises(TokenFetchFailedException):
        await push.current_token()

    push.rotate("tok-A")
    assert await push.current_token() == "tok-A"

    push.fail_fetch = True
    with pytest.raises(TokenFetchFailedException):
        await push.current_token()

def test_deliver_does_not_change_issued_token():
    push = LocalPushService(token="tok-A")
    seen = []
    push.on_token_refresh(seen.append)

    push.deliver("tok-old")

    assert seen == ["tok-old"]
    assert push._token == "tok-A"

def test_host_device_info_is_stable():
    first, second = HostDeviceInfo(), HostDeviceInfo()

    assert first.device_id() == second.device_id()
    assert first.device_name()
    assert first.os_string()

def test_host_device_info_overrides():
    info = HostDeviceInfo(device_id="d1", device_name="Kitchen Tablet")

    assert info.device_id() == "d1"
    assert info.device_name() == "Kitchen Tablet"
