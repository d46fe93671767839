import pytest

from axraprobe.core.config import Credentials
from axraprobe.core.contracts import ClientState
from axraprobe.core.errors import ConfigurationError, GateError
from axraprobe.core.lifecycle import SDKLifecycleManager

VALID = Credentials(publishable_key="pk_test_1", business_id="biz_1")


def test_normalise_substitutes_demo_token(fake_factory) -> None:
    manager = SDKLifecycleManager(fake_factory)
    options = manager.normalise(VALID)
    assert options.sdk_token == "demo-sdk-token-123"
    assert options.environment == "development"

    explicit = manager.normalise(VALID.model_copy(update={"sdk_token": "tok_x"}))
    assert explicit.sdk_token == "tok_x"


def test_normalise_requires_key_and_business(fake_factory) -> None:
    manager = SDKLifecycleManager(fake_factory)
    with pytest.raises(ConfigurationError):
        manager.normalise(Credentials(publishable_key="pk_test_1"))


@pytest.mark.asyncio
async def test_initialize_success_opens_gate(fake_factory) -> None:
    manager = SDKLifecycleManager(fake_factory)

    envelope = await manager.initialize(VALID)

    assert envelope.success
    assert envelope.message == "SDK initialized successfully! Business config loaded."
    assert envelope.data == {"initialized": True}
    assert manager.state is ClientState.READY
    assert manager.require_client() is fake_factory.latest
    assert fake_factory.latest.options.business_id == "biz_1"


@pytest.mark.asyncio
async def test_missing_credentials_never_construct_client(fake_factory) -> None:
    manager = SDKLifecycleManager(fake_factory)

    envelope = await manager.initialize(Credentials(business_id="biz_1"))

    assert not envelope.success
    assert envelope.message == (
        "SDK initialization failed: Please provide both publishable key and business ID"
    )
    assert envelope.error_type == "ConfigurationError"
    assert fake_factory.clients == []
    assert manager.state is ClientState.UNINITIALIZED


@pytest.mark.asyncio
async def test_client_rejection_leaves_failed_state(fake_factory) -> None:
    manager = SDKLifecycleManager(fake_factory)
    await manager.initialize(VALID)
    rejecting = type(fake_factory.latest)()
    rejecting.init_error = RuntimeError("Invalid publishable key")
    fake_factory.prepared = rejecting

    envelope = await manager.initialize(VALID)

    assert envelope.message == "SDK initialization failed: Invalid publishable key"
    assert envelope.error_type == "UnderlyingError"
    assert envelope.data == {"error": "Invalid publishable key"}
    assert manager.state is ClientState.FAILED
    with pytest.raises(GateError):
        manager.require_client()


@pytest.mark.asyncio
async def test_reinitialize_replaces_handle(fake_factory) -> None:
    manager = SDKLifecycleManager(fake_factory)
    await manager.initialize(VALID)
    first = manager.require_client()

    await manager.initialize(VALID)

    assert manager.require_client() is not first
    assert len(fake_factory.clients) == 2


@pytest.mark.asyncio
async def test_reset_is_idempotent(fake_factory) -> None:
    manager = SDKLifecycleManager(fake_factory)
    await manager.initialize(VALID)

    manager.reset()
    manager.reset()

    assert manager.state is ClientState.UNINITIALIZED
    assert not manager.is_ready()
