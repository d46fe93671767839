import asyncio

import pytest

from axraprobe.core.bridge import SessionState, WidgetOutcomeBridge
from axraprobe.core.bus import LogBus, ResultChannel
from axraprobe.core.surfaces import SurfaceRegistry

CARD = "cardFormContainer"
TOKEN = "tokenFormContainer"
CARD_PARAMS = {"amount": 29.99, "business_id": "biz_1"}


@pytest.fixture
def bridge() -> WidgetOutcomeBridge:
    return WidgetOutcomeBridge(
        logs=LogBus(), results=ResultChannel(), surfaces=SurfaceRegistry((CARD, TOKEN))
    )


def _results(bridge: WidgetOutcomeBridge) -> ResultChannel:
    return bridge._results


def _logs(bridge: WidgetOutcomeBridge) -> LogBus:
    return bridge._logs


@pytest.mark.asyncio
async def test_mount_then_success_reports_one_outcome(bridge, fake_factory) -> None:
    client = fake_factory(None)

    envelope = await bridge.mount(CARD, "card", client.mount_card_form, CARD_PARAMS)

    assert envelope.success
    assert envelope.message == "AxraPay card form mounted successfully! Try making a payment."
    assert envelope.data["container_id"] == CARD
    assert envelope.data["sdk_method"] == "mountCardForm"
    session = bridge.session(CARD)
    assert session is not None and session.state is SessionState.MOUNTED
    surface = bridge.surfaces.get(CARD)
    assert surface.mount_point == "#cardFormContainer #axrapay-card-form"
    assert surface.placeholder == ""

    params = client.params_for(CARD)
    params.on_success({"id": "pay_1"})
    params.on_error("late duplicate")

    outcome = _results(bridge).latest("card_form.outcome")
    assert outcome is not None
    assert outcome.message == "Payment successful! ID: pay_1"
    assert outcome.data == {"id": "pay_1"}
    assert len(_results(bridge).history("card_form.outcome")) == 1
    assert [entry.severity for entry in _logs(bridge)] == ["success"]
    assert surface.panel.message == "Payment successful! ID: pay_1"
    assert bridge.session(CARD) is None


@pytest.mark.asyncio
async def test_cancel_after_mount_is_reported_as_failure(bridge, fake_factory) -> None:
    client = fake_factory(None)
    await bridge.mount(CARD, "card", client.mount_card_form, CARD_PARAMS)

    client.params_for(CARD).on_cancel()

    outcome = _results(bridge).latest("card_form.outcome")
    assert outcome is not None and not outcome.success
    assert outcome.message == "Payment cancelled by user"
    assert outcome.error_type == "InteractionCancelled"
    assert _logs(bridge).entries[-1].severity == "error"


@pytest.mark.asyncio
async def test_error_outcome_carries_client_message(bridge, fake_factory) -> None:
    client = fake_factory(None)
    await bridge.mount(CARD, "card", client.mount_card_form, CARD_PARAMS)

    client.params_for(CARD).on_error("Card declined")

    outcome = _results(bridge).latest("card_form.outcome")
    assert outcome.message == "Payment failed: Card declined"
    assert outcome.error_type == "InteractionError"
    assert outcome.data == {"error": "Card declined"}


@pytest.mark.asyncio
async def test_token_success_reads_nested_token_id(bridge, fake_factory) -> None:
    client = fake_factory(None)
    envelope = await bridge.mount(TOKEN, "token", client.mount_token_form, {})
    assert envelope.message == "AxraPay token form mounted successfully! Try creating a token."

    client.params_for(TOKEN).on_success({"token": {"id": "tok_9"}})

    outcome = _results(bridge).latest("token_form.outcome")
    assert outcome.message == "Token created successfully! ID: tok_9"


@pytest.mark.asyncio
async def test_clear_suppresses_pending_outcome(bridge, fake_factory) -> None:
    client = fake_factory(None)
    await bridge.mount(CARD, "card", client.mount_card_form, CARD_PARAMS)
    params = client.params_for(CARD)

    assert bridge.clear(CARD) is True
    params.on_success({"id": "pay_late"})

    assert _results(bridge).latest("card_form.outcome") is None
    assert len(_logs(bridge)) == 0
    assert bridge.surfaces.get(CARD).is_empty
    assert bridge.surfaces.ids() == [CARD, TOKEN]
    assert bridge.session(CARD) is None
    assert bridge.clear("missing") is False


@pytest.mark.asyncio
async def test_remount_invalidates_previous_session(bridge, fake_factory) -> None:
    client = fake_factory(None)
    await bridge.mount(CARD, "card", client.mount_card_form, CARD_PARAMS)
    stale = client.params_for(CARD)
    await bridge.mount(CARD, "card", client.mount_card_form, CARD_PARAMS)
    fresh = client.params_for(CARD)

    stale.on_success({"id": "pay_old"})
    fresh.on_success({"id": "pay_new"})

    history = _results(bridge).history("card_form.outcome")
    assert [env.message for env in history] == ["Payment successful! ID: pay_new"]


@pytest.mark.asyncio
async def test_mount_failure_writes_notice(bridge, fake_factory) -> None:
    client = fake_factory(None)
    client.mount_error = RuntimeError("Element missing")

    envelope = await bridge.mount(CARD, "card", client.mount_card_form, CARD_PARAMS)

    assert not envelope.success
    assert envelope.message == "Card form mounting failed: Element missing"
    assert envelope.error_type == "MountError"
    assert envelope.data == {"error": "Element missing"}
    assert bridge.surfaces.get(CARD).notice == "Card Form Mounting Failed: Element missing"
    assert bridge.session(CARD) is None

    client.params_for(CARD).on_success({"id": "pay_ghost"})
    assert _results(bridge).latest("card_form.outcome") is None


@pytest.mark.asyncio
async def test_unknown_surface_is_rejected(bridge, fake_factory) -> None:
    client = fake_factory(None)

    envelope = await bridge.mount("nowhere", "card", client.mount_card_form, CARD_PARAMS)

    assert not envelope.success
    assert envelope.message == "Card form mounting failed: Container with id 'nowhere' not found"
    assert client.mounted == {}


@pytest.mark.asyncio
async def test_outcome_before_mount_resolves_is_delivered_after(bridge, fake_factory) -> None:
    client = fake_factory(None)
    client.on_mount_call = lambda params: params.on_success({"id": "pay_fast"})

    envelope = await bridge.mount(CARD, "card", client.mount_card_form, CARD_PARAMS)

    assert envelope.success
    outcome = _results(bridge).latest("card_form.outcome")
    assert outcome is not None and outcome.message == "Payment successful! ID: pay_fast"
    assert bridge.session(CARD) is None


@pytest.mark.asyncio
async def test_clear_while_mount_pending(bridge, fake_factory) -> None:
    client = fake_factory(None)
    client.mount_gate = asyncio.Event()
    task = asyncio.create_task(bridge.mount(CARD, "card", client.mount_card_form, CARD_PARAMS))
    await asyncio.sleep(0)

    bridge.clear(CARD)
    client.mount_gate.set()
    envelope = await task

    assert envelope.success
    assert bridge.session(CARD) is None
    client.params_for(CARD).on_success({"id": "pay_after_clear"})
    assert _results(bridge).latest("card_form.outcome") is None
