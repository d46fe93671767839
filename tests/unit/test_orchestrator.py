import asyncio

import pytest

from axraprobe.clients.simulated import SimulatedClientFactory
from axraprobe.core.config import Credentials
from axraprobe.core.contracts import BaseProbe, ClientState, ResultEnvelope
from axraprobe.core.errors import NetworkError
from axraprobe.core.lifecycle import GATE_MESSAGE
from axraprobe.harness import build_orchestrator
from axraprobe.probes.widgets import _WidgetProbe


class ScriptedProbe(BaseProbe):
    """Ungated probe whose attempts resolve when the test releases them."""

    name = "scripted"
    label = "Scripted probe"
    start_message = "Running scripted probe..."
    gated = False

    def __init__(self) -> None:
        super().__init__()
        self.gates: list[asyncio.Event] = []

    async def run(self, credentials: Credentials) -> ResultEnvelope:
        gate = asyncio.Event()
        self.gates.append(gate)
        attempt = len(self.gates)
        await gate.wait()
        return ResultEnvelope.ok(f"attempt {attempt} resolved")


class CrashingProbe(BaseProbe):
    name = "crashing"
    label = "Crashing probe"
    start_message = "Running crashing probe..."
    gated = False

    def __init__(self, exc: Exception) -> None:
        super().__init__()
        self._exc = exc

    async def run(self, credentials: Credentials) -> ResultEnvelope:
        raise self._exc


def _messages(harness) -> list[tuple[str, str]]:
    return [(entry.severity, entry.message) for entry in harness.logs]


@pytest.mark.asyncio
async def test_gated_probe_rejected_before_initialize(harness, fake_factory) -> None:
    envelope = await harness.test_payment_intent()

    assert not envelope.success
    assert envelope.message == GATE_MESSAGE
    assert envelope.error_type == "GateError"
    assert _messages(harness) == [("info", GATE_MESSAGE)]
    assert harness.results.latest("payment_intent") == envelope
    assert fake_factory.clients == []


@pytest.mark.asyncio
async def test_initialize_then_payment_intent_logs_in_order(harness, fake_factory) -> None:
    init = await harness.initialize()
    intent = await harness.test_payment_intent()

    assert init.success and intent.success
    assert intent.message == "Payment intent created successfully! ID: pi_123"
    assert _messages(harness) == [
        ("info", "Starting SDK initialization test..."),
        ("success", "SDK initialized successfully! Business config loaded."),
        ("info", "Testing payment intent creation..."),
        ("success", "Payment intent created successfully! ID: pi_123"),
    ]
    params = fake_factory.latest.intents[0]
    assert params.amount == pytest.approx(29.99)
    assert params.currency == "USD"
    assert params.business_id == "biz_lab"
    assert fake_factory.latest.options.sdk_token == "demo-sdk-token-123"


@pytest.mark.asyncio
async def test_missing_business_id_fails_initialize(harness, fake_factory) -> None:
    harness.config.update(business_id="   ")

    envelope = await harness.initialize()

    assert envelope.message == (
        "SDK initialization failed: Please provide both publishable key and business ID"
    )
    assert harness.state is ClientState.UNINITIALIZED
    assert fake_factory.clients == []
    assert harness.logs.entries[-1].severity == "error"


@pytest.mark.asyncio
async def test_payment_intent_rejection_passes_message_through(harness, fake_factory) -> None:
    await harness.initialize()
    fake_factory.latest.intent_error = RuntimeError("Amount below minimum")

    envelope = await harness.test_payment_intent()

    assert envelope.message == "Payment intent creation failed: Amount below minimum"
    assert envelope.error_type == "UnderlyingError"


@pytest.mark.asyncio
async def test_cors_runs_without_initialize(harness, lookup_client) -> None:
    envelope = await harness.test_cors()

    assert envelope.success
    assert lookup_client.requests
    assert _messages(harness)[0] == ("info", "Testing CORS headers...")


@pytest.mark.asyncio
async def test_card_form_mount_and_outcome(harness, fake_factory) -> None:
    await harness.initialize()

    mounted = await harness.test_card_form()

    assert mounted.success
    params = fake_factory.latest.params_for("cardFormContainer")
    assert params.customer_data.name == "Lab User"
    assert params.business_id == "biz_lab"
    params.on_success({"id": "pay_7"})

    assert harness.results.latest("card_form") == mounted
    outcome = harness.results.latest("card_form.outcome")
    assert outcome.message == "Payment successful! ID: pay_7"
    assert _messages(harness)[-3:] == [
        ("info", "Testing card form mounting..."),
        ("success", "AxraPay card form mounted successfully! Try making a payment."),
        ("success", "Payment successful! ID: pay_7"),
    ]


@pytest.mark.asyncio
async def test_token_form_metadata(harness, fake_factory) -> None:
    await harness.initialize()

    envelope = await harness.test_token_form()

    assert envelope.success
    params = fake_factory.latest.params_for("tokenFormContainer")
    assert params.customer_data.metadata == {"test": True, "source": "sdk-test"}


@pytest.mark.asyncio
async def test_clear_surface_logs_and_suppresses_outcome(harness, fake_factory) -> None:
    await harness.initialize()
    await harness.test_card_form()
    params = fake_factory.latest.params_for("cardFormContainer")

    assert harness.clear_surface("cardFormContainer") is True
    params.on_cancel()

    assert harness.results.latest("card_form.outcome") is None
    assert _messages(harness)[-1] == ("info", "Card form cleared")
    assert harness.clear_surface("unknown") is False


@pytest.mark.asyncio
async def test_last_resolved_attempt_wins(harness) -> None:
    probe = ScriptedProbe()
    harness.add_probe(probe)

    first = asyncio.create_task(harness.run("scripted"))
    second = asyncio.create_task(harness.run("scripted"))
    while len(probe.gates) < 2:
        await asyncio.sleep(0)
    assert harness.results.latest("scripted") is None

    probe.gates[1].set()
    await second
    probe.gates[0].set()
    await first

    latest = harness.results.latest("scripted")
    assert latest.message == "attempt 1 resolved"
    assert [entry.message for entry in harness.logs][-2:] == [
        "attempt 2 resolved",
        "attempt 1 resolved",
    ]


@pytest.mark.asyncio
async def test_unexpected_exception_is_recovered(harness) -> None:
    harness.add_probe(CrashingProbe(ValueError("boom")))

    envelope = await harness.run("crashing")

    assert not envelope.success
    assert envelope.message == "Crashing probe failed: boom"
    assert envelope.error_type == "UnderlyingError"


@pytest.mark.asyncio
async def test_harness_error_keeps_its_type(harness) -> None:
    harness.add_probe(CrashingProbe(NetworkError("offline")))

    envelope = await harness.run("crashing")

    assert envelope.error_type == "NetworkError"


@pytest.mark.asyncio
async def test_reset_closes_gate_and_drops_sessions(harness, fake_factory) -> None:
    await harness.initialize()
    await harness.test_card_form()
    params = fake_factory.latest.params_for("cardFormContainer")

    harness.reset()
    params.on_success({"id": "pay_late"})

    assert harness.state is ClientState.UNINITIALIZED
    assert harness.bridge.sessions() == []
    assert harness.results.latest("card_form.outcome") is None
    rejected = await harness.test_card_form()
    assert rejected.message == GATE_MESSAGE


def test_duplicate_and_unknown_probes(harness) -> None:
    assert harness.probe_names == ["initialize", "payment_intent", "card_form", "token_form", "cors"]
    with pytest.raises(ValueError):
        harness.add_probe(ScriptedProbe())
        harness.add_probe(ScriptedProbe())
    with pytest.raises(KeyError):
        harness.probe("refund")


@pytest.mark.asyncio
async def test_payment_intent_without_id_is_a_failure(harness, fake_factory) -> None:
    await harness.initialize()
    fake_factory.latest.intent_response = {"amount": 29.99}

    envelope = await harness.test_payment_intent()

    assert not envelope.success
    assert envelope.message == "Payment intent creation failed: Payment intent response has no id"
    assert envelope.error_type == "UnderlyingError"
    assert "ID: None" not in envelope.message
    assert harness.logs.entries[-1].severity == "error"


def test_widget_probe_requires_mount_hooks() -> None:
    class HalfWidgetProbe(_WidgetProbe):
        name = "half"
        label = "Half widget"
        start_message = "Half..."
        widget = "card"
        default_surface_id = "cardFormContainer"

    with pytest.raises(TypeError):
        HalfWidgetProbe()


@pytest.mark.asyncio
async def test_reinitialize_stops_outcomes_from_replaced_client(sample_config_service) -> None:
    factory = SimulatedClientFactory(outcome="success", delay_seconds=0.05)
    harness = build_orchestrator(sample_config_service.snapshot, client_factory=factory)
    await harness.initialize()
    await harness.test_card_form()
    replaced = factory.latest
    assert replaced.pending_outcomes == 1

    await harness.initialize()
    await asyncio.sleep(0.1)

    assert replaced.pending_outcomes == 0
    assert harness.results.latest("card_form.outcome") is None
    assert factory.latest is not replaced
