from __future__ import annotations

import asyncio
import textwrap
from pathlib import Path
from typing import Any

import pytest

from axraprobe.core.config import ConfigService, ConfigSnapshot
from axraprobe.core.contracts import (
    CardFormParams,
    ClientOptions,
    PaymentIntentParams,
    TokenFormParams,
    WidgetParams,
)
from axraprobe.core.orchestrator import ProbeOrchestrator
from axraprobe.harness import build_orchestrator


def _write_yaml(path: Path, content: str) -> None:
    path.write_text(textwrap.dedent(content).strip() + "\n", encoding="utf-8")


@pytest.fixture
def sample_config_dir(tmp_path: Path) -> Path:
    """
    Provide a temporary configuration directory for tests.
    """

    config_dir = tmp_path / "config"
    config_dir.mkdir()
    config_yaml = f"""
    sdk:
      environment: "development"

    probes:
      amount: 29.99
      currency: "usd"
      customer_name: "Lab User"
      customer_email: "lab@example.com"

    cors:
      endpoint: "https://config.example.test/api/sdk/config"
      timeout_seconds: 2

    surfaces:
      card: "cardFormContainer"
      token: "tokenFormContainer"

    interaction:
      outcome: "none"
      delay_seconds: 0

    control_api:
      host: "127.0.0.1"
      port: 9000
      serve_api: false

    logging:
      level: "DEBUG"
      file: "{(tmp_path / 'logs' / 'probe.log').as_posix()}"
    """
    secrets_yaml = """
    credentials:
      publishable_key: "pk_test_lab_123456"
      business_id: "biz_lab"
    """
    _write_yaml(config_dir / "config.yaml", config_yaml)
    _write_yaml(config_dir / "secrets.yaml", secrets_yaml)
    return config_dir


@pytest.fixture
def sample_config_service(sample_config_dir: Path) -> ConfigService:
    """Return a ConfigService wired to the temporary configuration."""

    return ConfigService(config_dir=sample_config_dir)


@pytest.fixture
def sample_snapshot(sample_config_service: ConfigService) -> ConfigSnapshot:
    return sample_config_service.snapshot


class FakePaymentClient:
    """Scriptable payment client; widget outcomes are fired by the test."""

    def __init__(self) -> None:
        self.options: ClientOptions | None = None
        self.init_error: Exception | None = None
        self.intent_error: Exception | None = None
        self.intent_response: dict[str, Any] | None = None
        self.mount_error: Exception | None = None
        self.mount_gate: asyncio.Event | None = None
        self.intents: list[PaymentIntentParams] = []
        self.mounted: dict[str, WidgetParams] = {}
        self.on_mount_call: Any = None

    async def initialize(self, options: ClientOptions) -> None:
        self.options = options
        if self.init_error is not None:
            raise self.init_error

    async def create_payment_intent(self, params: PaymentIntentParams) -> dict[str, Any]:
        self.intents.append(params)
        if self.intent_error is not None:
            raise self.intent_error
        if self.intent_response is not None:
            return self.intent_response
        return {"id": "pi_123", "amount": params.amount}

    async def mount_card_form(self, params: CardFormParams) -> None:
        await self._mount(params)

    async def mount_token_form(self, params: TokenFormParams) -> None:
        await self._mount(params)

    async def _mount(self, params: WidgetParams) -> None:
        self.mounted[params.selector] = params
        if self.on_mount_call is not None:
            self.on_mount_call(params)
        if self.mount_gate is not None:
            await self.mount_gate.wait()
        if self.mount_error is not None:
            raise self.mount_error

    def params_for(self, surface_id: str) -> WidgetParams:
        for selector, params in self.mounted.items():
            if selector.startswith(f"#{surface_id} "):
                return params
        raise KeyError(surface_id)


class FakeClientFactory:
    def __init__(self) -> None:
        self.clients: list[FakePaymentClient] = []
        self.prepared: FakePaymentClient | None = None

    def __call__(self, options: ClientOptions) -> FakePaymentClient:
        client = self.prepared or FakePaymentClient()
        self.prepared = None
        self.clients.append(client)
        return client

    @property
    def latest(self) -> FakePaymentClient:
        return self.clients[-1]


class StubLookupClient:
    def __init__(self, status: int = 200, error: Exception | None = None) -> None:
        self.status = status
        self.error = error
        self.requests: list[dict[str, Any]] = []

    async def fetch(
        self, *, url: str, params: dict[str, str], headers: dict[str, str]
    ) -> int:
        self.requests.append({"url": url, "params": params, "headers": headers})
        if self.error is not None:
            raise self.error
        return self.status


@pytest.fixture
def fake_factory() -> FakeClientFactory:
    return FakeClientFactory()


@pytest.fixture
def lookup_client() -> StubLookupClient:
    return StubLookupClient()


@pytest.fixture
def harness(
    sample_snapshot: ConfigSnapshot,
    fake_factory: FakeClientFactory,
    lookup_client: StubLookupClient,
) -> ProbeOrchestrator:
    return build_orchestrator(
        sample_snapshot, client_factory=fake_factory, lookup_client=lookup_client
    )
