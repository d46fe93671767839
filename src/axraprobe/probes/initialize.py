"""
Probe that constructs the payment client and opens the readiness gate.
"""

from __future__ import annotations

from ..core.config import DEMO_SDK_TOKEN, Credentials
from ..core.contracts import BaseProbe, ProbeConfig, ResultEnvelope


class InitializeProbe(BaseProbe):
    """Validate credentials and (re)build the client handle."""

    name = "initialize"
    label = "SDK initialization"
    start_message = "Starting SDK initialization test..."
    gated = False

    def __init__(self) -> None:
        super().__init__()
        self._environment = "development"
        self._demo_sdk_token = DEMO_SDK_TOKEN

    def configure(self, config: ProbeConfig) -> None:
        super().configure(config)
        options = config.options
        self._environment = options.get("environment", self._environment)
        self._demo_sdk_token = options.get("demo_sdk_token", self._demo_sdk_token)

    async def run(self, credentials: Credentials) -> ResultEnvelope:
        lifecycle = self.context.lifecycle
        lifecycle.configure(environment=self._environment, demo_sdk_token=self._demo_sdk_token)
        return await lifecycle.initialize(credentials)


__all__ = ["InitializeProbe"]
