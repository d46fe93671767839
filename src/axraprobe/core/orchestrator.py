"""
Gated execution of the probe set.

The orchestrator owns the log bus, result channel, lifecycle manager, and
widget bridge, and runs every probe through one discipline: gate check,
start entry, execution, envelope publication, resolution entry. Probes never
raise to the caller; every failure is recovered into an envelope here.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass

from .bridge import WIDGET_PROFILES, WidgetOutcomeBridge
from .bus import LogBus, ResultChannel
from .config import ConfigSnapshot, ConfigStore
from .contracts import BaseProbe, ClientFactory, ClientState, ProbeConfig, ResultEnvelope
from .errors import GateError, HarnessError, UnderlyingError
from .lifecycle import GATE_MESSAGE, SDKLifecycleManager
from .surfaces import SurfaceRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProbeContext:
    """Shared collaborators handed to every probe."""

    lifecycle: SDKLifecycleManager
    bridge: WidgetOutcomeBridge
    logs: LogBus
    results: ResultChannel


class ProbeOrchestrator:
    """Register probes and run them under the shared gate/log/envelope contract."""

    def __init__(
        self,
        client_factory: ClientFactory,
        *,
        config_store: ConfigStore | None = None,
        logs: LogBus | None = None,
        results: ResultChannel | None = None,
        surfaces: SurfaceRegistry | None = None,
    ) -> None:
        self.logs = logs or LogBus()
        self.results = results or ResultChannel()
        self.config = config_store or ConfigStore()
        self.surfaces = surfaces or SurfaceRegistry()
        self.lifecycle = SDKLifecycleManager(client_factory)
        self.bridge = WidgetOutcomeBridge(
            logs=self.logs, results=self.results, surfaces=self.surfaces
        )
        self._context = ProbeContext(
            lifecycle=self.lifecycle,
            bridge=self.bridge,
            logs=self.logs,
            results=self.results,
        )
        self._probes: OrderedDict[str, BaseProbe] = OrderedDict()

    @property
    def state(self) -> ClientState:
        return self.lifecycle.state

    def is_ready(self) -> bool:
        return self.lifecycle.is_ready()

    @property
    def probe_names(self) -> list[str]:
        return list(self._probes)

    def probe(self, name: str) -> BaseProbe:
        try:
            return self._probes[name]
        except KeyError as exc:
            raise KeyError(f"Unknown probe '{name}'. Available: {self.probe_names}") from exc

    def add_probe(self, probe: BaseProbe, config: ProbeConfig | None = None) -> None:
        """
        Register a probe with an optional configuration.

        Probes receive the shared context before configuration.
        """
        if probe.name in self._probes:
            raise ValueError(f"Probe {probe.name} is already registered.")
        probe.set_context(self._context)
        probe.configure(config or ProbeConfig())
        self._probes[probe.name] = probe
        surface_id = getattr(probe, "surface_id", None)
        if surface_id:
            self.surfaces.register(surface_id)
        logger.info("Registered probe %s", probe.name)

    def apply_snapshot(self, snapshot: ConfigSnapshot) -> None:
        """Reconfigure every registered probe from a validated snapshot."""
        for name, probe in self._probes.items():
            try:
                config = snapshot.probe_config(name)
            except KeyError:
                logger.debug("No config builder registered for probe %s", name)
                continue
            probe.configure(config)
            surface_id = getattr(probe, "surface_id", None)
            if surface_id:
                self.surfaces.register(surface_id)

    async def run(self, name: str) -> ResultEnvelope:
        """Run one probe and return its attempt envelope. Never raises for probe failures."""
        probe = self.probe(name)
        credentials = self.config.current
        if probe.gated and not self.lifecycle.is_ready():
            return self._reject(probe)

        self.logs.info(probe.start_message)
        self.results.reset_slot(probe.name)
        try:
            envelope = await probe.run(credentials)
        except GateError:
            # Readiness was lost while the probe was suspended.
            return self._reject(probe)
        except HarnessError as exc:
            envelope = ResultEnvelope.fail(f"{probe.label} failed: {exc}", error=exc)
        except Exception as exc:
            logger.exception("Probe %s crashed.", probe.name)
            envelope = ResultEnvelope.fail(
                f"{probe.label} failed: {exc}", error=UnderlyingError(str(exc))
            )
        self.results.publish(probe.name, envelope)
        self.logs.record(envelope)
        return envelope

    async def initialize(self) -> ResultEnvelope:
        return await self.run("initialize")

    async def test_payment_intent(self) -> ResultEnvelope:
        return await self.run("payment_intent")

    async def test_card_form(self) -> ResultEnvelope:
        return await self.run("card_form")

    async def test_token_form(self) -> ResultEnvelope:
        return await self.run("token_form")

    async def test_cors(self) -> ResultEnvelope:
        return await self.run("cors")

    def clear_surface(self, surface_id: str) -> bool:
        """Empty a mount surface; pending widget outcomes for it are discarded."""
        known = self.bridge.clear(surface_id)
        if known:
            self.logs.info(f"{self._surface_title(surface_id)} cleared")
        return known

    def clear_logs(self) -> None:
        self.logs.clear()

    def reset(self) -> None:
        """Drop the client and every pending widget session."""
        self.bridge.reset()
        self.lifecycle.reset()
        logger.info("Harness reset.")

    def _reject(self, probe: BaseProbe) -> ResultEnvelope:
        envelope = ResultEnvelope.fail(GATE_MESSAGE, error=GateError)
        self.results.publish(probe.name, envelope)
        self.logs.info(envelope.message)
        logger.debug("Probe %s rejected by readiness gate.", probe.name)
        return envelope

    def _surface_title(self, surface_id: str) -> str:
        for probe in self._probes.values():
            widget = getattr(probe, "widget", None)
            if widget and getattr(probe, "surface_id", None) == surface_id:
                return f"{WIDGET_PROFILES[widget].title} form"
        return f"Surface {surface_id}"


__all__ = ["ProbeContext", "ProbeOrchestrator"]
