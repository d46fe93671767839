"""
Wire a ready-to-use orchestrator from a configuration snapshot.
"""

from __future__ import annotations

import logging

from .clients.simulated import SimulatedClientFactory
from .core.bus import LogBus
from .core.config import ConfigSnapshot, ConfigStore
from .core.contracts import BaseProbe, ClientFactory
from .core.orchestrator import ProbeOrchestrator
from .core.surfaces import SurfaceRegistry
from .probes import PROBE_REGISTRY, ConfigLookupClient, CorsProbe

logger = logging.getLogger(__name__)


def simulated_factory_for(snapshot: ConfigSnapshot) -> SimulatedClientFactory:
    interaction = snapshot.interaction
    return SimulatedClientFactory(
        outcome=interaction.outcome,
        delay_seconds=interaction.delay_seconds,
        error_message=interaction.error_message,
    )


def build_orchestrator(
    snapshot: ConfigSnapshot,
    *,
    client_factory: ClientFactory | None = None,
    lookup_client: ConfigLookupClient | None = None,
    logs: LogBus | None = None,
) -> ProbeOrchestrator:
    """
    Instantiate every registered probe and configure it from the snapshot.

    Without an explicit client factory the in-memory simulator is used.
    """
    if client_factory is None:
        client_factory = simulated_factory_for(snapshot)
        logger.info("No payment client factory supplied; using the simulator.")
    orchestrator = ProbeOrchestrator(
        client_factory,
        config_store=ConfigStore.from_snapshot(snapshot),
        logs=logs,
        surfaces=SurfaceRegistry((snapshot.surfaces.card, snapshot.surfaces.token)),
    )
    for name, probe_cls in PROBE_REGISTRY.items():
        probe: BaseProbe
        if probe_cls is CorsProbe:
            probe = CorsProbe(client=lookup_client)
        else:
            probe = probe_cls()
        orchestrator.add_probe(probe, snapshot.probe_config(name))
    return orchestrator


__all__ = ["build_orchestrator", "simulated_factory_for"]
