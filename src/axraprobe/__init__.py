"""
AxraPay SDK integration probe harness.

Runs a fixed set of probes against a payment client, records a time-ordered
activity log, and reports every attempt as a uniform result envelope.
"""

from .core.contracts import ResultEnvelope
from .core.orchestrator import ProbeOrchestrator
from .harness import build_orchestrator

__all__ = ["ProbeOrchestrator", "ResultEnvelope", "__version__", "build_orchestrator"]

__version__ = "0.1.0"
