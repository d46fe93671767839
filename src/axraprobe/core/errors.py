"""
Error taxonomy shared by the lifecycle manager, probes, and widget bridge.

Every error is recovered into a `ResultEnvelope` before it reaches a probe
caller; the class name travels with the envelope as `error_type`.
"""

from __future__ import annotations


class HarnessError(RuntimeError):
    """Base class for failures a probe converts into an envelope."""

    @property
    def error_type(self) -> str:
        return self.__class__.__name__


class ConfigurationError(HarnessError):
    """A required credential is missing; the client is never constructed."""


class GateError(HarnessError):
    """A dependent probe ran while the client was not ready."""


class UnderlyingError(HarnessError):
    """Failure surfaced by the payment client, message passed through verbatim."""


class NetworkError(HarnessError):
    """The config-lookup request failed before any response arrived."""


class PolicyError(NetworkError):
    """The config-lookup request was blocked by a cross-origin policy."""


class MountError(HarnessError):
    """A widget could not be mounted into its surface."""


class InteractionError(HarnessError):
    """The end-user's action inside a mounted widget failed."""


class InteractionCancelled(HarnessError):
    """The end-user cancelled the action inside a mounted widget."""


__all__ = [
    "ConfigurationError",
    "GateError",
    "HarnessError",
    "InteractionCancelled",
    "InteractionError",
    "MountError",
    "NetworkError",
    "PolicyError",
    "UnderlyingError",
]
