"""
Core infrastructure for the probe harness.

This package exposes the log bus, result channel, configuration, lifecycle
manager, widget bridge, and the orchestrator that ties them together.
"""

from .bridge import SessionState, WidgetOutcomeBridge, WidgetSession
from .bus import LogBus, ResultChannel, Subscription
from .config import ConfigError, ConfigService, ConfigSnapshot, ConfigStore, Credentials
from .contracts import (
    BaseProbe,
    ClientOptions,
    ClientState,
    LogEntry,
    PaymentClient,
    ProbeConfig,
    ResultEnvelope,
)
from .lifecycle import SDKLifecycleManager
from .orchestrator import ProbeContext, ProbeOrchestrator
from .surfaces import Surface, SurfaceRegistry

__all__ = [
    "BaseProbe",
    "ClientOptions",
    "ClientState",
    "ConfigError",
    "ConfigService",
    "ConfigSnapshot",
    "ConfigStore",
    "Credentials",
    "LogBus",
    "LogEntry",
    "PaymentClient",
    "ProbeConfig",
    "ProbeContext",
    "ProbeOrchestrator",
    "ResultChannel",
    "ResultEnvelope",
    "SDKLifecycleManager",
    "SessionState",
    "Subscription",
    "Surface",
    "SurfaceRegistry",
    "WidgetOutcomeBridge",
    "WidgetSession",
]
