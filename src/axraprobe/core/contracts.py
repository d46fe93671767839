"""
Contracts and payload schemas shared across the probe harness.

Envelopes and log entries are the only values that cross from probes to
callers. The payment client is consumed strictly through `PaymentClient`, so
the harness never depends on a concrete SDK build.
"""

from __future__ import annotations

import abc
import datetime as dt
import enum
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Literal, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from .errors import HarnessError

if TYPE_CHECKING:
    from .config import Credentials
    from .orchestrator import ProbeContext


LogSeverity = Literal["info", "success", "error"]
WidgetKind = Literal["card", "token"]


class BasePayload(BaseModel):
    """Base class for immutable harness payloads."""

    model_config = ConfigDict(extra="forbid", frozen=True)


class ResultEnvelope(BasePayload):
    """Uniform, terminal outcome of one probe attempt or widget interaction."""

    success: bool
    message: str
    data: Any = Field(default=None, description="Opaque payload from the client.")
    error_type: str | None = Field(
        default=None, description="Taxonomy class name when the attempt failed."
    )

    @classmethod
    def ok(cls, message: str, data: Any = None) -> ResultEnvelope:
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(
        cls,
        message: str,
        *,
        error: HarnessError | type[HarnessError] | None = None,
        data: Any = None,
    ) -> ResultEnvelope:
        error_type = None
        if isinstance(error, HarnessError):
            error_type = error.error_type
        elif error is not None:
            error_type = error.__name__
        return cls(success=False, message=message, data=data, error_type=error_type)


def _clock_stamp() -> str:
    return dt.datetime.now(tz=dt.UTC).strftime("%H:%M:%S.%f")[:12]


class LogEntry(BasePayload):
    """One line of the activity log."""

    timestamp: str = Field(default_factory=_clock_stamp, description="HH:MM:SS.mmm in UTC.")
    message: str
    severity: LogSeverity = Field(default="info")


class ClientState(enum.Enum):
    """Readiness of the single payment client handle."""

    UNINITIALIZED = "uninitialized"
    READY = "ready"
    FAILED = "failed"


class ClientOptions(BasePayload):
    """Normalised construction options handed to the client factory."""

    environment: str = Field(default="development")
    publishable_key: str
    business_id: str
    sdk_token: str


class CustomerData(BasePayload):
    name: str = Field(default="Test User")
    email: str = Field(default="test@example.com")
    metadata: dict[str, Any] = Field(default_factory=dict)


class PaymentIntentParams(BasePayload):
    amount: float = Field(gt=0)
    currency: str = Field(default="USD")
    business_id: str
    description: str = Field(default="SDK Test Payment")


SuccessCallback = Callable[[Any], None]
ErrorCallback = Callable[[Any], None]
CancelCallback = Callable[[], None]


class WidgetParams(BasePayload):
    """Parameters shared by both widget mounts, including the outcome hooks."""

    model_config = ConfigDict(extra="forbid", frozen=True, arbitrary_types_allowed=True)

    selector: str
    customer_data: CustomerData = Field(default_factory=CustomerData)
    on_success: SuccessCallback
    on_error: ErrorCallback
    on_cancel: CancelCallback


class CardFormParams(WidgetParams):
    amount: float = Field(gt=0)
    currency: str = Field(default="USD")
    business_id: str
    description: str = Field(default="Test Payment via AxraPay SDK")
    style: dict[str, str] | None = Field(default=None)


class TokenFormParams(WidgetParams):
    pass


@runtime_checkable
class PaymentClient(Protocol):
    """Capability exposed by the payment SDK under test."""

    async def initialize(self, options: ClientOptions) -> None: ...

    async def create_payment_intent(self, params: PaymentIntentParams) -> dict[str, Any]: ...

    async def mount_card_form(self, params: CardFormParams) -> None: ...

    async def mount_token_form(self, params: TokenFormParams) -> None: ...


ClientFactory = Callable[[ClientOptions], PaymentClient]


class ProbeConfig(BaseModel):
    """Baseline configuration contract applied to every probe."""

    model_config = ConfigDict(extra="allow")

    enabled: bool = Field(default=True)
    options: dict[str, Any] = Field(
        default_factory=dict, description="Arbitrary probe configuration."
    )


class BaseProbe(abc.ABC):
    """
    Abstract base class for all probes.

    A probe receives the shared `ProbeContext` from the orchestrator before it
    runs. Gated probes are only executed while the client is ready; the gate
    itself lives in the orchestrator so subclasses never re-check it.
    """

    name: str
    label: str
    start_message: str
    gated: bool = True

    def __init__(self) -> None:
        self._config = ProbeConfig()
        self._context: ProbeContext | None = None

    @property
    def context(self) -> ProbeContext:
        if self._context is None:
            raise RuntimeError(f"{self.__class__.__name__} has not been attached to a harness.")
        return self._context

    def set_context(self, context: ProbeContext) -> None:
        """Attach the shared harness context to the probe."""
        self._context = context

    def configure(self, config: ProbeConfig) -> None:
        """Apply the provided configuration prior to the first run."""
        self._config = config

    @abc.abstractmethod
    async def run(self, credentials: Credentials) -> ResultEnvelope:
        """Execute the probe once and describe the attempt."""


__all__ = [
    "BasePayload",
    "BaseProbe",
    "CardFormParams",
    "ClientFactory",
    "ClientOptions",
    "ClientState",
    "CustomerData",
    "LogEntry",
    "LogSeverity",
    "PaymentClient",
    "PaymentIntentParams",
    "ProbeConfig",
    "ResultEnvelope",
    "TokenFormParams",
    "WidgetKind",
    "WidgetParams",
]
