"""
Ownership and readiness of the single payment client handle.

The manager is the only component that constructs or drops the client. Probes
reach the handle exclusively through `require_client`, which enforces the
readiness gate.
"""

from __future__ import annotations

import logging

from .config import DEMO_SDK_TOKEN, Credentials
from .contracts import ClientFactory, ClientOptions, ClientState, PaymentClient, ResultEnvelope
from .errors import ConfigurationError, GateError, UnderlyingError

logger = logging.getLogger(__name__)

INIT_FAILED_PREFIX = "SDK initialization failed"
GATE_MESSAGE = "Please initialize the SDK first"


class SDKLifecycleManager:
    """Construct, replace, and reset the underlying payment client."""

    def __init__(
        self,
        client_factory: ClientFactory,
        *,
        environment: str = "development",
        demo_sdk_token: str = DEMO_SDK_TOKEN,
    ) -> None:
        self._client_factory = client_factory
        self._environment = environment
        self._demo_sdk_token = demo_sdk_token
        self._client: PaymentClient | None = None
        self._state = ClientState.UNINITIALIZED

    @property
    def state(self) -> ClientState:
        return self._state

    def is_ready(self) -> bool:
        return self._state is ClientState.READY

    def configure(self, *, environment: str | None = None, demo_sdk_token: str | None = None) -> None:
        """Adjust construction defaults; applies to the next `initialize` call."""
        if environment:
            self._environment = environment
        if demo_sdk_token:
            self._demo_sdk_token = demo_sdk_token

    def normalise(self, credentials: Credentials) -> ClientOptions:
        """Build client options, substituting the demo token when none is set."""
        missing = credentials.missing_fields()
        if missing:
            raise ConfigurationError("Please provide both publishable key and business ID")
        return ClientOptions(
            environment=self._environment,
            publishable_key=credentials.publishable_key,
            business_id=credentials.business_id,
            sdk_token=credentials.sdk_token or self._demo_sdk_token,
        )

    async def initialize(self, credentials: Credentials) -> ResultEnvelope:
        """
        Validate credentials and construct a fresh client.

        A second call replaces any existing handle; the last writer wins.
        """
        try:
            options = self.normalise(credentials)
        except ConfigurationError as exc:
            # Rejected before touching the client: nothing was constructed.
            self.reset()
            logger.info("Initialization rejected: %s", exc)
            return ResultEnvelope.fail(f"{INIT_FAILED_PREFIX}: {exc}", error=exc)

        self.reset()
        try:
            client = self._client_factory(options)
            await client.initialize(options)
        except Exception as exc:
            self._state = ClientState.FAILED
            error = UnderlyingError(str(exc))
            logger.warning("Payment client construction failed: %s", exc)
            return ResultEnvelope.fail(
                f"{INIT_FAILED_PREFIX}: {error}", error=error, data={"error": str(exc)}
            )

        self._client = client
        self._state = ClientState.READY
        logger.info(
            "Payment client ready (environment=%s, business_id=%s)",
            options.environment,
            options.business_id,
        )
        return ResultEnvelope.ok(
            "SDK initialized successfully! Business config loaded.",
            data={"initialized": True},
        )

    def require_client(self) -> PaymentClient:
        """Return the ready client handle or raise `GateError`."""
        if self._state is not ClientState.READY or self._client is None:
            raise GateError(GATE_MESSAGE)
        return self._client

    def reset(self) -> None:
        """
        Drop the client handle. Safe to call repeatedly.

        A client exposing a synchronous `close()` is closed so it stops
        delivering work scheduled before it was replaced.
        """
        if self._client is not None:
            logger.info("Dropping payment client handle.")
            close = getattr(self._client, "close", None)
            if callable(close):
                try:
                    close()
                except Exception:
                    logger.exception("Closing the dropped payment client failed.")
        self._client = None
        self._state = ClientState.UNINITIALIZED


__all__ = ["GATE_MESSAGE", "SDKLifecycleManager"]
