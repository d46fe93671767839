"""
Probe that creates a payment intent with a fixed test amount.
"""

from __future__ import annotations

import logging

from ..core.config import Credentials
from ..core.contracts import BaseProbe, PaymentIntentParams, ProbeConfig, ResultEnvelope
from ..core.errors import UnderlyingError

logger = logging.getLogger(__name__)


class PaymentIntentProbe(BaseProbe):
    """Create one intent and report its identifier."""

    name = "payment_intent"
    label = "Payment intent creation"
    start_message = "Testing payment intent creation..."

    def __init__(self) -> None:
        super().__init__()
        self._amount = 29.99
        self._currency = "USD"
        self._description = "SDK Test Payment"

    def configure(self, config: ProbeConfig) -> None:
        super().configure(config)
        options = config.options
        self._amount = float(options.get("amount", self._amount))
        self._currency = str(options.get("currency", self._currency)).upper()
        self._description = options.get("description", self._description)

    async def run(self, credentials: Credentials) -> ResultEnvelope:
        client = self.context.lifecycle.require_client()
        params = PaymentIntentParams(
            amount=self._amount,
            currency=self._currency,
            business_id=credentials.business_id,
            description=self._description,
        )
        try:
            intent = await client.create_payment_intent(params)
        except Exception as exc:
            error = UnderlyingError(str(exc))
            logger.warning("create_payment_intent rejected: %s", exc)
            return ResultEnvelope.fail(
                f"{self.label} failed: {error}", error=error, data={"error": str(exc)}
            )
        intent_id = intent.get("id") if isinstance(intent, dict) else getattr(intent, "id", None)
        if not intent_id:
            error = UnderlyingError("Payment intent response has no id")
            logger.warning("create_payment_intent returned %r without an id", intent)
            return ResultEnvelope.fail(
                f"{self.label} failed: {error}", error=error, data=intent
            )
        return ResultEnvelope.ok(
            f"Payment intent created successfully! ID: {intent_id}", data=intent
        )


__all__ = ["PaymentIntentProbe"]
