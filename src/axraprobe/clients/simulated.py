"""
Simple in-memory payment client for exercising the harness offline.

The simulator implements the `PaymentClient` capability so every probe can
run without the real SDK. Mounted forms are tracked by selector and their
end-user outcome is either scripted after a delay or driven explicitly with
`complete()`.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Literal

from ..core.contracts import (
    CardFormParams,
    ClientOptions,
    PaymentIntentParams,
    TokenFormParams,
    WidgetParams,
)

logger = logging.getLogger(__name__)

Outcome = Literal["success", "error", "cancel", "none"]


class SimulatedClientError(RuntimeError):
    """Raised by the simulator the way the real SDK rejects calls."""


@dataclass
class MountedForm:
    kind: Literal["card", "token"]
    params: WidgetParams
    completed: bool = field(default=False)


class SimulatedPaymentClient:
    """Deterministic stand-in for the payment SDK."""

    def __init__(
        self,
        *,
        outcome: Outcome = "success",
        delay_seconds: float = 0.2,
        error_message: str = "Card declined",
        fail_mount: bool = False,
    ) -> None:
        self._outcome = outcome
        self._delay = delay_seconds
        self._error_message = error_message
        self._fail_mount = fail_mount
        self._options: ClientOptions | None = None
        self._sequence = itertools.count(1)
        self._mounted: dict[str, MountedForm] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}

    @property
    def options(self) -> ClientOptions | None:
        return self._options

    @property
    def mounted(self) -> dict[str, MountedForm]:
        return dict(self._mounted)

    @property
    def pending_outcomes(self) -> int:
        return len(self._timers)

    async def initialize(self, options: ClientOptions) -> None:
        if not options.publishable_key.startswith("pk_"):
            raise SimulatedClientError("Invalid publishable key format")
        self._options = options
        logger.info("Simulated client initialised for business %s", options.business_id)

    async def create_payment_intent(self, params: PaymentIntentParams) -> dict[str, Any]:
        self._require_initialized()
        if params.business_id != self._options.business_id:  # type: ignore[union-attr]
            raise SimulatedClientError(f"Unknown business {params.business_id}")
        return {
            "id": f"pi_sim_{next(self._sequence):06d}",
            "amount": params.amount,
            "currency": params.currency,
            "description": params.description,
            "status": "requires_payment_method",
        }

    async def mount_card_form(self, params: CardFormParams) -> None:
        await self._mount("card", params)

    async def mount_token_form(self, params: TokenFormParams) -> None:
        await self._mount("token", params)

    def complete(self, selector: str, outcome: Outcome | None = None) -> bool:
        """
        Fire the end-user outcome for a mounted form.

        Returns False when nothing is mounted at the selector or the form
        already reported.
        """
        form = self._mounted.get(selector)
        outcome = outcome or self._outcome
        if form is None or form.completed or outcome == "none":
            return False
        form.completed = True
        params = form.params
        if outcome == "success":
            params.on_success(self._success_payload(form))
        elif outcome == "error":
            params.on_error(self._error_message)
        else:
            params.on_cancel()
        return True

    def close(self) -> None:
        """Cancel scheduled outcomes that have not fired yet."""
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()

    async def _mount(self, kind: Literal["card", "token"], params: WidgetParams) -> None:
        self._require_initialized()
        if self._fail_mount:
            raise SimulatedClientError(f"Element {params.selector} could not be rendered")
        self._mounted[params.selector] = MountedForm(kind=kind, params=params)
        logger.debug("Simulated %s form mounted at %s", kind, params.selector)
        if self._outcome != "none":
            previous = self._timers.pop(params.selector, None)
            if previous is not None:
                previous.cancel()
            loop = asyncio.get_running_loop()
            self._timers[params.selector] = loop.call_later(
                self._delay, self._fire, params.selector
            )

    def _fire(self, selector: str) -> None:
        self._timers.pop(selector, None)
        self.complete(selector)

    def _success_payload(self, form: MountedForm) -> dict[str, Any]:
        number = next(self._sequence)
        if form.kind == "token":
            return {
                "token": {
                    "id": f"tok_sim_{number:06d}",
                    "card": {"brand": "visa", "last4": "4242"},
                }
            }
        params = form.params
        return {
            "id": f"pay_sim_{number:06d}",
            "status": "succeeded",
            "amount": getattr(params, "amount", None),
            "currency": getattr(params, "currency", None),
        }

    def _require_initialized(self) -> None:
        if self._options is None:
            raise SimulatedClientError("Client has not been initialised")


class SimulatedClientFactory:
    """Client factory that remembers every simulator it builds."""

    def __init__(
        self,
        *,
        outcome: Outcome = "success",
        delay_seconds: float = 0.2,
        error_message: str = "Card declined",
        fail_mount: bool = False,
    ) -> None:
        self.outcome = outcome
        self.delay_seconds = delay_seconds
        self.error_message = error_message
        self.fail_mount = fail_mount
        self.clients: list[SimulatedPaymentClient] = []

    def __call__(self, options: ClientOptions) -> SimulatedPaymentClient:
        client = SimulatedPaymentClient(
            outcome=self.outcome,
            delay_seconds=self.delay_seconds,
            error_message=self.error_message,
            fail_mount=self.fail_mount,
        )
        self.clients.append(client)
        return client

    @property
    def latest(self) -> SimulatedPaymentClient | None:
        return self.clients[-1] if self.clients else None

    def close(self) -> None:
        for client in self.clients:
            client.close()


__all__ = [
    "MountedForm",
    "SimulatedClientError",
    "SimulatedClientFactory",
    "SimulatedPaymentClient",
]
