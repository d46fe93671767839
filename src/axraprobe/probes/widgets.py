"""
Probes that mount the card and token widgets.

Both delegate to the widget bridge, so the envelope they return only states
whether the mount call succeeded. The end-user's action inside the widget is
reported separately on the `<probe>.outcome` result slot.
"""

from __future__ import annotations

import abc
from typing import Any

from ..core.config import Credentials
from ..core.contracts import BaseProbe, PaymentClient, ProbeConfig, ResultEnvelope, WidgetKind


class _WidgetProbe(BaseProbe):
    widget: WidgetKind
    default_surface_id: str

    def __init__(self) -> None:
        super().__init__()
        self._surface_id = self.default_surface_id
        self._customer_name = "Test User"
        self._customer_email = "test@example.com"

    @property
    def surface_id(self) -> str:
        return self._surface_id

    def configure(self, config: ProbeConfig) -> None:
        super().configure(config)
        options = config.options
        self._surface_id = options.get("surface_id", self._surface_id)
        self._customer_name = options.get("customer_name", self._customer_name)
        self._customer_email = options.get("customer_email", self._customer_email)

    async def run(self, credentials: Credentials) -> ResultEnvelope:
        client = self.context.lifecycle.require_client()
        return await self.context.bridge.mount(
            self._surface_id,
            self.widget,
            self._mount_call(client),
            self._params(credentials),
        )

    def _customer(self) -> dict[str, Any]:
        return {"name": self._customer_name, "email": self._customer_email}

    @abc.abstractmethod
    def _mount_call(self, client: PaymentClient) -> Any:
        """Return the client coroutine function that mounts this widget."""

    @abc.abstractmethod
    def _params(self, credentials: Credentials) -> dict[str, Any]:
        """Widget-specific mount parameters, without selector and callbacks."""


class CardFormProbe(_WidgetProbe):
    """Mount the direct-payment card form."""

    name = "card_form"
    label = "Card form mounting"
    start_message = "Testing card form mounting..."
    widget = "card"
    default_surface_id = "cardFormContainer"

    def __init__(self) -> None:
        super().__init__()
        self._amount = 29.99
        self._currency = "USD"
        self._description = "Test Payment via AxraPay SDK"
        self._style: dict[str, str] | None = None

    def configure(self, config: ProbeConfig) -> None:
        super().configure(config)
        options = config.options
        self._amount = float(options.get("amount", self._amount))
        self._currency = str(options.get("currency", self._currency)).upper()
        self._description = options.get("description", self._description)
        style = options.get("style")
        if isinstance(style, dict):
            self._style = {str(k): str(v) for k, v in style.items()}

    def _mount_call(self, client: PaymentClient) -> Any:
        return client.mount_card_form

    def _params(self, credentials: Credentials) -> dict[str, Any]:
        return {
            "amount": self._amount,
            "currency": self._currency,
            "business_id": credentials.business_id,
            "customer_data": self._customer(),
            "description": self._description,
            "style": self._style,
        }


class TokenFormProbe(_WidgetProbe):
    """Mount the card tokenization form."""

    name = "token_form"
    label = "Token form mounting"
    start_message = "Testing token form mounting..."
    widget = "token"
    default_surface_id = "tokenFormContainer"

    def __init__(self) -> None:
        super().__init__()
        self._metadata: dict[str, Any] = {"test": True, "source": "sdk-test"}

    def configure(self, config: ProbeConfig) -> None:
        super().configure(config)
        metadata = config.options.get("metadata")
        if isinstance(metadata, dict):
            self._metadata = dict(metadata)

    def _mount_call(self, client: PaymentClient) -> Any:
        return client.mount_token_form

    def _params(self, credentials: Credentials) -> dict[str, Any]:
        return {"customer_data": {**self._customer(), "metadata": dict(self._metadata)}}


__all__ = ["CardFormProbe", "TokenFormProbe"]
