"""
The closed set of probes the harness can run, in presentation order.
"""

from ..core.contracts import BaseProbe
from .cors import ConfigLookupClient, CorsProbe, HttpxConfigLookupClient
from .initialize import InitializeProbe
from .payment_intent import PaymentIntentProbe
from .widgets import CardFormProbe, TokenFormProbe

PROBE_REGISTRY: dict[str, type[BaseProbe]] = {
    "initialize": InitializeProbe,
    "payment_intent": PaymentIntentProbe,
    "card_form": CardFormProbe,
    "token_form": TokenFormProbe,
    "cors": CorsProbe,
}

PROBE_ALIASES: dict[str, str] = {
    "init": "initialize",
    "intent": "payment_intent",
    "payment-intent": "payment_intent",
    "card": "card_form",
    "card-form": "card_form",
    "token": "token_form",
    "token-form": "token_form",
}


def resolve_probe_name(label: str) -> str:
    """Return the registered probe name for CLI/API-friendly aliases."""

    normalised = label.strip().lower()
    return PROBE_ALIASES.get(normalised, normalised)


__all__ = [
    "CardFormProbe",
    "ConfigLookupClient",
    "CorsProbe",
    "HttpxConfigLookupClient",
    "InitializeProbe",
    "PROBE_ALIASES",
    "PROBE_REGISTRY",
    "PaymentIntentProbe",
    "TokenFormProbe",
    "resolve_probe_name",
]
