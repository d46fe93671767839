"""
Cross-origin probe against the SDK config-lookup endpoint.

The probe does not touch the payment client, so it runs without the
readiness gate. Failures that happen before any response are classified by
sniffing the error text for cross-origin wording.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from ..core.config import DEMO_SDK_TOKEN, Credentials
from ..core.contracts import BaseProbe, ProbeConfig, ResultEnvelope
from ..core.errors import NetworkError, PolicyError, UnderlyingError

logger = logging.getLogger(__name__)

_POLICY_MARKERS = ("cors", "cross-origin")


class ConfigLookupClient(Protocol):
    """Protocol implemented by concrete HTTP clients; returns the status code."""

    async def fetch(
        self,
        *,
        url: str,
        params: dict[str, str],
        headers: dict[str, str],
    ) -> int: ...


class HttpxConfigLookupClient:
    """Config lookup implemented with httpx."""

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        verify: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._verify = verify
        self._transport = transport

    async def fetch(
        self,
        *,
        url: str,
        params: dict[str, str],
        headers: dict[str, str],
    ) -> int:
        async with httpx.AsyncClient(
            timeout=self._timeout, verify=self._verify, transport=self._transport
        ) as client:
            response = await client.get(url, params=params, headers=headers)
            return response.status_code


def classify_transport_failure(exc: BaseException) -> NetworkError:
    """Map a pre-response failure to a policy or generic network error."""
    text = str(exc) or exc.__class__.__name__
    lowered = text.lower()
    if any(marker in lowered for marker in _POLICY_MARKERS):
        return PolicyError(text)
    return NetworkError(text)


class CorsProbe(BaseProbe):
    """Issue one authenticated cross-origin GET and classify the outcome."""

    name = "cors"
    label = "CORS test"
    start_message = "Testing CORS headers..."
    gated = False

    def __init__(self, *, client: ConfigLookupClient | None = None) -> None:
        super().__init__()
        self._client = client
        self._endpoint = "https://dev.gopremium.africa/api/sdk/config"
        self._timeout = 10.0
        self._verify_ssl = True
        self._key_header = "X-AxraPay-Publishable-Key"
        self._demo_sdk_token = DEMO_SDK_TOKEN

    def configure(self, config: ProbeConfig) -> None:
        super().configure(config)
        options = config.options
        self._endpoint = options.get("endpoint", self._endpoint)
        self._timeout = float(options.get("timeout_seconds", self._timeout))
        self._verify_ssl = bool(options.get("verify_ssl", self._verify_ssl))
        self._key_header = options.get("publishable_key_header", self._key_header)
        self._demo_sdk_token = options.get("demo_sdk_token", self._demo_sdk_token)

    def build_request(self, credentials: Credentials) -> dict[str, Any]:
        token = credentials.sdk_token or self._demo_sdk_token
        return {
            "url": self._endpoint,
            "params": {"businessId": credentials.business_id},
            "headers": {
                self._key_header: credentials.publishable_key,
                "Authorization": f"Bearer {token}",
            },
        }

    async def run(self, credentials: Credentials) -> ResultEnvelope:
        client = self._client or HttpxConfigLookupClient(
            timeout=self._timeout, verify=self._verify_ssl
        )
        request = self.build_request(credentials)
        try:
            status = await client.fetch(**request)
        except Exception as exc:
            error = classify_transport_failure(exc)
            logger.info("CORS lookup to %s failed before a response: %s", self._endpoint, exc)
            if isinstance(error, PolicyError):
                message = f"CORS test failed - CORS error: {error}"
            else:
                message = f"CORS test failed: {error}"
            return ResultEnvelope.fail(message, error=error, data={"error": str(error)})

        if 200 <= status < 300:
            return ResultEnvelope.ok(
                "CORS test passed! Cross-origin requests are working correctly.",
                data={"status": status},
            )
        return ResultEnvelope.fail(
            f"CORS test failed - HTTP error: {status}",
            error=UnderlyingError,
            data={"status": status},
        )


__all__ = [
    "ConfigLookupClient",
    "CorsProbe",
    "HttpxConfigLookupClient",
    "classify_transport_failure",
]
