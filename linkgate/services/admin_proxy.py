"""
Admin Rate-Limit Proxy

Forwards rate-limit configuration reads and writes from the admin dashboard
to the external CAPTCHA service and relays its answer.

Design Decisions:
- Configuration is an explicit value built once at startup, so the proxy
  can be tested without touching process environment
- One shared httpx.AsyncClient with a bounded timeout; calls are never
  retried
- Upstream failures keep the upstream status; the message is the
  upstream's own `error` field when it sends one
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from linkgate.core.exceptions import ConfigurationError, UpstreamError
from linkgate.core.setting import Settings

logger = logging.getLogger(__name__)

RATELIMIT_PATH = "/api/admin/ratelimit"
ADMIN_KEY_HEADER = "x-admin-key"


@dataclass(frozen=True)
class AdminProxyConfig:
    """Connection details of the external CAPTCHA admin API."""

    api_url: Optional[str]
    admin_key: Optional[str]
    timeout: float = 10.0

    @classmethod
    def from_settings(cls, config: Settings) -> "AdminProxyConfig":
        return cls(
            api_url=config.CAPTCHA_API_URL,
            admin_key=config.CAPTCHA_ADMIN_KEY,
            timeout=config.CAPTCHA_API_TIMEOUT,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_url and self.admin_key)


@dataclass
class UpstreamResponse:
    """Status and decoded JSON body returned by the CAPTCHA service."""

    status_code: int
    body: Any


class AdminRateLimitProxy:
    """Client for the CAPTCHA service's rate-limit admin endpoint."""

    def __init__(self, config: AdminProxyConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._client = client or httpx.AsyncClient(timeout=config.timeout)

    def _endpoint(self) -> str:
        if not self.config.is_configured:
            raise ConfigurationError("CAPTCHA API")
        return f"{self.config.api_url.rstrip('/')}{RATELIMIT_PATH}"

    def _headers(self) -> dict[str, str]:
        return {
            ADMIN_KEY_HEADER: self.config.admin_key,
            "Content-Type": "application/json",
        }

    @staticmethod
    def _relay(response: httpx.Response, default_error: str) -> UpstreamResponse:
        if response.is_success:
            return UpstreamResponse(response.status_code, response.json())

        message = default_error
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict) and payload.get("error"):
            message = str(payload["error"])
        raise UpstreamError(response.status_code, message)

    async def fetch_rate_limits(self) -> UpstreamResponse:
        """
        Read the current rate-limit configuration.

        Raises:
            ConfigurationError: If the API URL or admin key is missing
            UpstreamError: If the service answered with a failure status
            httpx.HTTPError: On transport failures and timeouts
        """
        url = self._endpoint()
        response = await self._client.get(
            url,
            headers={**self._headers(), "Cache-Control": "no-store"},
        )
        return self._relay(response, "Failed to fetch rate limits")

    async def update_rate_limits(self, payload: Any) -> UpstreamResponse:
        """
        Write a new rate-limit configuration, forwarding ``payload`` as JSON.

        Raises:
            ConfigurationError: If the API URL or admin key is missing
            UpstreamError: If the service answered with a failure status
            httpx.HTTPError: On transport failures and timeouts
        """
        url = self._endpoint()
        response = await self._client.post(url, headers=self._headers(), json=payload)
        return self._relay(response, "Failed to update")

    async def aclose(self) -> None:
        await self._client.aclose()
