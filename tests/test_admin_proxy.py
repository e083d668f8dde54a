"""
Tests for the admin rate-limit proxy.

The upstream CAPTCHA service is an httpx.MockTransport that records every
request, so tests can assert that rejected calls never leave the process.
"""

import json

import httpx
import pytest

from linkgate.core.exceptions import ConfigurationError, UpstreamError
from linkgate.core.service_manager import get_admin_proxy
from linkgate.services.admin_proxy import AdminProxyConfig, AdminRateLimitProxy
from tests.conftest import make_settings

UPSTREAM_URL = "http://captcha.test"
ADMIN_KEY = "upstream-admin-key"
UPSTREAM_LIMITS = {"windowMs": 60000, "max": 20}


class Upstream:
    """Programmable fake of the CAPTCHA admin API."""

    def __init__(self, status_code: int = 200, body=None, error: Exception = None):
        self.status_code = status_code
        self.body = UPSTREAM_LIMITS if body is None else body
        self.error = error
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, json=self.body)

    def proxy(self, api_url=UPSTREAM_URL, admin_key=ADMIN_KEY) -> AdminRateLimitProxy:
        client = httpx.AsyncClient(transport=httpx.MockTransport(self))
        return AdminRateLimitProxy(AdminProxyConfig(api_url, admin_key), client=client)


@pytest.fixture
def upstream():
    return Upstream()


@pytest.fixture
def use_proxy(app):
    def _install(proxy: AdminRateLimitProxy) -> None:
        app.dependency_overrides[get_admin_proxy] = lambda: proxy
    return _install


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class TestAuthorization:
    """Requests without an admin session are rejected before any outbound call."""

    @pytest.mark.parametrize("method", ["get", "post"])
    def test_missing_token(self, client, upstream, use_proxy, method):
        use_proxy(upstream.proxy())

        response = getattr(client, method)("/api/admin/ratelimit")

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        assert len(upstream.requests) == 0

    def test_non_admin_role(self, client, upstream, use_proxy, user_token):
        use_proxy(upstream.proxy())

        response = client.post(
            "/api/admin/ratelimit", json={"max": 5}, headers=bearer(user_token)
        )

        assert response.status_code == 401
        assert len(upstream.requests) == 0

    def test_garbage_token(self, client, upstream, use_proxy):
        use_proxy(upstream.proxy())

        response = client.get("/api/admin/ratelimit", headers=bearer("not-a-jwt"))

        assert response.status_code == 401
        assert len(upstream.requests) == 0

    def test_missing_auth_secret_rejects_everyone(self, app, client, upstream, use_proxy, admin_token):
        from linkgate.api.dependencies import get_settings

        app.dependency_overrides[get_settings] = lambda: make_settings(AUTH_SECRET=None)
        use_proxy(upstream.proxy())

        response = client.get("/api/admin/ratelimit", headers=bearer(admin_token))

        assert response.status_code == 401
        assert len(upstream.requests) == 0


class TestConfiguration:
    """A proxy without URL or admin key answers 500 and never calls out."""

    @pytest.mark.parametrize("api_url,admin_key", [(None, ADMIN_KEY), (UPSTREAM_URL, None), (None, None)])
    def test_unconfigured(self, client, upstream, use_proxy, admin_token, api_url, admin_key):
        use_proxy(upstream.proxy(api_url=api_url, admin_key=admin_key))

        get_response = client.get("/api/admin/ratelimit", headers=bearer(admin_token))
        post_response = client.post(
            "/api/admin/ratelimit", json={"max": 5}, headers=bearer(admin_token)
        )

        for response in (get_response, post_response):
            assert response.status_code == 500
            assert response.json() == {"error": "CAPTCHA API not configured"}
        assert len(upstream.requests) == 0


class TestForwarding:
    """Configured proxies forward and relay upstream answers."""

    def test_get_relays_upstream_body(self, client, upstream, use_proxy, admin_token):
        use_proxy(upstream.proxy())

        response = client.get("/api/admin/ratelimit", headers=bearer(admin_token))

        assert response.status_code == 200
        assert response.json() == UPSTREAM_LIMITS
        assert len(upstream.requests) == 1
        sent = upstream.requests[0]
        assert sent.method == "GET"
        assert str(sent.url) == f"{UPSTREAM_URL}/api/admin/ratelimit"
        assert sent.headers["x-admin-key"] == ADMIN_KEY

    def test_post_forwards_body(self, client, use_proxy, admin_token):
        upstream = Upstream(body={"success": True})
        use_proxy(upstream.proxy())

        response = client.post(
            "/api/admin/ratelimit", json={"max": 50, "windowMs": 30000}, headers=bearer(admin_token)
        )

        assert response.status_code == 200
        assert response.json() == {"success": True}
        sent = upstream.requests[0]
        assert sent.method == "POST"
        assert sent.headers["x-admin-key"] == ADMIN_KEY
        assert json.loads(sent.content) == {"max": 50, "windowMs": 30000}

    def test_post_relays_upstream_error(self, client, use_proxy, admin_token):
        """Upstream 404 {"error": "not found"} reaches the caller unchanged."""
        upstream = Upstream(status_code=404, body={"error": "not found"})
        use_proxy(upstream.proxy())

        response = client.post("/api/admin/ratelimit", json={"max": 5}, headers=bearer(admin_token))

        assert response.status_code == 404
        assert response.json() == {"error": "not found"}

    def test_post_error_without_message_uses_default(self, client, use_proxy, admin_token):
        upstream = Upstream(status_code=400, body={"detail": "bad"})
        use_proxy(upstream.proxy())

        response = client.post("/api/admin/ratelimit", json={"max": -1}, headers=bearer(admin_token))

        assert response.status_code == 400
        assert response.json() == {"error": "Failed to update"}

    def test_get_error_keeps_upstream_status(self, client, use_proxy, admin_token):
        upstream = Upstream(status_code=503, body={})
        use_proxy(upstream.proxy())

        response = client.get("/api/admin/ratelimit", headers=bearer(admin_token))

        assert response.status_code == 503
        assert response.json() == {"error": "Failed to fetch rate limits"}

    @pytest.mark.parametrize("method", ["get", "post"])
    def test_transport_failure_is_internal_error(self, client, use_proxy, admin_token, method):
        upstream = Upstream(error=httpx.ConnectError("connection refused"))
        use_proxy(upstream.proxy())

        kwargs = {"json": {"max": 5}} if method == "post" else {}
        response = getattr(client, method)(
            "/api/admin/ratelimit", headers=bearer(admin_token), **kwargs
        )

        assert response.status_code == 500
        assert response.json() == {"error": "Internal error"}
        assert len(upstream.requests) == 1

    def test_unreadable_body_is_internal_error(self, client, upstream, use_proxy, admin_token):
        use_proxy(upstream.proxy())

        response = client.post(
            "/api/admin/ratelimit",
            content=b"{not json",
            headers={**bearer(admin_token), "Content-Type": "application/json"},
        )

        assert response.status_code == 500
        assert response.json() == {"error": "Internal error"}
        assert len(upstream.requests) == 0


class TestAdminRateLimitProxy:
    """Direct tests of the proxy service."""

    async def test_unconfigured_raises(self):
        proxy = Upstream().proxy(api_url=None)
        with pytest.raises(ConfigurationError):
            await proxy.fetch_rate_limits()

    async def test_upstream_error_carries_status(self):
        proxy = Upstream(status_code=409, body={"error": "conflict"}).proxy()
        with pytest.raises(UpstreamError) as exc_info:
            await proxy.update_rate_limits({"max": 1})
        assert exc_info.value.status_code == 409
        assert exc_info.value.public_message == "conflict"

    async def test_trailing_slash_in_base_url(self):
        upstream = Upstream()
        proxy = upstream.proxy(api_url=f"{UPSTREAM_URL}/")
        result = await proxy.fetch_rate_limits()
        assert result.body == UPSTREAM_LIMITS
        assert str(upstream.requests[0].url) == f"{UPSTREAM_URL}/api/admin/ratelimit"
        await proxy.aclose()

    def test_config_from_settings(self):
        config = AdminProxyConfig.from_settings(
            make_settings(CAPTCHA_API_URL=UPSTREAM_URL, CAPTCHA_ADMIN_KEY=ADMIN_KEY, CAPTCHA_API_TIMEOUT=3.5)
        )
        assert config.is_configured
        assert config.timeout == 3.5
